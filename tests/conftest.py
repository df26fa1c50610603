import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from survey_builder import config
from survey_builder.core.security import build_claims, issue_token
from survey_builder.crud import crud_user
from survey_builder.database import Database
from survey_builder.main import app

SAMPLE_SURVEY = {
    "title": "Photosynthesis",
    "description": "Checks the basics of photosynthesis",
    "questions": [
        {
            "question_text": "Where does photosynthesis happen?",
            "options": [
                {"option_letter": "A", "option_text": "Chloroplasts"},
                {"option_letter": "B", "option_text": "Mitochondria"},
                {"option_letter": "C", "option_text": "Nucleus"},
            ],
        },
        {
            "question_text": "Which gas is released?",
            "options": [
                {"option_letter": "A", "option_text": "Oxygen"},
                {"option_letter": "B", "option_text": "Nitrogen"},
            ],
        },
    ],
}


class FakeExtractor:
    """Stands in for the LLM client; records prompts."""

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    async def complete(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply

    async def close(self):
        pass


class FakeOAuth:
    def __init__(self, userinfo=None, error=None):
        self.userinfo = userinfo
        self.error = error
        self.codes = []

    def authorization_url(self):
        return "https://accounts.google.com/o/oauth2/v2/auth?client_id=test-client"

    async def exchange_code(self, code):
        self.codes.append(code)
        if self.error is not None:
            raise self.error
        return {"access_token": "google-access-token"}

    async def fetch_userinfo(self, access_token):
        return self.userinfo

    async def close(self):
        pass


@pytest_asyncio.fixture
async def database():
    db = Database(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def session(database):
    async with database.session_factory() as s:
        yield s


@pytest.fixture
def extractor():
    return FakeExtractor(reply=json.dumps(SAMPLE_SURVEY))


@pytest.fixture
def oauth():
    return FakeOAuth(
        userinfo={
            "id": "google-123",
            "email": "grace@example.com",
            "name": "Grace Hopper",
            "picture": "https://example.com/grace.png",
            "verified_email": True,
        }
    )


@pytest_asyncio.fixture
async def client(database, extractor, oauth):
    app.state.db = database
    app.state.extractor = extractor
    app.state.oauth = oauth
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as c:
        yield c


async def make_user(database, **overrides):
    fields = {
        "email": "ada@example.com",
        "google_id": "google-ada",
        "name": "Ada Lovelace",
        "picture": "https://example.com/ada.png",
        "verified_email": True,
    }
    fields.update(overrides)
    async with database.session_factory() as s:
        return await crud_user.create_user(s, **fields)


@pytest_asyncio.fixture
async def user(database):
    return await make_user(database)


def login(client, user, **claim_overrides):
    """Puts a session cookie for `user` on the client."""
    claims = build_claims(user)
    claims.update(claim_overrides)
    claims = {k: v for k, v in claims.items() if v is not None}
    client.cookies.set(config.AUTH_COOKIE_NAME, issue_token(claims))
