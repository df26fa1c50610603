from datetime import timedelta

import jwt
import pytest

from survey_builder import config
from survey_builder.core import security
from survey_builder.core.security import (
    InvalidToken,
    MissingToken,
    TokenExpired,
    UserNotFound,
    build_claims,
    issue_token,
    refresh_token,
    resolve_hashkey,
    resolve_user,
    verify_token,
)

from conftest import make_user


def test_issue_and_verify_round_trip(user):
    claims = verify_token(issue_token(build_claims(user)))

    assert claims["userId"] == user.id
    assert claims["hashkey"] == user.hashkey
    assert claims["id"] == "google-ada"
    assert claims["email"] == "ada@example.com"
    assert claims["exp"] - claims["iat"] == security.TOKEN_MAX_AGE_SECONDS


def test_build_claims_uses_email_without_google_id():
    class Record:
        id = 3
        google_id = None
        email = "plain@example.com"
        name = None
        picture = None
        verified_email = None
        hashkey = "0a1b2c3d"

    claims = build_claims(Record())
    assert claims["id"] == "plain@example.com"
    assert claims["verified_email"] is False


@pytest.mark.parametrize("token", [None, ""])
def test_missing_token(token):
    with pytest.raises(MissingToken):
        verify_token(token)


def test_expired_token():
    token = issue_token({"email": "a@example.com"}, expires_in=timedelta(seconds=-1))
    with pytest.raises(TokenExpired):
        verify_token(token)


def test_foreign_signature_is_rejected():
    token = jwt.encode({"email": "a@example.com", "exp": 9999999999}, "other-secret")
    with pytest.raises(InvalidToken):
        verify_token(token)


def test_token_without_expiry_is_rejected():
    token = jwt.encode({"email": "a@example.com"}, config.JWT_SECRET, algorithm="HS256")
    with pytest.raises(InvalidToken):
        verify_token(token)


def test_garbage_token():
    with pytest.raises(InvalidToken):
        verify_token("not-a-jwt")


async def test_resolve_user_prefers_user_id(database, session, user):
    other = await make_user(database, email="bob@example.com", google_id="google-bob", name="Bob")
    claims = {"userId": user.id, "id": "google-bob", "email": "bob@example.com"}

    assert (await resolve_user(session, claims)).id == user.id
    assert (await resolve_user(session, {"id": "google-bob"})).id == other.id
    assert (await resolve_user(session, {"email": "bob@example.com"})).id == other.id
    assert (await resolve_user(session, {"id": "unknown", "email": "bob@example.com"})).id == other.id
    assert await resolve_user(session, {}) is None


async def test_resolve_hashkey_uses_claim_then_directory(session, user):
    assert await resolve_hashkey(session, {"hashkey": "cafebabe", "userId": user.id}) == "cafebabe"
    assert await resolve_hashkey(session, {"email": "ada@example.com"}) == user.hashkey
    assert await resolve_hashkey(session, {"email": "nobody@example.com"}) is None


async def test_refresh_adds_hashkey_to_legacy_token(session, user):
    legacy = issue_token({"id": "google-ada", "email": "ada@example.com", "name": "Ada"})

    new_token, refreshed = await refresh_token(session, legacy)
    claims = verify_token(new_token)

    assert refreshed.id == user.id
    assert claims["hashkey"] == user.hashkey
    assert claims["userId"] == user.id


async def test_refresh_for_unknown_user(session):
    token = issue_token({"email": "ghost@example.com"})
    with pytest.raises(UserNotFound):
        await refresh_token(session, token)


async def test_refresh_rejects_expired_token(session, user):
    token = issue_token(build_claims(user), expires_in=timedelta(seconds=-1))
    with pytest.raises(TokenExpired):
        await refresh_token(session, token)
