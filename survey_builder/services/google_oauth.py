import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import Request

from .. import config

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
SCOPES = [
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]


class OAuthError(Exception):
    pass


class GoogleOAuthClient:
    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.client_id = client_id or config.GOOGLE_CLIENT_ID
        self.client_secret = client_secret or config.GOOGLE_CLIENT_SECRET
        self.redirect_uri = redirect_uri or f"{config.APP_BASE_URL}/api/auth/google/callback"
        self._http = httpx.AsyncClient(timeout=timeout)

    def authorization_url(self) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "include_granted_scopes": "true",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> dict:
        try:
            response = await self._http.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uri": self.redirect_uri,
                    "grant_type": "authorization_code",
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise OAuthError(f"Token exchange failed: {e}") from e

        tokens = response.json()
        if "access_token" not in tokens:
            raise OAuthError("Token response has no access_token")
        return tokens

    async def fetch_userinfo(self, access_token: str) -> dict:
        try:
            response = await self._http.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise OAuthError(f"Userinfo request failed: {e}") from e
        return response.json()

    async def close(self):
        await self._http.aclose()


def get_oauth_client(request: Request) -> GoogleOAuthClient:
    return request.app.state.oauth
