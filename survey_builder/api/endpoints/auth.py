import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ... import config
from ...core.security import (
    AuthError,
    UserNotFound,
    build_claims,
    clear_auth_cookie,
    get_current_claims,
    get_token_from_cookie,
    issue_token,
    refresh_token,
    resolve_user,
    set_auth_cookie,
)
from ...crud import crud_user
from ...database import get_db_session
from ...schemas import (
    GoogleIdentity,
    MessageResponse,
    RefreshTokenResponse,
    SessionUser,
    SessionUserResponse,
)
from ...services.google_oauth import GoogleOAuthClient, OAuthError, get_oauth_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


def _login_redirect(error_code: str) -> RedirectResponse:
    return RedirectResponse(f"{config.APP_BASE_URL}/login?error={error_code}", status_code=302)


@router.get("/auth/google")
async def google_login(oauth: GoogleOAuthClient = Depends(get_oauth_client)):
    return RedirectResponse(oauth.authorization_url(), status_code=302)


@router.get("/auth/google/callback")
async def google_callback(
    code: Optional[str] = None,
    error: Optional[str] = None,
    db: AsyncSession = Depends(get_db_session),
    oauth: GoogleOAuthClient = Depends(get_oauth_client),
):
    """
    Exchanges the authorization code, upserts the user and hands out the
    session cookie. Every failure ends on the login page with an error code.
    """
    if error:
        logger.warning("Google OAuth returned error: %s", error)
        return _login_redirect("access_denied")
    if not code:
        return _login_redirect("no_code")

    try:
        tokens = await oauth.exchange_code(code)
        userinfo = await oauth.fetch_userinfo(tokens["access_token"])
    except OAuthError as e:
        logger.warning("Google OAuth callback failed: %s", e)
        return _login_redirect("oauth_failed")

    try:
        identity = GoogleIdentity.model_validate(userinfo)
    except ValidationError:
        logger.warning("Google userinfo is missing id or email")
        return _login_redirect("missing_user_data")

    try:
        user = await crud_user.upsert_from_google(db, identity)
    except Exception:
        logger.exception("Could not store user from Google login")
        return _login_redirect("oauth_failed")

    logger.info("User id=%s logged in via Google", user.id)
    response = RedirectResponse(f"{config.APP_BASE_URL}/user", status_code=302)
    set_auth_cookie(response, issue_token(build_claims(user)))
    return response


@router.get("/auth/user", response_model=SessionUserResponse)
async def current_session_user(
    claims: dict = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db_session),
):
    user_id = claims.get("userId")
    hashkey = claims.get("hashkey")
    # Older tokens lack userId/hashkey; fill them in from the directory
    if user_id is None or not hashkey:
        user = await resolve_user(db, claims)
        if user is not None:
            user_id = user_id if user_id is not None else user.id
            hashkey = hashkey or user.hashkey

    return SessionUserResponse(
        user=SessionUser(
            id=claims.get("id"),
            email=claims.get("email"),
            name=claims.get("name"),
            picture=claims.get("picture"),
            verified_email=claims.get("verified_email"),
            userId=user_id,
            hashkey=hashkey,
        )
    )


@router.post("/auth/logout", response_model=MessageResponse)
async def logout(response: Response):
    clear_auth_cookie(response)
    return MessageResponse(message="Logged out successfully")


@router.post("/refresh-token", response_model=RefreshTokenResponse)
async def refresh_session_token(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
):
    try:
        new_token, user = await refresh_token(db, get_token_from_cookie(request))
    except AuthError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.detail)
    except UserNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    except Exception:
        logger.exception("Token refresh error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to refresh token",
        )

    set_auth_cookie(response, new_token)
    return RefreshTokenResponse(user=SessionUser(**build_claims(user)))


@router.get("/debug-token")
async def debug_token(claims: dict = Depends(get_current_claims)):
    return {
        "decoded": claims,
        "hasHashkey": bool(claims.get("hashkey")),
        "tokenFields": list(claims.keys()),
    }
