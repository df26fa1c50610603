from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Tuple

import jwt
from fastapi import Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from .. import config
from ..crud import crud_user
from ..database import get_db_session
from ..models import User

logger = logging.getLogger(__name__)

TOKEN_MAX_AGE_SECONDS = 60 * 60 * 24 * config.TOKEN_TTL_DAYS


class AuthError(Exception):
    detail = "Invalid token"


class MissingToken(AuthError):
    detail = "No token found"


class InvalidToken(AuthError):
    detail = "Invalid token"


class TokenExpired(AuthError):
    detail = "Token expired"


class UserNotFound(Exception):
    pass


def build_claims(user: User) -> dict[str, Any]:
    """Snapshot of the directory record that goes into the token."""
    return {
        "id": user.google_id or user.email,
        "email": user.email,
        "name": user.name,
        "picture": user.picture,
        "verified_email": bool(user.verified_email),
        "userId": user.id,
        "hashkey": user.hashkey,
    }


def issue_token(claims: dict[str, Any], expires_in: timedelta | None = None) -> str:
    if expires_in is None:
        expires_in = timedelta(days=config.TOKEN_TTL_DAYS)

    now = datetime.now(timezone.utc)
    to_encode = {
        **claims,
        "iat": int(now.timestamp()),
        "exp": now + expires_in,
    }
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def verify_token(token: Optional[str]) -> dict[str, Any]:
    """Checks signature and expiry and returns the claims."""
    if not token:
        raise MissingToken()
    try:
        return jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["exp"], "verify_exp": True},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpired() from e
    except jwt.InvalidTokenError as e:
        raise InvalidToken() from e


async def resolve_user(db: AsyncSession, claims: dict[str, Any]) -> Optional[User]:
    """
    Authoritative directory record for a set of claims.

    Tokens from before the directory existed carry no userId, so the Google id
    and the email are tried after it.
    """
    user_id = claims.get("userId")
    if isinstance(user_id, int):
        return await crud_user.get_user(db, user_id)

    external_id = claims.get("id")
    if external_id:
        user = await crud_user.get_user_by_google_id(db, str(external_id))
        if user is not None:
            return user

    email = claims.get("email")
    if email:
        return await crud_user.get_user_by_email(db, email)
    return None


async def resolve_hashkey(db: AsyncSession, claims: dict[str, Any]) -> Optional[str]:
    """Hashkey claim when present (possibly stale), directory lookup otherwise."""
    if claims.get("hashkey"):
        return claims["hashkey"]
    user = await resolve_user(db, claims)
    return user.hashkey if user is not None else None


async def refresh_token(db: AsyncSession, token: Optional[str]) -> Tuple[str, User]:
    """
    Re-issues a valid token from the current directory record rather than
    from the token's own claims, so the new token always carries the hashkey.
    """
    claims = verify_token(token)
    user = await resolve_user(db, claims)
    if user is None:
        raise UserNotFound()
    logger.info("Refreshing token for user id=%s", user.id)
    return issue_token(build_claims(user)), user


# --- Cookie transport ---
def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=config.AUTH_COOKIE_NAME,
        value=token,
        max_age=TOKEN_MAX_AGE_SECONDS,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_auth_cookie(response: Response) -> None:
    response.set_cookie(
        key=config.AUTH_COOKIE_NAME,
        value="",
        max_age=0,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def get_token_from_cookie(request: Request) -> Optional[str]:
    return request.cookies.get(config.AUTH_COOKIE_NAME)


# --- Dependencies ---
async def get_current_claims(request: Request) -> dict[str, Any]:
    try:
        return verify_token(get_token_from_cookie(request))
    except AuthError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.detail)


async def get_current_user(
    claims: dict[str, Any] = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    user = await resolve_user(db, claims)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
