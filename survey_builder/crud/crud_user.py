import logging
import re
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.hashkey import generate_unique_hashkey
from ..models import User
from ..schemas import GoogleIdentity

logger = logging.getLogger(__name__)

# hashkey, id and email are fixed once the row exists
MUTABLE_USER_FIELDS = {"username", "google_id", "name", "picture", "verified_email"}
FALLBACK_USERNAME = "user"
MIN_USERNAME_LENGTH = 3
MAX_UPSERT_ATTEMPTS = 5


class UserDirectoryError(RuntimeError):
    pass


def generate_username(email: str, name: Optional[str] = None) -> str:
    """Derive a username from the display name, else from the email local part."""
    if name:
        from_name = re.sub(r"\s+", "_", name.lower())
        from_name = re.sub(r"[^a-z0-9_]", "", from_name)
        if len(from_name) >= MIN_USERNAME_LENGTH:
            return from_name

    local_part = email.split("@")[0].lower()
    from_email = re.sub(r"\s+", "_", local_part)
    from_email = re.sub(r"[^a-z0-9_]", "", from_email)
    return from_email or FALLBACK_USERNAME


async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
    return await db.get(User, user_id)


async def get_user_by_google_id(db: AsyncSession, google_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.google_id == google_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user_by_hashkey(db: AsyncSession, hashkey: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.hashkey == hashkey))
    return result.scalar_one_or_none()


async def list_users(db: AsyncSession, limit: int = 50, offset: int = 0) -> List[User]:
    result = await db.execute(
        select(User)
        .order_by(User.created_at.desc(), User.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def _available_username(db: AsyncSession, base: str) -> str:
    candidate = base
    suffix = 1
    while True:
        result = await db.execute(select(User.id).where(User.username == candidate))
        if result.first() is None:
            return candidate
        suffix += 1
        candidate = f"{base}_{suffix}"


async def create_user(
    db: AsyncSession,
    *,
    email: str,
    username: Optional[str] = None,
    google_id: Optional[str] = None,
    name: Optional[str] = None,
    picture: Optional[str] = None,
    verified_email: bool = False,
) -> User:
    """
    Inserts a user with a fresh hashkey and commits.
    Raises IntegrityError when a concurrent insert took the same unique value.
    """
    hashkey = await generate_unique_hashkey(db, User)
    username = await _available_username(db, username or generate_username(email, name))

    db_user = User(
        hashkey=hashkey,
        username=username,
        email=email,
        google_id=google_id,
        name=name,
        picture=picture,
        verified_email=verified_email,
    )
    db.add(db_user)
    await db.commit()
    await db.refresh(db_user)
    logger.info("User created: id=%s hashkey=%s", db_user.id, db_user.hashkey)
    return db_user


async def update_user(db: AsyncSession, user_id: int, **fields) -> Optional[User]:
    """Partial update. Fields passed as None are left untouched."""
    illegal = set(fields) - MUTABLE_USER_FIELDS
    if illegal:
        raise ValueError(f"Immutable or unknown user fields: {sorted(illegal)}")

    db_user = await get_user(db, user_id)
    if db_user is None:
        return None

    changes = {k: v for k, v in fields.items() if v is not None}
    if not changes:
        return db_user

    for key, value in changes.items():
        setattr(db_user, key, value)
    await db.commit()
    await db.refresh(db_user)
    return db_user


async def upsert_from_google(db: AsyncSession, identity: GoogleIdentity) -> User:
    """
    Find-or-create for a Google login.

    Lookup order is google id, then email (which links the Google account to
    the existing row), then a new row. A unique-constraint violation means a
    parallel login won the insert, so the lookups are simply repeated.
    """
    profile = {
        "name": identity.name,
        "picture": identity.picture,
        "verified_email": identity.verified_email,
    }

    for attempt in range(1, MAX_UPSERT_ATTEMPTS + 1):
        existing = await get_user_by_google_id(db, identity.id)
        if existing is not None:
            return await update_user(db, existing.id, **profile)

        existing = await get_user_by_email(db, identity.email)
        if existing is not None:
            logger.info("Linking Google account to existing user id=%s", existing.id)
            return await update_user(db, existing.id, google_id=identity.id, **profile)

        try:
            return await create_user(
                db,
                email=identity.email,
                google_id=identity.id,
                **profile,
            )
        except IntegrityError:
            await db.rollback()
            logger.warning(
                "Unique violation while creating user (attempt %d), retrying lookup", attempt
            )

    raise UserDirectoryError(f"Could not upsert user after {MAX_UPSERT_ATTEMPTS} attempts")


async def delete_user(db: AsyncSession, user_id: int) -> bool:
    """Administrative hard delete."""
    result = await db.execute(delete(User).where(User.id == user_id))
    await db.commit()
    return (result.rowcount or 0) > 0
