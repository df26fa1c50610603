import logging
import re
import secrets

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

HASHKEY_LENGTH = 8
HASHKEY_PATTERN = re.compile(r"^[0-9a-f]{8}$")
MAX_HASHKEY_ATTEMPTS = 10


class HashkeyExhaustedError(RuntimeError):
    pass


def generate_hashkey() -> str:
    """8 lowercase hex characters."""
    return secrets.token_hex(HASHKEY_LENGTH // 2)


def is_valid_hashkey(value) -> bool:
    return isinstance(value, str) and bool(HASHKEY_PATTERN.match(value))


async def hashkey_exists(db: AsyncSession, model, hashkey: str) -> bool:
    result = await db.execute(select(model.id).where(model.hashkey == hashkey))
    return result.first() is not None


async def generate_unique_hashkey(db: AsyncSession, model) -> str:
    """
    Draws hashkeys until one is free in the table behind `model`.
    User and survey hashkeys live in separate namespaces.
    """
    for attempt in range(1, MAX_HASHKEY_ATTEMPTS + 1):
        candidate = generate_hashkey()
        if not await hashkey_exists(db, model, candidate):
            return candidate
        logger.warning(
            "Hashkey collision on %s (attempt %d): %s",
            model.__tablename__,
            attempt,
            candidate,
        )
    raise HashkeyExhaustedError(
        f"No free hashkey for {model.__tablename__} after {MAX_HASHKEY_ATTEMPTS} attempts"
    )
