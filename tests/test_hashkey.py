import pytest

from survey_builder.core import hashkey as hashkey_module
from survey_builder.core.hashkey import (
    MAX_HASHKEY_ATTEMPTS,
    HashkeyExhaustedError,
    generate_hashkey,
    generate_unique_hashkey,
    is_valid_hashkey,
)
from survey_builder.models import Survey, User

from conftest import make_user


def test_generated_hashkeys_are_8_lowercase_hex():
    for _ in range(10_000):
        assert is_valid_hashkey(generate_hashkey())


@pytest.mark.parametrize(
    "value,expected",
    [
        ("0a1b2c3d", True),
        ("deadbeef", True),
        ("DEADBEEF", False),
        ("0a1b2c3", False),
        ("0a1b2c3d4", False),
        ("0a1b2c3g", False),
        ("", False),
        (None, False),
    ],
)
def test_is_valid_hashkey(value, expected):
    assert is_valid_hashkey(value) is expected


async def test_unique_hashkey_skips_taken_values(database, session, monkeypatch):
    taken = await make_user(database)
    candidates = iter([taken.hashkey, taken.hashkey, "feedf00d"])
    monkeypatch.setattr(hashkey_module, "generate_hashkey", lambda: next(candidates))

    assert await generate_unique_hashkey(session, User) == "feedf00d"


async def test_user_and_survey_namespaces_are_separate(database, session, monkeypatch):
    taken = await make_user(database)
    monkeypatch.setattr(hashkey_module, "generate_hashkey", lambda: taken.hashkey)

    # Same value is free in the surveys table
    assert await generate_unique_hashkey(session, Survey) == taken.hashkey


async def test_unique_hashkey_gives_up_after_max_attempts(database, session, monkeypatch):
    taken = await make_user(database)
    calls = []

    def always_taken():
        calls.append(1)
        return taken.hashkey

    monkeypatch.setattr(hashkey_module, "generate_hashkey", always_taken)

    with pytest.raises(HashkeyExhaustedError):
        await generate_unique_hashkey(session, User)
    assert len(calls) == MAX_HASHKEY_ATTEMPTS
