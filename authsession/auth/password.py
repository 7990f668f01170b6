"""Password hashing and verification using bcrypt."""

from functools import lru_cache

import bcrypt

DEFAULT_ROUNDS = 10


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash a plain password with a fresh salt. Returns bcrypt hash string."""
    if not plain:
        raise ValueError("password cannot be empty")
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Verify plain password against stored hash. Never raises."""
    if not plain or not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


@lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> str:
    return hash_password("not-a-real-password", rounds=rounds)


def dummy_verify(plain: str, rounds: int = DEFAULT_ROUNDS) -> bool:
    """Spend one bcrypt check against a throwaway hash and return False.

    Keeps a login for an unknown email as slow as one with a wrong password.
    """
    verify_password(plain or "x", _dummy_hash(rounds))
    return False
