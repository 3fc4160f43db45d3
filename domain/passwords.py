from __future__ import annotations

from typing import Optional

from passlib.hash import pbkdf2_sha256


def hash_secret(secret: str, rounds: Optional[int] = None) -> str:
    """
    Hash a password or admin secret with salted PBKDF2-SHA256.

    `rounds` falls back to passlib's default when not given.
    """

    hasher = pbkdf2_sha256.using(rounds=rounds) if rounds else pbkdf2_sha256
    return hasher.hash(secret)


def verify_secret(secret: str, encoded: str) -> bool:
    """Check `secret` against a stored hash; malformed hashes never match."""

    try:
        return pbkdf2_sha256.verify(secret, encoded)
    except (ValueError, TypeError):
        return False
