from __future__ import annotations

import hmac

from domain.passwords import verify_secret
from domain.repositories import CredentialPolicy

DEFAULT_ADMIN_SECRET = "4361"


class StaticSecretPolicy(CredentialPolicy):
    """Admin check against a plain shared secret."""

    def __init__(self, secret: str = DEFAULT_ADMIN_SECRET) -> None:
        self._secret = secret

    def verify(self, secret: str) -> bool:
        return hmac.compare_digest(secret.encode("utf-8"), self._secret.encode("utf-8"))


class HashedSecretPolicy(CredentialPolicy):
    """Admin check against a salted hash produced by `hash_secret`."""

    def __init__(self, encoded: str) -> None:
        self._encoded = encoded

    def verify(self, secret: str) -> bool:
        return verify_secret(secret, self._encoded)
