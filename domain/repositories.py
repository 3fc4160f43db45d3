from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .models import Account, HouseConfig, Player, Session

Document = Dict[str, Any]


class DocumentStore(Protocol):
    """
    Abstraction over the hosted document database.

    Documents are flat dicts addressed by (collection, document_id).
    Implementations are responsible for:
    - Hiding any SQL / driver details from the repositories.
    - Raising `StoreUnavailable` for any backend failure.
    """

    def get(self, collection: str, document_id: str) -> Optional[Document]:
        """Return the document, or None if it does not exist."""

        ...

    def set(
        self,
        collection: str,
        document_id: str,
        fields: Document,
        merge: bool = False,
    ) -> None:
        """
        Write a document.

        With `merge=True` the given fields are merged into an existing
        document; otherwise the document is replaced.
        """

        ...

    def list_all(self, collection: str) -> List[Tuple[str, Document]]:
        """Return every (document_id, document) pair in a collection."""

        ...

    def delete(self, collection: str, document_id: str) -> None:
        ...

    def increment(
        self,
        collection: str,
        document_id: str,
        field: str,
        delta: Decimal,
    ) -> Decimal:
        """
        Atomically add `delta` to a numeric field and return the new value.

        A missing document or field counts as zero.
        """

        ...


class PlayerRepository(Protocol):
    """Persistence of player balances."""

    def get_player(self, player_id: str) -> Optional[Player]:
        """Return the player, or None if no balance has been stored yet."""

        ...

    def get_or_initialize(self, player_id: str) -> Player:
        """Return the player, storing a zero balance first if absent."""

        ...

    def get_all_players(self) -> List[Player]:
        ...

    def save_balance(self, player_id: str, balance: Decimal) -> None:
        ...

    def increment_balance(self, player_id: str, delta: Decimal) -> Decimal:
        """
        Adjust a player's balance by `delta` and return the stored result.

        Implementations should atomically apply the delta.
        """

        ...


class HouseConfigRepository(Protocol):
    def get_config(self) -> HouseConfig:
        """Return the stored house config, or the defaults if none is stored."""

        ...

    def save_config(self, config: HouseConfig) -> None:
        ...


class AccountRepository(Protocol):
    """
    Persistence abstraction for login accounts (email/password).
    """

    def get_by_email(self, email: str) -> Optional[Account]:
        ...

    def create_account(self, account: Account) -> None:
        ...


class SessionRepository(Protocol):
    """
    Maps chat identities (Telegram/Discord) to signed-in accounts.

    The application layer works with emails and player IDs and leaves
    provider-specific identifiers to this abstraction.
    """

    def get_session(self, provider: str, provider_user_id: str) -> Optional[Session]:
        ...

    def save_session(self, session: Session) -> None:
        ...

    def clear_session(self, provider: str, provider_user_id: str) -> None:
        """Remove any session for the given chat identity (logout)."""

        ...


class CredentialPolicy(Protocol):
    """Decides whether a supplied admin secret is valid."""

    def verify(self, secret: str) -> bool:
        ...
