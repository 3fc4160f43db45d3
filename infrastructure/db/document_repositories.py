from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from domain.models import Account, HouseConfig, Player, Session
from domain.repositories import (
    AccountRepository,
    DocumentStore,
    HouseConfigRepository,
    PlayerRepository,
    SessionRepository,
)
from infrastructure.db.documents import to_decimal

WINNINGS_COLLECTION = "winnings"
WINNINGS_FIELD = "amount"

CONFIG_COLLECTION = "max bet"
CONFIG_DOCUMENT = "config"
MAX_BET_FIELD = "max"

ACCOUNTS_COLLECTION = "accounts"
SESSIONS_COLLECTION = "sessions"


class DocumentPlayerRepository(PlayerRepository):
    """
    `PlayerRepository` over a `DocumentStore`.

    One document per player in the `winnings` collection, keyed by
    player ID, holding the balance in its `amount` field.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    @staticmethod
    def _to_domain(player_id: str, document: dict) -> Player:
        return Player(id=player_id, balance=to_decimal(document.get(WINNINGS_FIELD)))

    def get_player(self, player_id: str) -> Optional[Player]:
        document = self._store.get(WINNINGS_COLLECTION, player_id)
        if document is None:
            return None
        return self._to_domain(player_id, document)

    def get_or_initialize(self, player_id: str) -> Player:
        # Adding zero creates the document if absent without clobbering a
        # balance written by another session in the meantime.
        balance = self._store.increment(WINNINGS_COLLECTION, player_id, WINNINGS_FIELD, Decimal("0"))
        return Player(id=player_id, balance=balance)

    def get_all_players(self) -> List[Player]:
        return [
            self._to_domain(player_id, document)
            for player_id, document in self._store.list_all(WINNINGS_COLLECTION)
        ]

    def save_balance(self, player_id: str, balance: Decimal) -> None:
        self._store.set(WINNINGS_COLLECTION, player_id, {WINNINGS_FIELD: balance})

    def increment_balance(self, player_id: str, delta: Decimal) -> Decimal:
        return self._store.increment(WINNINGS_COLLECTION, player_id, WINNINGS_FIELD, delta)


class DocumentHouseConfigRepository(HouseConfigRepository):
    """The single house config document (`max bet/config`)."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def get_config(self) -> HouseConfig:
        document = self._store.get(CONFIG_COLLECTION, CONFIG_DOCUMENT)
        if document is None or document.get(MAX_BET_FIELD) is None:
            return HouseConfig()
        return HouseConfig(max_bet=to_decimal(document[MAX_BET_FIELD]))

    def save_config(self, config: HouseConfig) -> None:
        self._store.set(
            CONFIG_COLLECTION,
            CONFIG_DOCUMENT,
            {MAX_BET_FIELD: config.max_bet},
            merge=True,
        )


class DocumentAccountRepository(AccountRepository):
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def get_by_email(self, email: str) -> Optional[Account]:
        document = self._store.get(ACCOUNTS_COLLECTION, email)
        if document is None:
            return None
        return Account(email=email, password_hash=document["password_hash"])

    def create_account(self, account: Account) -> None:
        self._store.set(
            ACCOUNTS_COLLECTION,
            account.email,
            {"password_hash": account.password_hash},
        )


class DocumentSessionRepository(SessionRepository):
    """
    Chat sessions keyed by `<provider>:<provider_user_id>`.

    Each document records the signed-in email and the admin flag.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    @staticmethod
    def _key(provider: str, provider_user_id: str) -> str:
        return f"{provider}:{provider_user_id}"

    def get_session(self, provider: str, provider_user_id: str) -> Optional[Session]:
        document = self._store.get(SESSIONS_COLLECTION, self._key(provider, provider_user_id))
        if document is None:
            return None
        return Session(
            provider=provider,
            provider_user_id=provider_user_id,
            email=document["email"],
            is_admin=bool(document.get("is_admin", False)),
        )

    def save_session(self, session: Session) -> None:
        self._store.set(
            SESSIONS_COLLECTION,
            self._key(session.provider, session.provider_user_id),
            {"email": session.email, "is_admin": session.is_admin},
        )

    def clear_session(self, provider: str, provider_user_id: str) -> None:
        self._store.delete(SESSIONS_COLLECTION, self._key(provider, provider_user_id))
