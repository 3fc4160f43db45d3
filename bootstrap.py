from __future__ import annotations

import logging
import os

from application.services import Repositories
from domain.repositories import CredentialPolicy, DocumentStore
from infrastructure.auth.credentials import (
    DEFAULT_ADMIN_SECRET,
    HashedSecretPolicy,
    StaticSecretPolicy,
)
from infrastructure.db.document_repositories import (
    DocumentAccountRepository,
    DocumentHouseConfigRepository,
    DocumentPlayerRepository,
    DocumentSessionRepository,
)
from infrastructure.db.document_store_sqlite import SqliteDocumentStore

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_document_store() -> DocumentStore:
    database_url = os.environ.get("DATABASE_URL")
    if database_url:
        # Imported lazily so SQLite-only deployments do not need libpq.
        from infrastructure.db.document_store_postgres import PostgresDocumentStore

        logger.info("Using Postgres document store")
        return PostgresDocumentStore(database_url)

    db_path = os.environ.get("DB_PATH", "winnings.db")
    logger.info("Using SQLite document store at %s", db_path)
    return SqliteDocumentStore(db_path)


def build_admin_policy() -> CredentialPolicy:
    secret_hash = os.environ.get("ADMIN_SECRET_HASH")
    if secret_hash:
        return HashedSecretPolicy(secret_hash)
    return StaticSecretPolicy(os.environ.get("ADMIN_SECRET", DEFAULT_ADMIN_SECRET))


def build_repositories(store: DocumentStore | None = None) -> Repositories:
    store = store or build_document_store()
    return Repositories(
        players=DocumentPlayerRepository(store),
        config=DocumentHouseConfigRepository(store),
        accounts=DocumentAccountRepository(store),
        sessions=DocumentSessionRepository(store),
        admin_policy=build_admin_policy(),
    )
