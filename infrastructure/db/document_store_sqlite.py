from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, List, Optional, Tuple

from domain.errors import StoreUnavailable
from domain.repositories import Document, DocumentStore
from infrastructure.db.documents import dumps, encode_document, loads, to_decimal

logger = logging.getLogger(__name__)


class SqliteDocumentStore(DocumentStore):
    """
    SQLite-backed implementation of `DocumentStore`.

    Every document is one row of the `documents` table holding its
    fields as a JSON object. The table is created if needed.
    """

    def __init__(self, db_path: str, timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._timeout = timeout
        with self._translate_errors("initialise"):
            self._ensure_table()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path, timeout=self._timeout)

    @contextmanager
    def _translate_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            logger.error("SQLite document store failed to %s: %s", action, exc)
            raise StoreUnavailable(f"Could not {action} document store: {exc}") from exc

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    document_id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY (collection, document_id)
                )
                """
            )
            conn.commit()

    @staticmethod
    def _read(cur: sqlite3.Cursor, collection: str, document_id: str) -> Optional[Document]:
        cur.execute(
            "SELECT data FROM documents WHERE collection = ? AND document_id = ?",
            (collection, document_id),
        )
        row = cur.fetchone()
        if not row:
            return None
        return loads(row[0])

    @staticmethod
    def _write(cur: sqlite3.Cursor, collection: str, document_id: str, data: Document) -> None:
        cur.execute(
            """
            INSERT INTO documents (collection, document_id, data)
            VALUES (?, ?, ?)
            ON CONFLICT (collection, document_id)
            DO UPDATE SET data = excluded.data
            """,
            (collection, document_id, dumps(data)),
        )

    def get(self, collection: str, document_id: str) -> Optional[Document]:
        with self._translate_errors("read"):
            with self._get_connection() as conn:
                return self._read(conn.cursor(), collection, document_id)

    def set(
        self,
        collection: str,
        document_id: str,
        fields: Document,
        merge: bool = False,
    ) -> None:
        with self._translate_errors("write"):
            with self._get_connection() as conn:
                cur = conn.cursor()
                data = encode_document(fields)
                if merge:
                    existing = self._read(cur, collection, document_id) or {}
                    existing.update(data)
                    data = existing
                self._write(cur, collection, document_id, data)
                conn.commit()

    def list_all(self, collection: str) -> List[Tuple[str, Document]]:
        with self._translate_errors("list"):
            with self._get_connection() as conn:
                cur = conn.cursor()
                cur.execute(
                    """
                    SELECT document_id, data
                    FROM documents
                    WHERE collection = ?
                    ORDER BY document_id
                    """,
                    (collection,),
                )
                return [(str(row[0]), loads(row[1])) for row in cur.fetchall()]

    def delete(self, collection: str, document_id: str) -> None:
        with self._translate_errors("delete"):
            with self._get_connection() as conn:
                cur = conn.cursor()
                cur.execute(
                    "DELETE FROM documents WHERE collection = ? AND document_id = ?",
                    (collection, document_id),
                )
                conn.commit()

    def increment(
        self,
        collection: str,
        document_id: str,
        field: str,
        delta: Decimal,
    ) -> Decimal:
        with self._translate_errors("increment"):
            conn = self._get_connection()
            # Autocommit mode so the explicit BEGIN IMMEDIATE below owns the
            # transaction and holds the write lock across read and write.
            conn.isolation_level = None
            try:
                cur = conn.cursor()
                cur.execute("BEGIN IMMEDIATE")
                try:
                    data = self._read(cur, collection, document_id) or {}
                    new_value = to_decimal(data.get(field)) + delta
                    data[field] = str(new_value)
                    self._write(cur, collection, document_id, data)
                except Exception:
                    cur.execute("ROLLBACK")
                    raise
                cur.execute("COMMIT")
                return new_value
            finally:
                conn.close()
