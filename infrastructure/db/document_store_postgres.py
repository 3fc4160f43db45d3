from __future__ import annotations

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, List, Optional, Tuple

import psycopg2
from psycopg2.extras import Json

from domain.errors import StoreUnavailable
from domain.repositories import Document, DocumentStore
from infrastructure.db.documents import encode_document

logger = logging.getLogger(__name__)


class PostgresDocumentStore(DocumentStore):
    """
    Postgres-backed implementation of `DocumentStore`.

    Documents live in a `documents` table as JSONB; merges and increments
    are done server-side so concurrent writers do not overwrite each other.
    """

    def __init__(self, dsn: str) -> None:
        self._dsn = dsn
        with self._translate_errors("initialise"):
            self._ensure_table()

    def _get_connection(self):
        return psycopg2.connect(self._dsn)

    @contextmanager
    def _translate_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except psycopg2.Error as exc:
            logger.error("Postgres document store failed to %s: %s", action, exc)
            raise StoreUnavailable(f"Could not {action} document store: {exc}") from exc

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS documents (
                        collection TEXT NOT NULL,
                        document_id TEXT NOT NULL,
                        data JSONB NOT NULL DEFAULT '{}'::jsonb,
                        PRIMARY KEY (collection, document_id)
                    )
                    """
                )
                conn.commit()

    def get(self, collection: str, document_id: str) -> Optional[Document]:
        with self._translate_errors("read"):
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        SELECT data
                        FROM documents
                        WHERE collection = %s AND document_id = %s
                        """,
                        (collection, document_id),
                    )
                    row = cur.fetchone()
                    if not row:
                        return None
                    return dict(row[0])

    def set(
        self,
        collection: str,
        document_id: str,
        fields: Document,
        merge: bool = False,
    ) -> None:
        if merge:
            on_conflict = "DO UPDATE SET data = documents.data || EXCLUDED.data"
        else:
            on_conflict = "DO UPDATE SET data = EXCLUDED.data"

        with self._translate_errors("write"):
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        INSERT INTO documents (collection, document_id, data)
                        VALUES (%s, %s, %s)
                        ON CONFLICT (collection, document_id)
                        {on_conflict}
                        """,
                        (collection, document_id, Json(encode_document(fields))),
                    )
                    conn.commit()

    def list_all(self, collection: str) -> List[Tuple[str, Document]]:
        with self._translate_errors("list"):
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        SELECT document_id, data
                        FROM documents
                        WHERE collection = %s
                        ORDER BY document_id
                        """,
                        (collection,),
                    )
                    return [(str(row[0]), dict(row[1])) for row in cur.fetchall()]

    def delete(self, collection: str, document_id: str) -> None:
        with self._translate_errors("delete"):
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        "DELETE FROM documents WHERE collection = %s AND document_id = %s",
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
        # The upsert takes the row lock, so read-add-write is one atomic step.
        with self._translate_errors("increment"):
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        INSERT INTO documents (collection, document_id, data)
                        VALUES (%s, %s, jsonb_build_object(%s, %s::text))
                        ON CONFLICT (collection, document_id)
                        DO UPDATE SET data = documents.data || jsonb_build_object(
                            %s,
                            (COALESCE(documents.data->>%s, '0')::numeric + %s::numeric)::text
                        )
                        RETURNING data->>%s
                        """,
                        (
                            collection,
                            document_id,
                            field,
                            str(delta),
                            field,
                            field,
                            str(delta),
                            field,
                        ),
                    )
                    row = cur.fetchone()
                    conn.commit()
                    return Decimal(row[0])
