"""PostgreSQL document store keeping each collection as a JSONB table."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

import psycopg
from psycopg import sql
from psycopg.types.json import Jsonb

from coop_ledger.exceptions import (
    ConfigurationError,
    ConflictError,
    EntityNotFoundError,
    StoreUnavailableError,
)
from coop_ledger.store.base import Document, DocumentStore

logger = logging.getLogger(__name__)

FILES_TABLE = "ledger_files"


class PostgresDocumentStore(DocumentStore):
    """Document store over PostgreSQL.

    Each collection is a table ``(id text primary key, data jsonb,
    created_at timestamptz)``. Equality filters and compare-and-set
    preconditions use JSONB containment (``data @> ...``), so both run as a
    single statement and a conditional update is atomic.

    Parameters
    ----------
    connection_string : str
        libpq connection string.
    timeout_seconds : float
        Connect timeout and per-statement timeout.
    file_base_url : str
        Prefix for the view/download URLs of stored files.
    """

    def __init__(
        self,
        connection_string: str,
        timeout_seconds: float = 10.0,
        file_base_url: str = "/files",
    ) -> None:
        self.file_base_url = file_base_url.rstrip("/")
        statement_timeout_ms = int(timeout_seconds * 1000)
        try:
            self.conn = psycopg.connect(
                connection_string,
                autocommit=True,
                connect_timeout=max(1, int(timeout_seconds)),
                options=f"-c statement_timeout={statement_timeout_ms}",
            )
        except psycopg.OperationalError as e:
            raise StoreUnavailableError(f"Cannot connect to PostgreSQL: {e}") from e
        logger.info("Connected to PostgreSQL document store")

    @contextmanager
    def _translate_errors(self, what: str) -> Iterator[None]:
        try:
            yield
        except psycopg.errors.UniqueViolation as e:
            raise ConflictError(f"{what}: already exists") from e
        except psycopg.errors.UndefinedTable as e:
            raise ConfigurationError(f"{what}: table missing, run ensure_schema() first") from e
        except psycopg.OperationalError as e:
            raise StoreUnavailableError(f"{what}: {e}") from e

    def ensure_schema(self, collections: list[str]) -> None:
        """Create collection tables and the files table if missing."""
        with self._translate_errors("ensure_schema"), self.conn.cursor() as cur:
            for collection in collections:
                cur.execute(
                    sql.SQL(
                        "CREATE TABLE IF NOT EXISTS {} ("
                        "id text PRIMARY KEY, "
                        "data jsonb NOT NULL, "
                        "created_at timestamptz NOT NULL DEFAULT now())"
                    ).format(sql.Identifier(collection))
                )
            cur.execute(
                sql.SQL(
                    "CREATE TABLE IF NOT EXISTS {} ("
                    "bucket text NOT NULL, "
                    "file_id text NOT NULL, "
                    "content bytea NOT NULL, "
                    "content_type text NOT NULL, "
                    "created_at timestamptz NOT NULL DEFAULT now(), "
                    "PRIMARY KEY (bucket, file_id))"
                ).format(sql.Identifier(FILES_TABLE))
            )
        logger.info("Ensured schema for %d collections", len(collections))

    def list_documents(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str = "created_at",
        descending: bool = True,
        limit: int | None = None,
    ) -> list[Document]:
        query = sql.SQL("SELECT data FROM {} WHERE data @> %s ORDER BY data->>{} {}").format(
            sql.Identifier(collection),
            sql.Literal(order_by),
            sql.SQL("DESC" if descending else "ASC"),
        )
        if limit is not None:
            query = query + sql.SQL(" LIMIT {}").format(sql.Literal(int(limit)))

        with self._translate_errors(f"list {collection}"), self.conn.cursor() as cur:
            cur.execute(query, (Jsonb(filters or {}),))
            return [row[0] for row in cur.fetchall()]

    def get_document(self, collection: str, document_id: str) -> Document:
        query = sql.SQL("SELECT data FROM {} WHERE id = %s").format(sql.Identifier(collection))
        with self._translate_errors(f"get {collection}/{document_id}"), self.conn.cursor() as cur:
            cur.execute(query, (document_id,))
            row = cur.fetchone()
        if row is None:
            raise EntityNotFoundError(f"{collection}/{document_id} not found")
        return row[0]

    def create_document(
        self, collection: str, document_id: str | None, fields: dict[str, Any]
    ) -> Document:
        document_id = document_id or uuid.uuid4().hex
        doc = {**fields, "id": document_id}
        query = sql.SQL("INSERT INTO {} (id, data) VALUES (%s, %s)").format(
            sql.Identifier(collection)
        )
        with self._translate_errors(f"create {collection}/{document_id}"), self.conn.cursor() as cur:
            cur.execute(query, (document_id, Jsonb(doc)))
        return doc

    def update_document(
        self,
        collection: str,
        document_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> Document:
        query = sql.SQL(
            "UPDATE {} SET data = data || %s WHERE id = %s AND data @> %s RETURNING data"
        ).format(sql.Identifier(collection))
        what = f"update {collection}/{document_id}"
        with self._translate_errors(what), self.conn.cursor() as cur:
            cur.execute(query, (Jsonb(fields), document_id, Jsonb(expected or {})))
            row = cur.fetchone()
        if row is not None:
            return row[0]
        # Nothing updated: either the row is gone or the precondition failed
        self.get_document(collection, document_id)
        raise ConflictError(
            f"{collection}/{document_id} changed since it was read (expected {expected})"
        )

    def create_file(
        self,
        bucket: str,
        file_id: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        query = sql.SQL(
            "INSERT INTO {} (bucket, file_id, content, content_type) VALUES (%s, %s, %s, %s)"
        ).format(sql.Identifier(FILES_TABLE))
        with self._translate_errors(f"create file {bucket}/{file_id}"), self.conn.cursor() as cur:
            cur.execute(query, (bucket, file_id, content, content_type))
        return file_id

    def _require_file(self, bucket: str, file_id: str) -> None:
        query = sql.SQL("SELECT 1 FROM {} WHERE bucket = %s AND file_id = %s").format(
            sql.Identifier(FILES_TABLE)
        )
        with self._translate_errors(f"get file {bucket}/{file_id}"), self.conn.cursor() as cur:
            cur.execute(query, (bucket, file_id))
            row = cur.fetchone()
        if row is None:
            raise EntityNotFoundError(f"File {bucket}/{file_id} not found")

    def get_file_view(self, bucket: str, file_id: str) -> str:
        self._require_file(bucket, file_id)
        return f"{self.file_base_url}/{bucket}/{file_id}/view"

    def get_file_download(self, bucket: str, file_id: str) -> str:
        self._require_file(bucket, file_id)
        return f"{self.file_base_url}/{bucket}/{file_id}/download"

    def close(self) -> None:
        """Close the connection."""
        self.conn.close()
