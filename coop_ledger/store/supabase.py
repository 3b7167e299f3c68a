"""Supabase-backed document store (hosted Postgres tables plus Storage)."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

import httpx
from postgrest.exceptions import APIError
from storage3.utils import StorageException
from supabase import Client, ClientOptions, create_client

from coop_ledger.exceptions import (
    ConfigurationError,
    ConflictError,
    EntityNotFoundError,
    InvalidInputError,
    LedgerError,
    StoreUnavailableError,
)
from coop_ledger.store.base import Document, DocumentStore

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
UNDEFINED_TABLE = "42P01"

# SQLSTATE classes worth retrying: transaction rollback (serialization,
# deadlock), connection, insufficient resources, operator intervention, system
TRANSIENT_SQLSTATE_CLASSES = ("40", "08", "53", "57", "58")
# SQLSTATE classes caused by the values sent: data exception, integrity
INPUT_SQLSTATE_CLASSES = ("22", "23")


class SupabaseDocumentStore(DocumentStore):
    """Document store over a Supabase project.

    Collections map to tables whose columns are the document fields, with
    ``id`` as primary key. Conditional updates chain the expected values as
    ``eq`` filters on the UPDATE itself, so PostgREST applies them in one
    statement; an empty result means the precondition failed.

    Parameters
    ----------
    url : str
        Project URL.
    key : str
        Service role or anon key.
    timeout_seconds : float
        HTTP timeout for table and storage calls.
    signed_url_ttl : int
        Lifetime in seconds of download URLs.
    client : Client | None
        Pre-built client (tests).
    """

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        timeout_seconds: float = 10.0,
        signed_url_ttl: int = 3600,
        client: Client | None = None,
    ) -> None:
        if client is None:
            if not url or not key:
                raise ConfigurationError("Supabase store requires SUPABASE_URL and SUPABASE_KEY")
            client = create_client(
                url,
                key,
                options=ClientOptions(
                    postgrest_client_timeout=timeout_seconds,
                    storage_client_timeout=int(timeout_seconds),
                ),
            )
        self.client = client
        self.signed_url_ttl = signed_url_ttl

    @contextmanager
    def _translate_errors(self, what: str) -> Iterator[None]:
        try:
            yield
        except APIError as e:
            raise _api_error(what, e) from e
        except StorageException as e:
            raise StoreUnavailableError(f"{what}: {e}") from e
        except httpx.HTTPError as e:
            raise StoreUnavailableError(f"{what}: {e}") from e

    def list_documents(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str = "created_at",
        descending: bool = True,
        limit: int | None = None,
    ) -> list[Document]:
        with self._translate_errors(f"list {collection}"):
            query = self.client.table(collection).select("*")
            for field_name, value in (filters or {}).items():
                query = _filter(query, field_name, value)
            query = query.order(order_by, desc=descending)
            if limit is not None:
                query = query.limit(limit)
            response = query.execute()
        return list(response.data or [])

    def get_document(self, collection: str, document_id: str) -> Document:
        with self._translate_errors(f"get {collection}/{document_id}"):
            response = (
                self.client.table(collection).select("*").eq("id", document_id).limit(1).execute()
            )
        if not response.data:
            raise EntityNotFoundError(f"{collection}/{document_id} not found")
        return response.data[0]

    def create_document(
        self, collection: str, document_id: str | None, fields: dict[str, Any]
    ) -> Document:
        document_id = document_id or uuid.uuid4().hex
        row = {**fields, "id": document_id}
        with self._translate_errors(f"create {collection}/{document_id}"):
            response = self.client.table(collection).insert(row).execute()
        return response.data[0] if response.data else row

    def update_document(
        self,
        collection: str,
        document_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> Document:
        with self._translate_errors(f"update {collection}/{document_id}"):
            query = self.client.table(collection).update(fields).eq("id", document_id)
            for field_name, value in (expected or {}).items():
                query = _filter(query, field_name, value)
            response = query.execute()
        if response.data:
            return response.data[0]
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
        with self._translate_errors(f"upload {bucket}/{file_id}"):
            self.client.storage.from_(bucket).upload(
                path=file_id,
                file=content,
                file_options={"content-type": content_type},
            )
        logger.debug("Uploaded %s/%s (%d bytes)", bucket, file_id, len(content))
        return file_id

    def get_file_view(self, bucket: str, file_id: str) -> str:
        with self._translate_errors(f"view {bucket}/{file_id}"):
            return self.client.storage.from_(bucket).get_public_url(file_id)

    def get_file_download(self, bucket: str, file_id: str) -> str:
        with self._translate_errors(f"download {bucket}/{file_id}"):
            signed = self.client.storage.from_(bucket).create_signed_url(
                file_id, self.signed_url_ttl, options={"download": True}
            )
        # storage3 has returned both spellings across releases
        url = signed.get("signedURL") or signed.get("signedUrl")
        if not url:
            raise EntityNotFoundError(f"File {bucket}/{file_id} not found")
        return url


def _filter(query: Any, field_name: str, value: Any) -> Any:
    if value is None:
        return query.is_(field_name, "null")
    return query.eq(field_name, value)


def _api_error(what: str, error: APIError) -> LedgerError:
    """Map a PostgREST error to the ledger hierarchy.

    ``code`` is a SQLSTATE for database errors, ``PGRSTnnn`` for PostgREST's
    own errors, or the HTTP status when the response body was not JSON. Only
    faults that can clear on their own become StoreUnavailableError.
    """
    code = str(error.code or "")
    message = f"{what}: {error.message or code or 'unknown error'}"

    if code == UNIQUE_VIOLATION:
        return ConflictError(f"{what}: already exists")
    if code == UNDEFINED_TABLE:
        return ConfigurationError(f"{what}: table missing")
    if not code:
        return StoreUnavailableError(message)
    if code.isdigit() and len(code) == 3:
        if int(code) >= 500:
            return StoreUnavailableError(message)
        return ConfigurationError(message)
    if code.startswith("PGRST"):
        # PGRST0xx: connection to the database; 1xx: request; 2xx/3xx: schema and auth
        group = code[5:6]
        if group == "0":
            return StoreUnavailableError(message)
        if group == "1":
            return InvalidInputError(message)
        return ConfigurationError(message)
    if code[:2] in TRANSIENT_SQLSTATE_CLASSES:
        return StoreUnavailableError(message)
    if code[:2] in INPUT_SQLSTATE_CLASSES:
        return InvalidInputError(message)
    return ConfigurationError(message)
