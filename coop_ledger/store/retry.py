"""Bounded retry around a document store."""

import logging
import time
from typing import Any, Callable, TypeVar

from coop_ledger.exceptions import ConflictError, StoreUnavailableError
from coop_ledger.store.base import Document, DocumentStore, matches

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryingDocumentStore(DocumentStore):
    """Retry transient store faults a bounded number of times.

    Only StoreUnavailableError is retried. Business errors (not found,
    conflicts) surface immediately. Writes that are not idempotent, namely
    ``create_document`` without an explicit id and ``create_file``, are never
    retried because a lost response could otherwise create a duplicate.
    A conditional update whose lost first attempt did commit is recognised on
    the retry and returns the stored document instead of a ConflictError.

    Parameters
    ----------
    inner : DocumentStore
        Store that performs the actual calls.
    max_retries : int
        Extra attempts after the first failure (default 1).
    backoff_seconds : float
        Sleep before retry ``n`` is ``backoff_seconds * n``.
    sleep : Callable[[float], None]
        Injected for tests.
    """

    def __init__(
        self,
        inner: DocumentStore,
        max_retries: int = 1,
        backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.inner = inner
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    def _call(self, name: str, func: Callable[[], T], retry: bool = True) -> T:
        attempts = 1 + (self.max_retries if retry else 0)
        for attempt in range(1, attempts + 1):
            try:
                return func()
            except StoreUnavailableError as e:
                if attempt >= attempts:
                    logger.error("Store %s failed after %d attempt(s): %s", name, attempt, e)
                    raise
                delay = self.backoff_seconds * attempt
                logger.warning(
                    "Store %s unavailable (attempt %d/%d), retrying in %.2fs: %s",
                    name, attempt, attempts, delay, e,
                )
                self._sleep(delay)
        raise AssertionError("unreachable")

    def list_documents(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str = "created_at",
        descending: bool = True,
        limit: int | None = None,
    ) -> list[Document]:
        return self._call(
            "list_documents",
            lambda: self.inner.list_documents(collection, filters, order_by, descending, limit),
        )

    def get_document(self, collection: str, document_id: str) -> Document:
        return self._call("get_document", lambda: self.inner.get_document(collection, document_id))

    def create_document(
        self, collection: str, document_id: str | None, fields: dict[str, Any]
    ) -> Document:
        return self._call(
            "create_document",
            lambda: self.inner.create_document(collection, document_id, fields),
            retry=document_id is not None,
        )

    def update_document(
        self,
        collection: str,
        document_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> Document:
        """Retry a conditional update, recognising a lost but committed first attempt.

        When an attempt fails with StoreUnavailableError its write may still
        have committed. The retry then sees its own write and fails the
        precondition; if the stored document already holds ``fields`` that
        ConflictError is our own write and the document is returned instead.
        """
        faulted = False

        def attempt() -> Document:
            nonlocal faulted
            try:
                return self.inner.update_document(collection, document_id, fields, expected)
            except StoreUnavailableError:
                faulted = True
                raise
            except ConflictError:
                if not faulted:
                    raise
                current = self.inner.get_document(collection, document_id)
                if not matches(current, fields):
                    raise
                logger.warning(
                    "Update of %s/%s committed before its response was lost",
                    collection, document_id,
                )
                return current

        return self._call("update_document", attempt)

    def create_file(
        self,
        bucket: str,
        file_id: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        return self._call(
            "create_file",
            lambda: self.inner.create_file(bucket, file_id, content, content_type),
            retry=False,
        )

    def get_file_view(self, bucket: str, file_id: str) -> str:
        return self._call("get_file_view", lambda: self.inner.get_file_view(bucket, file_id))

    def get_file_download(self, bucket: str, file_id: str) -> str:
        return self._call(
            "get_file_download", lambda: self.inner.get_file_download(bucket, file_id)
        )

    def close(self) -> None:
        self.inner.close()
