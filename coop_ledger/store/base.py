"""Document store interface consumed by the ledger."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

Document = dict[str, Any]


class DocumentStore(ABC):
    """Generic document database with single-document atomicity.

    Documents are plain dicts carrying their identifier under ``"id"``.
    ``update_document`` accepts an ``expected`` mapping and only writes when
    every expected field still holds the given value, which is how the ledger
    does compare-and-set across requests.
    """

    @abstractmethod
    def list_documents(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str = "created_at",
        descending: bool = True,
        limit: int | None = None,
    ) -> list[Document]:
        """List documents matching all equality ``filters``."""

    @abstractmethod
    def get_document(self, collection: str, document_id: str) -> Document:
        """Fetch one document; raise EntityNotFoundError if absent."""

    @abstractmethod
    def create_document(
        self, collection: str, document_id: str | None, fields: dict[str, Any]
    ) -> Document:
        """Create a document, generating an id when ``document_id`` is None.

        Raises ConflictError if a document with the id already exists.
        """

    @abstractmethod
    def update_document(
        self,
        collection: str,
        document_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> Document:
        """Merge ``fields`` into a document.

        Raises EntityNotFoundError if absent and ConflictError if ``expected``
        no longer matches the stored values.
        """

    @abstractmethod
    def create_file(
        self,
        bucket: str,
        file_id: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        """Store a blob and return its file id."""

    @abstractmethod
    def get_file_view(self, bucket: str, file_id: str) -> str:
        """Return a URL that renders the file inline."""

    @abstractmethod
    def get_file_download(self, bucket: str, file_id: str) -> str:
        """Return a URL that downloads the file."""

    def close(self) -> None:
        """Release connections held by the store."""


def matches(document: Document, expected: dict[str, Any]) -> bool:
    """Check whether every expected field equals the document's value."""
    return all(document.get(key) == value for key, value in expected.items())
