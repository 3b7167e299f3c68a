"""In-memory document store for tests, demos and local development."""

import copy
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any

from coop_ledger.exceptions import ConflictError, EntityNotFoundError
from coop_ledger.store.base import Document, DocumentStore, matches


@dataclass
class StoredFile:
    """Blob held by the in-memory store."""

    content: bytes
    content_type: str


@dataclass
class MemoryDocumentStore(DocumentStore):
    """In-memory store keeping collections as dicts of documents.

    All operations take a single lock, so a compare-and-set update is atomic
    with respect to concurrent callers in the same process. Documents are
    copied on the way in and out; callers never share references with the
    store.
    """

    collections: dict[str, dict[str, Document]] = field(default_factory=dict)
    files: dict[tuple[str, str], StoredFile] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def list_documents(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str = "created_at",
        descending: bool = True,
        limit: int | None = None,
    ) -> list[Document]:
        with self._lock:
            documents = [
                copy.deepcopy(doc)
                for doc in self.collections.get(collection, {}).values()
                if matches(doc, filters or {})
            ]
        documents.sort(key=lambda doc: str(doc.get(order_by) or ""), reverse=descending)
        if limit is not None:
            documents = documents[:limit]
        return documents

    def get_document(self, collection: str, document_id: str) -> Document:
        with self._lock:
            doc = self.collections.get(collection, {}).get(document_id)
            if doc is None:
                raise EntityNotFoundError(f"{collection}/{document_id} not found")
            return copy.deepcopy(doc)

    def create_document(
        self, collection: str, document_id: str | None, fields: dict[str, Any]
    ) -> Document:
        document_id = document_id or uuid.uuid4().hex
        with self._lock:
            docs = self.collections.setdefault(collection, {})
            if document_id in docs:
                raise ConflictError(f"{collection}/{document_id} already exists")
            doc = copy.deepcopy(fields)
            doc["id"] = document_id
            docs[document_id] = doc
            return copy.deepcopy(doc)

    def update_document(
        self,
        collection: str,
        document_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> Document:
        with self._lock:
            doc = self.collections.get(collection, {}).get(document_id)
            if doc is None:
                raise EntityNotFoundError(f"{collection}/{document_id} not found")
            if expected and not matches(doc, expected):
                raise ConflictError(
                    f"{collection}/{document_id} changed since it was read "
                    f"(expected {expected})"
                )
            doc.update(copy.deepcopy(fields))
            doc["id"] = document_id
            return copy.deepcopy(doc)

    def create_file(
        self,
        bucket: str,
        file_id: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        with self._lock:
            if (bucket, file_id) in self.files:
                raise ConflictError(f"File {bucket}/{file_id} already exists")
            self.files[(bucket, file_id)] = StoredFile(bytes(content), content_type)
        return file_id

    def get_file_view(self, bucket: str, file_id: str) -> str:
        self._require_file(bucket, file_id)
        return f"memory://{bucket}/{file_id}?mode=view"

    def get_file_download(self, bucket: str, file_id: str) -> str:
        self._require_file(bucket, file_id)
        return f"memory://{bucket}/{file_id}?mode=download"

    def _require_file(self, bucket: str, file_id: str) -> None:
        with self._lock:
            if (bucket, file_id) not in self.files:
                raise EntityNotFoundError(f"File {bucket}/{file_id} not found")

    def summary(self) -> dict[str, int]:
        """Return document counts per collection."""
        with self._lock:
            return {name: len(docs) for name, docs in self.collections.items()}
