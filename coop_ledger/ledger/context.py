"""Shared plumbing for the ledger services."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, TypeVar

from coop_ledger.config import CollectionsConfig
from coop_ledger.models.serialization import DOCUMENT_ID, from_document, to_document, to_fields
from coop_ledger.sinks.publisher import EventPublisher, utc_now
from coop_ledger.store.base import DocumentStore

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass
class LedgerContext:
    """Store access, clock and event publication used by every service.

    Records are read fresh from the store on every call; nothing here caches
    balances or loan state between operations.
    """

    store: DocumentStore
    collections: CollectionsConfig = field(default_factory=CollectionsConfig)
    clock: Callable[[], datetime] = utc_now
    publisher: EventPublisher = field(default_factory=EventPublisher)
    proof_bucket: str = "payment-proofs"

    def now(self) -> datetime:
        return self.clock()

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    def collection(self, record_type: type) -> str:
        """Resolve the configured collection name for a record type."""
        return getattr(self.collections, record_type.COLLECTION)

    def load(self, record_type: type[R], record_id: str) -> R:
        """Read one record; raises EntityNotFoundError when absent."""
        document = self.store.get_document(self.collection(record_type), record_id)
        return from_document(record_type, document)

    def query(
        self,
        record_type: type[R],
        descending: bool = True,
        limit: int | None = None,
        **filters: Any,
    ) -> list[R]:
        """List records whose fields equal ``filters``, newest first by default."""
        documents = self.store.list_documents(
            self.collection(record_type),
            filters=to_fields(**filters) or None,
            descending=descending,
            limit=limit,
        )
        return [from_document(record_type, doc) for doc in documents]

    def insert(self, record: R, record_id: str | None = None) -> R:
        """Create a record.

        Without ``record_id`` the store assigns the id, and the create is not
        retried on a transient fault. A deterministic ``record_id`` makes the
        create idempotent: a second attempt fails with ConflictError.
        """
        document = to_document(record)
        document.pop(DOCUMENT_ID, None)
        created = self.store.create_document(self.collection(type(record)), record_id, document)
        return from_document(type(record), created)

    def update(
        self,
        record_type: type[R],
        record_id: str,
        expected: dict[str, Any],
        **changes: Any,
    ) -> R:
        """Compare-and-set update: write ``changes`` only if ``expected`` still holds."""
        document = self.store.update_document(
            self.collection(record_type),
            record_id,
            to_fields(updated_at=self.now(), **changes),
            expected=to_fields(**expected),
        )
        return from_document(record_type, document)

    def store_proof(
        self,
        owner_id: str,
        proof: bytes | None,
        content_type: str = "application/octet-stream",
    ) -> str | None:
        """Upload an optional proof-of-payment blob and return its file id."""
        if proof is None:
            return None
        file_id = f"{owner_id}-{self.new_id()}"
        self.store.create_file(self.proof_bucket, file_id, proof, content_type)
        logger.debug("Stored proof %s (%d bytes)", file_id, len(proof))
        return file_id

    def publish(
        self,
        event_type: str,
        subject: str,
        data: dict[str, Any],
        member_id: str | None = None,
    ) -> None:
        self.publisher.publish(event_type, subject, to_fields(**data), member_id=member_id)
