"""Document store backends for the ledger."""

from __future__ import annotations

import logging

from coop_ledger.config import LedgerConfig
from coop_ledger.store.base import Document, DocumentStore
from coop_ledger.store.memory import MemoryDocumentStore
from coop_ledger.store.retry import RetryingDocumentStore

logger = logging.getLogger(__name__)

__all__ = [
    "Document",
    "DocumentStore",
    "MemoryDocumentStore",
    "RetryingDocumentStore",
    "create_store",
]


def create_store(config: LedgerConfig) -> DocumentStore:
    """Build the configured backend wrapped in the bounded retry policy.

    Postgres and Supabase backends are imported lazily so the in-memory store
    works without their client libraries being importable.
    """
    store_config = config.store
    store_config.validate()

    inner: DocumentStore
    if store_config.backend == "postgres":
        from coop_ledger.store.postgres import PostgresDocumentStore

        inner = PostgresDocumentStore(
            config.postgres.connection_string,
            timeout_seconds=store_config.timeout_seconds,
            file_base_url=store_config.file_base_url,
        )
    elif store_config.backend == "supabase":
        from coop_ledger.store.supabase import SupabaseDocumentStore

        inner = SupabaseDocumentStore(
            config.supabase.url,
            config.supabase.key,
            timeout_seconds=store_config.timeout_seconds,
            signed_url_ttl=config.supabase.signed_url_ttl,
        )
    else:
        inner = MemoryDocumentStore()

    logger.info(
        "Using %s document store (retries=%d, timeout=%.1fs)",
        store_config.backend, store_config.max_retries, store_config.timeout_seconds,
    )
    return RetryingDocumentStore(
        inner,
        max_retries=store_config.max_retries,
        backoff_seconds=store_config.backoff_seconds,
    )
