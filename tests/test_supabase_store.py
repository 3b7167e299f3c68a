"""Tests for SupabaseDocumentStore with a mocked supabase client."""

from unittest.mock import MagicMock

import httpx
import pytest
from postgrest.exceptions import APIError
from storage3.utils import StorageException

from coop_ledger.exceptions import (
    ConfigurationError,
    ConflictError,
    EntityNotFoundError,
    InvalidInputError,
    StoreUnavailableError,
)
from coop_ledger.store.supabase import SupabaseDocumentStore


def make_query(*results: list) -> MagicMock:
    """Query builder mock whose filter methods chain and whose execute returns ``results`` in turn."""
    query = MagicMock()
    for name in ("select", "eq", "is_", "order", "limit", "update", "insert"):
        getattr(query, name).return_value = query
    query.execute.side_effect = [MagicMock(data=data) for data in results]
    return query


def api_error(code: str, message: str = "error") -> APIError:
    return APIError({"message": message, "code": code, "hint": None, "details": None})


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def store(client: MagicMock) -> SupabaseDocumentStore:
    return SupabaseDocumentStore(client=client, signed_url_ttl=600)


class TestInit:
    """Tests for client construction."""

    def test_requires_url_and_key(self) -> None:
        with pytest.raises(ConfigurationError):
            SupabaseDocumentStore(url="https://x.supabase.co", key=None)


class TestDocuments:
    """Tests for table operations."""

    def test_get_document(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        query = make_query([{"id": "m-1", "full_name": "Ada"}])
        client.table.return_value = query

        assert store.get_document("members", "m-1")["full_name"] == "Ada"
        client.table.assert_called_with("members")
        query.eq.assert_called_with("id", "m-1")

    def test_get_missing(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        client.table.return_value = make_query([])

        with pytest.raises(EntityNotFoundError):
            store.get_document("members", "m-404")

    def test_list_filters(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        query = make_query([{"id": "a"}])
        client.table.return_value = query

        docs = store.list_documents(
            "savings_entries", {"member_id": "m-1", "withdrawal_id": None}, limit=10
        )

        assert docs == [{"id": "a"}]
        query.eq.assert_called_with("member_id", "m-1")
        query.is_.assert_called_with("withdrawal_id", "null")
        query.order.assert_called_with("created_at", desc=True)
        query.limit.assert_called_with(10)

    def test_create_document(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        query = make_query([{"id": "m-1", "full_name": "Ada"}])
        client.table.return_value = query

        doc = store.create_document("members", "m-1", {"full_name": "Ada"})

        assert doc == {"id": "m-1", "full_name": "Ada"}
        query.insert.assert_called_once_with({"full_name": "Ada", "id": "m-1"})

    def test_create_duplicate(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        query = make_query()
        query.execute.side_effect = api_error("23505", "duplicate key value")
        client.table.return_value = query

        with pytest.raises(ConflictError):
            store.create_document("members", "m-1", {})

    def test_missing_table(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        query = make_query()
        query.execute.side_effect = api_error("42P01", "relation does not exist")
        client.table.return_value = query

        with pytest.raises(ConfigurationError):
            store.list_documents("members")

    def test_other_api_error_is_unavailable(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        query = make_query()
        query.execute.side_effect = api_error("PGRST000", "could not connect")
        client.table.return_value = query

        with pytest.raises(StoreUnavailableError):
            store.list_documents("members")

    def test_transport_error_is_unavailable(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        query = make_query()
        query.execute.side_effect = httpx.ConnectTimeout("timed out")
        client.table.return_value = query

        with pytest.raises(StoreUnavailableError):
            store.get_document("members", "m-1")

    @pytest.mark.parametrize(
        "code, expected",
        [
            ("22P02", InvalidInputError),
            ("23502", InvalidInputError),
            ("42703", ConfigurationError),
            ("PGRST116", InvalidInputError),
            ("PGRST301", ConfigurationError),
            ("401", ConfigurationError),
            ("40001", StoreUnavailableError),
            ("57P01", StoreUnavailableError),
            ("503", StoreUnavailableError),
        ],
    )
    def test_api_error_classification(
        self, store: SupabaseDocumentStore, client: MagicMock, code: str, expected: type
    ) -> None:
        """Only faults that can clear on their own are reported as retryable."""
        query = make_query()
        query.execute.side_effect = api_error(code)
        client.table.return_value = query

        with pytest.raises(expected) as excinfo:
            store.list_documents("members")
        assert excinfo.value.retryable is (expected is StoreUnavailableError)

    def test_conditional_update(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        query = make_query([{"id": "w-1", "status": "Approved"}])
        client.table.return_value = query

        doc = store.update_document(
            "withdrawal_requests", "w-1", {"status": "Approved"}, expected={"status": "Pending"}
        )

        assert doc["status"] == "Approved"
        query.update.assert_called_once_with({"status": "Approved"})
        eq_calls = [c.args for c in query.eq.call_args_list]
        assert eq_calls == [("id", "w-1"), ("status", "Pending")]

    def test_update_precondition_failed(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        # Update touches no row; follow-up read finds it
        client.table.return_value = make_query([], [{"id": "w-1", "status": "Approved"}])

        with pytest.raises(ConflictError):
            store.update_document(
                "withdrawal_requests", "w-1", {"status": "Approved"}, expected={"status": "Pending"}
            )

    def test_update_missing_row(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        client.table.return_value = make_query([], [])

        with pytest.raises(EntityNotFoundError):
            store.update_document("withdrawal_requests", "w-404", {"status": "Rejected"})


class TestFiles:
    """Tests for Supabase Storage operations."""

    def test_create_file(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        bucket = client.storage.from_.return_value

        assert store.create_file("proofs", "f-1", b"png", "image/png") == "f-1"
        client.storage.from_.assert_called_with("proofs")
        bucket.upload.assert_called_once_with(
            path="f-1", file=b"png", file_options={"content-type": "image/png"}
        )

    def test_upload_failure(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        client.storage.from_.return_value.upload.side_effect = StorageException("bucket unavailable")

        with pytest.raises(StoreUnavailableError):
            store.create_file("proofs", "f-1", b"png")

    def test_view_url(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        client.storage.from_.return_value.get_public_url.return_value = "https://cdn/proofs/f-1"

        assert store.get_file_view("proofs", "f-1") == "https://cdn/proofs/f-1"

    def test_download_url(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        bucket = client.storage.from_.return_value
        bucket.create_signed_url.return_value = {"signedURL": "https://cdn/signed"}

        assert store.get_file_download("proofs", "f-1") == "https://cdn/signed"
        bucket.create_signed_url.assert_called_once_with("f-1", 600, options={"download": True})

    def test_download_url_missing(self, store: SupabaseDocumentStore, client: MagicMock) -> None:
        client.storage.from_.return_value.create_signed_url.return_value = {}

        with pytest.raises(EntityNotFoundError):
            store.get_file_download("proofs", "f-404")
