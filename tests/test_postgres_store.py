"""Tests for PostgresDocumentStore with a mocked psycopg connection."""

from unittest.mock import MagicMock, patch

import psycopg
import pytest

from coop_ledger.exceptions import (
    ConfigurationError,
    ConflictError,
    EntityNotFoundError,
    StoreUnavailableError,
)
from coop_ledger.store.postgres import PostgresDocumentStore


@pytest.fixture
def conn() -> MagicMock:
    return MagicMock()


@pytest.fixture
def cursor(conn: MagicMock) -> MagicMock:
    return conn.cursor.return_value.__enter__.return_value


@pytest.fixture
def store(conn: MagicMock) -> PostgresDocumentStore:
    with patch("coop_ledger.store.postgres.psycopg.connect", return_value=conn):
        return PostgresDocumentStore("postgresql://u:p@localhost/coop", timeout_seconds=2.0)


class TestConnect:
    """Tests for connection setup."""

    def test_connect_options(self, conn: MagicMock) -> None:
        with patch("coop_ledger.store.postgres.psycopg.connect", return_value=conn) as connect:
            PostgresDocumentStore("postgresql://u:p@localhost/coop", timeout_seconds=2.5)

        connect.assert_called_once_with(
            "postgresql://u:p@localhost/coop",
            autocommit=True,
            connect_timeout=2,
            options="-c statement_timeout=2500",
        )

    def test_connect_failure(self) -> None:
        with patch(
            "coop_ledger.store.postgres.psycopg.connect",
            side_effect=psycopg.OperationalError("connection refused"),
        ):
            with pytest.raises(StoreUnavailableError, match="Cannot connect"):
                PostgresDocumentStore("postgresql://u:p@localhost/coop")


class TestDocuments:
    """Tests for document operations."""

    def test_get_document(self, store: PostgresDocumentStore, cursor: MagicMock) -> None:
        cursor.fetchone.return_value = ({"id": "m-1", "full_name": "Ada"},)

        assert store.get_document("members", "m-1") == {"id": "m-1", "full_name": "Ada"}
        assert cursor.execute.call_args[0][1] == ("m-1",)

    def test_get_missing(self, store: PostgresDocumentStore, cursor: MagicMock) -> None:
        cursor.fetchone.return_value = None

        with pytest.raises(EntityNotFoundError):
            store.get_document("members", "m-404")

    def test_list_uses_containment_filter(self, store: PostgresDocumentStore, cursor: MagicMock) -> None:
        cursor.fetchall.return_value = [({"id": "a"},), ({"id": "b"},)]

        docs = store.list_documents("savings_entries", {"member_id": "m-1", "status": "Confirmed"}, limit=5)

        assert [d["id"] for d in docs] == ["a", "b"]
        params = cursor.execute.call_args[0][1]
        assert params[0].obj == {"member_id": "m-1", "status": "Confirmed"}

    def test_create_document(self, store: PostgresDocumentStore, cursor: MagicMock) -> None:
        doc = store.create_document("members", "m-1", {"full_name": "Ada"})

        assert doc == {"full_name": "Ada", "id": "m-1"}
        document_id, payload = cursor.execute.call_args[0][1]
        assert document_id == "m-1"
        assert payload.obj == doc

    def test_create_generates_id(self, store: PostgresDocumentStore, cursor: MagicMock) -> None:
        doc = store.create_document("members", None, {})

        assert len(doc["id"]) == 32

    def test_create_duplicate(self, store: PostgresDocumentStore, cursor: MagicMock) -> None:
        cursor.execute.side_effect = psycopg.errors.UniqueViolation("duplicate key")

        with pytest.raises(ConflictError):
            store.create_document("members", "m-1", {})

    def test_missing_table(self, store: PostgresDocumentStore, cursor: MagicMock) -> None:
        cursor.execute.side_effect = psycopg.errors.UndefinedTable("no such table")

        with pytest.raises(ConfigurationError, match="ensure_schema"):
            store.list_documents("members")

    def test_operational_error(self, store: PostgresDocumentStore, cursor: MagicMock) -> None:
        cursor.execute.side_effect = psycopg.OperationalError("server closed the connection")

        with pytest.raises(StoreUnavailableError):
            store.get_document("members", "m-1")

    def test_conditional_update(self, store: PostgresDocumentStore, cursor: MagicMock) -> None:
        cursor.fetchone.return_value = ({"id": "l-1", "current_balance": "40.00"},)

        doc = store.update_document(
            "loan_requests", "l-1", {"current_balance": "40.00"},
            expected={"current_balance": "100.00"},
        )

        assert doc["current_balance"] == "40.00"
        fields, document_id, expected = cursor.execute.call_args[0][1]
        assert fields.obj == {"current_balance": "40.00"}
        assert document_id == "l-1"
        assert expected.obj == {"current_balance": "100.00"}

    def test_update_precondition_failed(self, store: PostgresDocumentStore, cursor: MagicMock) -> None:
        # UPDATE matches nothing, follow-up read finds the row
        cursor.fetchone.side_effect = [None, ({"id": "l-1", "current_balance": "90.00"},)]

        with pytest.raises(ConflictError):
            store.update_document(
                "loan_requests", "l-1", {"current_balance": "40.00"},
                expected={"current_balance": "100.00"},
            )

    def test_update_missing_row(self, store: PostgresDocumentStore, cursor: MagicMock) -> None:
        cursor.fetchone.side_effect = [None, None]

        with pytest.raises(EntityNotFoundError):
            store.update_document("loan_requests", "l-404", {"status": "Rejected"})


class TestFiles:
    """Tests for file storage."""

    def test_create_file(self, store: PostgresDocumentStore, cursor: MagicMock) -> None:
        assert store.create_file("proofs", "f-1", b"png", "image/png") == "f-1"
        assert cursor.execute.call_args[0][1] == ("proofs", "f-1", b"png", "image/png")

    def test_file_urls(self, store: PostgresDocumentStore, cursor: MagicMock) -> None:
        cursor.fetchone.return_value = (1,)

        assert store.get_file_view("proofs", "f-1") == "/files/proofs/f-1/view"
        assert store.get_file_download("proofs", "f-1") == "/files/proofs/f-1/download"

    def test_missing_file(self, store: PostgresDocumentStore, cursor: MagicMock) -> None:
        cursor.fetchone.return_value = None

        with pytest.raises(EntityNotFoundError):
            store.get_file_view("proofs", "f-404")


class TestSchema:
    """Tests for ensure_schema and close."""

    def test_ensure_schema(self, store: PostgresDocumentStore, cursor: MagicMock) -> None:
        store.ensure_schema(["members", "loan_requests"])

        # One table per collection plus the files table
        assert cursor.execute.call_count == 3

    def test_close(self, store: PostgresDocumentStore, conn: MagicMock) -> None:
        store.close()
        conn.close.assert_called_once()
