"""Pytest configuration and fixtures."""

import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import pytest
from faker import Faker

from coop_ledger.config import LedgerConfig
from coop_ledger.cooperative import Cooperative
from coop_ledger.exceptions import StoreUnavailableError
from coop_ledger.models import BankDetails, Event, LoanRequest, Member
from coop_ledger.sinks.base import EventSink
from coop_ledger.sinks.publisher import EventPublisher
from coop_ledger.store.base import Document, DocumentStore
from coop_ledger.store.memory import MemoryDocumentStore


class FixedClock:
    """Clock that advances one second per call so created_at ordering is stable."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


class CollectingSink(EventSink):
    """Sink that keeps every event in memory."""

    def __init__(self) -> None:
        self.events: list[Event] = []
        self.closed = False

    def write_event(self, event: Event) -> None:
        self.events.append(event)

    def close(self) -> None:
        self.closed = True

    @property
    def types(self) -> list[str]:
        return [event.event_type for event in self.events]


class FlakyStore(MemoryDocumentStore):
    """Memory store that fails chosen writes with StoreUnavailableError.

    ``fail_on(method, collection, times)`` makes the next ``times`` calls of
    ``method`` against ``collection`` raise before touching any data.
    """

    def __init__(self) -> None:
        super().__init__()
        self.failures: dict[tuple[str, str], int] = {}

    def fail_on(self, method: str, collection: str, times: int = 1) -> None:
        self.failures[(method, collection)] = times

    def _maybe_fail(self, method: str, collection: str) -> None:
        remaining = self.failures.get((method, collection), 0)
        if remaining > 0:
            self.failures[(method, collection)] = remaining - 1
            raise StoreUnavailableError(f"injected {method} failure on {collection}")

    def create_document(self, collection: str, document_id: str | None, fields: dict[str, Any]) -> Document:
        self._maybe_fail("create_document", collection)
        return super().create_document(collection, document_id, fields)

    def update_document(
        self,
        collection: str,
        document_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> Document:
        self._maybe_fail("update_document", collection)
        return super().update_document(collection, document_id, fields, expected)


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def fake(seed: int) -> Faker:
    Faker.seed(seed)
    return Faker()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def sink() -> CollectingSink:
    return CollectingSink()


@pytest.fixture
def coop(store: DocumentStore, sink: CollectingSink, clock: FixedClock, seed: int) -> Cooperative:
    """Cooperative over the in-memory store, publishing to a collecting sink."""
    publisher = EventPublisher([sink], clock=clock)
    return Cooperative(
        store,
        config=LedgerConfig(),
        publisher=publisher,
        clock=clock,
        rng=random.Random(seed),
    )


@pytest.fixture
def bank(fake: Faker) -> BankDetails:
    return BankDetails(
        bank_name=f"{fake.last_name()} Bank",
        account_number=fake.numerify("##########"),
        account_name=fake.name(),
    )


@pytest.fixture
def pending_member(coop: Cooperative, fake: Faker) -> Member:
    return coop.membership.register_member(fake.name(), fake.email(), fake.phone_number())


@pytest.fixture
def active_member(coop: Cooperative, pending_member: Member) -> Member:
    """Member whose registration fee was paid and approved."""
    payment = coop.membership.submit_registration_payment(pending_member.member_id, Decimal("50"))
    coop.orchestrator.approve_registration(payment.payment_id)
    return coop.membership.get_member(pending_member.member_id)


@pytest.fixture
def deposit(coop: Cooperative):
    """Submit and confirm a savings deposit."""

    def _deposit(member_id: str, amount: str | int) -> None:
        entry = coop.savings.submit_deposit(member_id, amount)
        coop.savings.confirm_deposit(entry.entry_id)

    return _deposit


@pytest.fixture
def approved_loan(coop: Cooperative, active_member: Member, bank: BankDetails):
    """Submit a loan for the active member and approve it."""

    def _approved_loan(requested: str = "5000", approved: str = "4000") -> LoanRequest:
        loan = coop.loans.submit(
            active_member.member_id,
            requested,
            purpose="Poultry feed",
            repayment_period=6,
            monthly_income="2500",
            disbursement=bank,
        )
        return coop.loans.approve(loan.loan_id, approved)

    return _approved_loan
