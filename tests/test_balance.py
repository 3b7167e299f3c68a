"""Tests for the savings balance calculator."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from coop_ledger.cooperative import Cooperative
from coop_ledger.exceptions import StoreUnavailableError
from coop_ledger.ledger.balance import sum_confirmed
from coop_ledger.models import Member, PaymentStatus, SavingsEntry

NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)


def entry(amount: str, status: PaymentStatus = PaymentStatus.CONFIRMED) -> SavingsEntry:
    return SavingsEntry("e", "m-1", "Ada", Decimal(amount), status, "d", NOW)


def write_entry(store, member_id: str, amount: str, status: str = "Confirmed", created_at: str = "2024-01-01T00:00:00+00:00") -> None:
    store.create_document(
        "savings_entries",
        None,
        {
            "member_id": member_id,
            "member_name": "Ada",
            "amount": amount,
            "status": status,
            "description": "seeded",
            "created_at": created_at,
        },
    )


class TestSumConfirmed:
    """Tests for sum_confirmed."""

    def test_only_confirmed_count(self) -> None:
        entries = [
            entry("100.00"),
            entry("50.00", PaymentStatus.PENDING),
            entry("25.00", PaymentStatus.REJECTED),
            entry("-30.00"),
        ]

        assert sum_confirmed(entries) == Decimal("70.00")

    def test_additive_over_disjoint_sets(self) -> None:
        first = [entry("100.00"), entry("-20.00")]
        second = [entry("5.50"), entry("7.25", PaymentStatus.PENDING)]

        assert sum_confirmed(first + second) == sum_confirmed(first) + sum_confirmed(second)

    def test_empty(self) -> None:
        assert sum_confirmed([]) == Decimal("0.00")


class TestComputeBalance:
    """Tests for BalanceCalculator.compute_balance."""

    def test_no_entries(self, coop: Cooperative, active_member: Member) -> None:
        assert coop.balance.compute_balance(active_member.member_id) == Decimal("0.00")

    def test_confirmed_deposits_and_debits(self, coop: Cooperative, store) -> None:
        write_entry(store, "m-1", "500.00")
        write_entry(store, "m-1", "250.00", status="Pending")
        write_entry(store, "m-1", "-200.00")
        write_entry(store, "m-2", "999.00")

        assert coop.balance.compute_balance("m-1") == Decimal("300.00")

    def test_clamped_at_zero(self, coop: Cooperative, store) -> None:
        write_entry(store, "m-1", "100.00")
        write_entry(store, "m-1", "-150.00")

        assert coop.balance.compute_balance("m-1") == Decimal("0.00")

    def test_reflects_new_confirmation(self, coop: Cooperative, active_member: Member) -> None:
        member_id = active_member.member_id
        pending = coop.savings.submit_deposit(member_id, "80")
        before = coop.balance.compute_balance(member_id)

        coop.savings.confirm_deposit(pending.entry_id)

        assert before == Decimal("0.00")
        assert coop.balance.compute_balance(member_id) == Decimal("80.00")

    def test_store_failure_propagates(self, coop: Cooperative) -> None:
        with patch.object(
            coop.store, "list_documents", side_effect=StoreUnavailableError("timeout")
        ):
            with pytest.raises(StoreUnavailableError):
                coop.balance.compute_balance("m-1")


class TestLedgerHistory:
    """Tests for BalanceCalculator.ledger_history."""

    def test_running_balance_oldest_first(self, coop: Cooperative, store) -> None:
        write_entry(store, "m-1", "100.00", created_at="2024-01-01T00:00:00+00:00")
        write_entry(store, "m-1", "-40.00", created_at="2024-01-03T00:00:00+00:00")
        write_entry(store, "m-1", "60.00", created_at="2024-01-02T00:00:00+00:00")
        write_entry(store, "m-1", "10.00", status="Pending", created_at="2024-01-04T00:00:00+00:00")

        history = coop.balance.ledger_history("m-1")

        assert [(e.amount, running) for e, running in history] == [
            (Decimal("100.00"), Decimal("100.00")),
            (Decimal("60.00"), Decimal("160.00")),
            (Decimal("-40.00"), Decimal("120.00")),
        ]
