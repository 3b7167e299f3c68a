"""Savings balance derived from the member's ledger entries."""

import logging
from decimal import Decimal
from typing import Iterable

from coop_ledger.ledger.context import LedgerContext
from coop_ledger.models import PaymentStatus, SavingsEntry

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def sum_confirmed(entries: Iterable[SavingsEntry]) -> Decimal:
    """Sum the signed amounts of Confirmed entries, without clamping."""
    return sum(
        (entry.amount for entry in entries if entry.status == PaymentStatus.CONFIRMED),
        ZERO,
    )


class BalanceCalculator:
    """Compute a member's savings balance from the store.

    The balance is never cached: every call reads the full set of entries,
    so two calls may differ if an entry was confirmed in between. Store faults
    propagate; a failed read never reports a zero balance.
    """

    def __init__(self, ctx: LedgerContext) -> None:
        self.ctx = ctx

    def compute_balance(self, member_id: str) -> Decimal:
        """Return the member's confirmed savings balance, floored at zero."""
        entries = self.ctx.query(SavingsEntry, member_id=member_id)
        total = sum_confirmed(entries)
        if total < ZERO:
            logger.warning(
                "Confirmed entries for member %s sum to %s; reporting 0.00",
                member_id, total,
                extra={"member_id": member_id},
            )
            return ZERO
        return total

    def ledger_history(self, member_id: str) -> list[tuple[SavingsEntry, Decimal]]:
        """Confirmed entries oldest first, each with the running balance after it."""
        entries = self.ctx.query(
            SavingsEntry,
            descending=False,
            member_id=member_id,
            status=PaymentStatus.CONFIRMED,
        )
        history = []
        running = ZERO
        for entry in entries:
            running += entry.amount
            history.append((entry, running))
        return history
