"""Savings ledger entry model."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from coop_ledger.models.enums import PaymentStatus, TransferType


@dataclass
class SavingsEntry:
    """Immutable savings ledger line.

    Positive amounts are member deposits; negative amounts are debits written
    when a withdrawal is approved. Only Confirmed entries count toward the
    member's balance.
    """

    COLLECTION: ClassVar[str] = "savings_entries"
    ID_FIELD: ClassVar[str] = "entry_id"

    entry_id: str
    member_id: str
    member_name: str
    amount: Decimal  # Signed
    status: PaymentStatus
    description: str
    created_at: datetime
    confirmed_at: datetime | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    withdrawal_id: str | None = None  # Set on withdrawal debits
    proof_file_id: str | None = None
    transfer_type: TransferType = TransferType.OFFLINE
    updated_at: datetime | None = None

    @property
    def is_withdrawal(self) -> bool:
        return self.amount < 0
