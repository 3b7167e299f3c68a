"""Withdrawal request model."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from coop_ledger.models.base import BankDetails
from coop_ledger.models.enums import WithdrawalStatus


@dataclass
class WithdrawalRequest:
    """Request to pay part of a member's savings out to a bank account.

    The request itself never counts toward the balance; approval writes a
    negative SavingsEntry that does.
    """

    COLLECTION: ClassVar[str] = "withdrawal_requests"
    ID_FIELD: ClassVar[str] = "withdrawal_id"

    withdrawal_id: str
    member_id: str
    member_name: str
    membership_number: str
    requested_amount: Decimal
    bank: BankDetails
    status: WithdrawalStatus
    available_balance: Decimal  # Snapshot at request time, audit only
    created_at: datetime
    admin_notes: str | None = None
    rejection_reason: str | None = None
    processed_at: datetime | None = None
    updated_at: datetime | None = None
