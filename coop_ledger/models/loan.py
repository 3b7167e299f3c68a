"""Loan request and repayment models."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import ClassVar

from coop_ledger.models.base import CENTS, BankDetails
from coop_ledger.models.enums import LoanStatus, PaymentStatus, PaymentType, TransferType


@dataclass
class LoanRequest:
    """Loan application and its running balance.

    ``current_balance`` mirrors ``approved_amount`` on approval and is
    decremented by confirmed repayments; it always stays within
    ``[0, approved_amount]``.
    """

    COLLECTION: ClassVar[str] = "loan_requests"
    ID_FIELD: ClassVar[str] = "loan_id"

    loan_id: str
    member_id: str
    member_name: str
    requested_amount: Decimal
    approved_amount: Decimal
    current_balance: Decimal
    status: LoanStatus
    purpose: str
    repayment_period: int  # Months
    monthly_income: Decimal
    disbursement: BankDetails
    created_at: datetime  # Submission time
    collateral: str | None = None
    guarantor: str | None = None
    guarantor_contact: str | None = None
    admin_notes: str | None = None
    applied_repayment_ids: list[str] = field(default_factory=list)
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    last_repayment_date: datetime | None = None
    fully_repaid_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def monthly_installment(self) -> Decimal:
        """Flat monthly installment over the repayment period (no interest)."""
        if self.repayment_period <= 0:
            return Decimal("0.00")
        return (self.approved_amount / self.repayment_period).quantize(
            CENTS, rounding=ROUND_HALF_UP
        )

    @property
    def total_repaid(self) -> Decimal:
        if self.status not in (LoanStatus.APPROVED, LoanStatus.FULLY_REPAID):
            return Decimal("0.00")
        return self.approved_amount - self.current_balance


@dataclass
class LoanRepayment:
    """Member-submitted repayment against an approved loan."""

    COLLECTION: ClassVar[str] = "loan_repayments"
    ID_FIELD: ClassVar[str] = "repayment_id"

    repayment_id: str
    loan_request_id: str
    member_id: str
    member_name: str
    amount: Decimal
    status: PaymentStatus
    created_at: datetime
    payment_type: PaymentType = PaymentType.LOAN_REPAYMENT
    transfer_type: TransferType = TransferType.OFFLINE
    proof_file_id: str | None = None
    rejection_reason: str | None = None
    confirmed_at: datetime | None = None
    rejected_at: datetime | None = None
    updated_at: datetime | None = None
