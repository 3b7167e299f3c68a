"""Member and registration payment models."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from coop_ledger.models.enums import (
    MemberRole,
    MemberStatus,
    PaymentStatus,
    PaymentType,
    TransferType,
)


@dataclass
class Member:
    """Cooperative member.

    Created Pending on signup. Becomes Active only when an admin confirms the
    member's registration payment; an admin may later deactivate it.
    """

    COLLECTION: ClassVar[str] = "members"
    ID_FIELD: ClassVar[str] = "member_id"

    member_id: str
    membership_number: str  # Human-readable, used as payment reference
    full_name: str
    email: str
    phone: str
    status: MemberStatus
    role: MemberRole
    join_date: datetime
    created_at: datetime
    activated_at: datetime | None = None
    deactivated_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE


@dataclass
class RegistrationPayment:
    """One-time registration fee payment that gates membership activation."""

    COLLECTION: ClassVar[str] = "registration_payments"
    ID_FIELD: ClassVar[str] = "payment_id"

    payment_id: str
    member_id: str
    member_name: str
    membership_number: str
    amount: Decimal
    status: PaymentStatus
    transfer_type: TransferType
    created_at: datetime
    payment_type: PaymentType = PaymentType.REGISTRATION
    bank_account_number: str = ""
    proof_file_id: str | None = None
    rejection_reason: str | None = None
    confirmed_at: datetime | None = None
    rejected_at: datetime | None = None
    updated_at: datetime | None = None
