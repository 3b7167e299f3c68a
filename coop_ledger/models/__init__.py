"""Domain models for the cooperative ledger."""

from coop_ledger.models.base import BankDetails, Event, to_money
from coop_ledger.models.enums import (
    LoanStatus,
    MemberRole,
    MemberStatus,
    PaymentStatus,
    PaymentType,
    TransferType,
    WithdrawalStatus,
)
from coop_ledger.models.loan import LoanRepayment, LoanRequest
from coop_ledger.models.member import Member, RegistrationPayment
from coop_ledger.models.savings import SavingsEntry
from coop_ledger.models.withdrawal import WithdrawalRequest

__all__ = [
    "BankDetails",
    "Event",
    "LoanRepayment",
    "LoanRequest",
    "LoanStatus",
    "Member",
    "MemberRole",
    "MemberStatus",
    "PaymentStatus",
    "PaymentType",
    "RegistrationPayment",
    "SavingsEntry",
    "TransferType",
    "WithdrawalRequest",
    "WithdrawalStatus",
    "to_money",
]
