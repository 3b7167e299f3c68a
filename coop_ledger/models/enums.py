"""Enumeration types for cooperative ledger entities."""

from enum import Enum


class MemberStatus(str, Enum):
    PENDING = "Pending"
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class MemberRole(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"


class PaymentStatus(str, Enum):
    """Status shared by savings entries, repayments and registration payments."""

    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    REJECTED = "Rejected"


class PaymentType(str, Enum):
    REGISTRATION = "Registration"
    SAVINGS = "Savings"
    LOAN_REPAYMENT = "Loan_Repayment"


class TransferType(str, Enum):
    ONLINE = "Online"
    OFFLINE = "Offline"


class LoanStatus(str, Enum):
    PENDING_REVIEW = "Pending Review"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    FULLY_REPAID = "Fully Repaid"


class WithdrawalStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
