"""Dashboard statistics computed from point-in-time store reads."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from coop_ledger.ledger.context import LedgerContext
from coop_ledger.models import (
    LoanRepayment,
    LoanRequest,
    LoanStatus,
    Member,
    MemberStatus,
    PaymentStatus,
    RegistrationPayment,
    SavingsEntry,
    WithdrawalRequest,
    WithdrawalStatus,
)
from coop_ledger.models.base import CENTS

ZERO = Decimal("0.00")


def _total(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, ZERO)


@dataclass
class MemberLoanSummary:
    total_borrowed: Decimal
    total_outstanding: Decimal
    total_repaid: Decimal
    active_loans: int
    requests: int
    repayments: int


@dataclass
class LoanRequestStats:
    total_requests: int
    pending_requests: int
    approved_requests: int
    rejected_requests: int
    fully_repaid_requests: int
    total_approved_amount: Decimal
    pending_amount: Decimal


@dataclass
class PaymentStats:
    """Counts and totals for a payment collection (repayments, registrations)."""

    total: int
    confirmed: int
    pending: int
    rejected: int
    confirmed_amount: Decimal
    pending_amount: Decimal


@dataclass
class SavingsStats:
    total_entries: int
    confirmed_entries: int
    pending_entries: int
    confirmed_total: Decimal  # Deposits minus withdrawal debits
    pending_total: Decimal
    average_deposit: Decimal


@dataclass
class WithdrawalStats:
    total_withdrawals: int
    pending_withdrawals: int
    approved_withdrawals: int
    rejected_withdrawals: int
    approved_amount: Decimal
    pending_amount: Decimal


@dataclass
class RegistrationStats(PaymentStats):
    registration_fee: Decimal = Decimal("50.00")


@dataclass
class AdminStats:
    total_members: int
    active_members: int
    pending_payments: int
    confirmed_payment_total: Decimal


class LedgerStats:
    """Aggregate statistics for member and admin dashboards.

    Every figure comes from a fresh read, so a dashboard shows the store as
    of the call; nothing is cached or incrementally maintained.
    """

    def __init__(self, ctx: LedgerContext, registration_fee: Decimal = Decimal("50")) -> None:
        self.ctx = ctx
        self.registration_fee = registration_fee.quantize(CENTS, rounding=ROUND_HALF_UP)

    def member_loan_summary(self, member_id: str) -> MemberLoanSummary:
        loans = self.ctx.query(LoanRequest, member_id=member_id)
        repayments = self.ctx.query(LoanRepayment, member_id=member_id)
        disbursed = [
            loan for loan in loans
            if loan.status in (LoanStatus.APPROVED, LoanStatus.FULLY_REPAID)
        ]
        return MemberLoanSummary(
            total_borrowed=_total(loan.approved_amount for loan in disbursed),
            total_outstanding=_total(loan.current_balance for loan in disbursed),
            total_repaid=_total(loan.total_repaid for loan in disbursed),
            active_loans=sum(1 for loan in loans if loan.status == LoanStatus.APPROVED),
            requests=len(loans),
            repayments=len(repayments),
        )

    def loan_request_stats(self) -> LoanRequestStats:
        loans = self.ctx.query(LoanRequest)

        def count(status: LoanStatus) -> int:
            return sum(1 for loan in loans if loan.status == status)

        return LoanRequestStats(
            total_requests=len(loans),
            pending_requests=count(LoanStatus.PENDING_REVIEW),
            approved_requests=count(LoanStatus.APPROVED),
            rejected_requests=count(LoanStatus.REJECTED),
            fully_repaid_requests=count(LoanStatus.FULLY_REPAID),
            total_approved_amount=_total(
                loan.approved_amount
                for loan in loans
                if loan.status in (LoanStatus.APPROVED, LoanStatus.FULLY_REPAID)
            ),
            pending_amount=_total(
                loan.requested_amount for loan in loans if loan.status == LoanStatus.PENDING_REVIEW
            ),
        )

    @staticmethod
    def _payment_stats(payments: list) -> dict:
        def of(status: PaymentStatus) -> list:
            return [p for p in payments if p.status == status]

        return {
            "total": len(payments),
            "confirmed": len(of(PaymentStatus.CONFIRMED)),
            "pending": len(of(PaymentStatus.PENDING)),
            "rejected": len(of(PaymentStatus.REJECTED)),
            "confirmed_amount": _total(p.amount for p in of(PaymentStatus.CONFIRMED)),
            "pending_amount": _total(p.amount for p in of(PaymentStatus.PENDING)),
        }

    def repayment_stats(self) -> PaymentStats:
        return PaymentStats(**self._payment_stats(self.ctx.query(LoanRepayment)))

    def registration_stats(self) -> RegistrationStats:
        return RegistrationStats(
            **self._payment_stats(self.ctx.query(RegistrationPayment)),
            registration_fee=self.registration_fee,
        )

    def savings_stats(self, member_id: str | None = None) -> SavingsStats:
        """Savings figures for one member, or for the whole cooperative."""
        if member_id is None:
            entries = self.ctx.query(SavingsEntry)
        else:
            entries = self.ctx.query(SavingsEntry, member_id=member_id)
        confirmed = [e for e in entries if e.status == PaymentStatus.CONFIRMED]
        pending = [e for e in entries if e.status == PaymentStatus.PENDING]
        deposits = [e.amount for e in confirmed if not e.is_withdrawal]
        average = (
            (_total(deposits) / len(deposits)).quantize(CENTS, rounding=ROUND_HALF_UP)
            if deposits
            else ZERO
        )
        return SavingsStats(
            total_entries=len(entries),
            confirmed_entries=len(confirmed),
            pending_entries=len(pending),
            confirmed_total=_total(e.amount for e in confirmed),
            pending_total=_total(e.amount for e in pending),
            average_deposit=average,
        )

    def withdrawal_stats(self) -> WithdrawalStats:
        withdrawals = self.ctx.query(WithdrawalRequest)

        def of(status: WithdrawalStatus) -> list[WithdrawalRequest]:
            return [w for w in withdrawals if w.status == status]

        return WithdrawalStats(
            total_withdrawals=len(withdrawals),
            pending_withdrawals=len(of(WithdrawalStatus.PENDING)),
            approved_withdrawals=len(of(WithdrawalStatus.APPROVED)),
            rejected_withdrawals=len(of(WithdrawalStatus.REJECTED)),
            approved_amount=_total(w.requested_amount for w in of(WithdrawalStatus.APPROVED)),
            pending_amount=_total(w.requested_amount for w in of(WithdrawalStatus.PENDING)),
        )

    def admin_stats(self) -> AdminStats:
        """Member counts plus pending and confirmed member payments of every kind."""
        members = self.ctx.query(Member)
        deposits = [e for e in self.ctx.query(SavingsEntry) if not e.is_withdrawal]
        payments = [
            *deposits,
            *self.ctx.query(LoanRepayment),
            *self.ctx.query(RegistrationPayment),
        ]
        return AdminStats(
            total_members=len(members),
            active_members=sum(1 for m in members if m.status == MemberStatus.ACTIVE),
            pending_payments=sum(1 for p in payments if p.status == PaymentStatus.PENDING),
            confirmed_payment_total=_total(
                p.amount for p in payments if p.status == PaymentStatus.CONFIRMED
            ),
        )
