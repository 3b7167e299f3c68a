"""Loan request state machine.

::

    Pending Review --approve--> Approved --repayments--> Fully Repaid
    Pending Review --reject---> Rejected

Rejected and Fully Repaid are terminal. The transition functions below work
on ``LoanRequest`` values only; ``LoanService`` persists their result with a
compare-and-set on the state it read.
"""

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from coop_ledger.exceptions import (
    ConflictError,
    InsufficientBalanceError,
    InvalidInputError,
    InvalidStateError,
)
from coop_ledger.ledger.context import LedgerContext
from coop_ledger.ledger.membership import MembershipService
from coop_ledger.models import BankDetails, LoanRequest, LoanStatus, to_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _require_status(loan: LoanRequest, status: LoanStatus, action: str) -> None:
    if loan.status != status:
        raise InvalidStateError(
            f"Cannot {action} loan {loan.loan_id}: status is {loan.status.value}, "
            f"expected {status.value}"
        )


def approve_loan(
    loan: LoanRequest,
    approved_amount: Decimal | str | int,
    notes: str | None,
    now: datetime,
) -> LoanRequest:
    """Approve a Pending Review loan; the outstanding balance starts at the approved amount."""
    _require_status(loan, LoanStatus.PENDING_REVIEW, "approve")
    amount = to_money(approved_amount)
    if amount <= 0:
        raise InvalidInputError("Approved amount must be positive")
    return replace(
        loan,
        status=LoanStatus.APPROVED,
        approved_amount=amount,
        current_balance=amount,
        admin_notes=notes,
        approved_at=now,
        updated_at=now,
    )


def reject_loan(loan: LoanRequest, notes: str | None, now: datetime) -> LoanRequest:
    _require_status(loan, LoanStatus.PENDING_REVIEW, "reject")
    return replace(
        loan,
        status=LoanStatus.REJECTED,
        admin_notes=notes,
        rejected_at=now,
        updated_at=now,
    )


def repay_loan(
    loan: LoanRequest,
    amount: Decimal | str | int,
    now: datetime,
    repayment_id: str | None = None,
) -> LoanRequest:
    """Decrement an Approved loan's balance.

    Raises
    ------
    InvalidStateError
        If the loan is not Approved (including Fully Repaid).
    ConflictError
        If ``repayment_id`` was already applied to this loan.
    InvalidInputError
        If the amount is not positive.
    InsufficientBalanceError
        If the amount exceeds the outstanding balance. Overpayments are
        rejected, never clamped.
    """
    _require_status(loan, LoanStatus.APPROVED, "repay")
    if repayment_id is not None and repayment_id in loan.applied_repayment_ids:
        raise ConflictError(f"Repayment {repayment_id} was already applied to loan {loan.loan_id}")
    amount = to_money(amount)
    if amount <= 0:
        raise InvalidInputError("Repayment amount must be positive")
    if amount > loan.current_balance:
        raise InsufficientBalanceError(
            f"Repayment {amount} exceeds outstanding balance {loan.current_balance} "
            f"on loan {loan.loan_id}"
        )

    balance = loan.current_balance - amount
    applied = list(loan.applied_repayment_ids)
    if repayment_id is not None:
        applied.append(repayment_id)
    return replace(
        loan,
        current_balance=balance,
        status=LoanStatus.FULLY_REPAID if balance == ZERO else LoanStatus.APPROVED,
        fully_repaid_at=now if balance == ZERO else None,
        last_repayment_date=now,
        applied_repayment_ids=applied,
        updated_at=now,
    )


class LoanService:
    """Submit loan requests and drive them through their states."""

    def __init__(self, ctx: LedgerContext, membership: MembershipService) -> None:
        self.ctx = ctx
        self.membership = membership

    def submit(
        self,
        member_id: str,
        requested_amount: Decimal | str | int,
        purpose: str,
        repayment_period: int,
        monthly_income: Decimal | str | int,
        disbursement: BankDetails,
        collateral: str | None = None,
        guarantor: str | None = None,
        guarantor_contact: str | None = None,
    ) -> LoanRequest:
        """Create a Pending Review loan request for an Active member."""
        requested = to_money(requested_amount)
        income = to_money(monthly_income)
        if requested <= 0:
            raise InvalidInputError("Requested amount must be positive")
        if isinstance(repayment_period, bool) or not isinstance(repayment_period, int) or repayment_period <= 0:
            raise InvalidInputError("Repayment period must be a positive number of months")
        if income < 0:
            raise InvalidInputError("Monthly income cannot be negative")
        if not str(purpose or "").strip():
            raise InvalidInputError("Loan purpose is required")
        disbursement.validate()

        member = self.membership.require_active(member_id)
        loan = self.ctx.insert(
            LoanRequest(
                loan_id="",
                member_id=member_id,
                member_name=member.full_name,
                requested_amount=requested,
                approved_amount=ZERO,
                current_balance=ZERO,
                status=LoanStatus.PENDING_REVIEW,
                purpose=purpose.strip(),
                repayment_period=repayment_period,
                monthly_income=income,
                disbursement=disbursement,
                created_at=self.ctx.now(),
                collateral=collateral,
                guarantor=guarantor,
                guarantor_contact=guarantor_contact,
            )
        )
        logger.info(
            "Loan %s for %s submitted by member %s", loan.loan_id, requested, member_id,
            extra={"operation": "submit_loan", "member_id": member_id},
        )
        self.ctx.publish(
            "loan.submitted",
            loan.loan_id,
            {"requested_amount": requested, "repayment_period": repayment_period},
            member_id=member_id,
        )
        return loan

    def get_loan(self, loan_id: str) -> LoanRequest:
        return self.ctx.load(LoanRequest, loan_id)

    def approve(
        self, loan_id: str, approved_amount: Decimal | str | int, notes: str | None = None
    ) -> LoanRequest:
        loan = self.get_loan(loan_id)
        approved = approve_loan(loan, approved_amount, notes, self.ctx.now())
        loan = self.ctx.update(
            LoanRequest,
            loan_id,
            expected={"status": LoanStatus.PENDING_REVIEW},
            status=approved.status,
            approved_amount=approved.approved_amount,
            current_balance=approved.current_balance,
            admin_notes=approved.admin_notes,
            approved_at=approved.approved_at,
        )
        logger.info(
            "Loan %s approved for %s (requested %s)",
            loan_id, loan.approved_amount, loan.requested_amount,
            extra={"operation": "approve_loan", "member_id": loan.member_id},
        )
        self.ctx.publish(
            "loan.approved",
            loan_id,
            {"approved_amount": loan.approved_amount, "monthly_installment": loan.monthly_installment},
            member_id=loan.member_id,
        )
        return loan

    def reject(self, loan_id: str, notes: str | None = None) -> LoanRequest:
        loan = self.get_loan(loan_id)
        rejected = reject_loan(loan, notes, self.ctx.now())
        loan = self.ctx.update(
            LoanRequest,
            loan_id,
            expected={"status": LoanStatus.PENDING_REVIEW},
            status=rejected.status,
            admin_notes=rejected.admin_notes,
            rejected_at=rejected.rejected_at,
        )
        logger.info(
            "Loan %s rejected", loan_id,
            extra={"operation": "reject_loan", "member_id": loan.member_id},
        )
        self.ctx.publish("loan.rejected", loan_id, {"notes": notes}, member_id=loan.member_id)
        return loan

    def apply_repayment(
        self,
        loan_id: str,
        amount: Decimal | str | int,
        repayment_id: str | None = None,
        read: LoanRequest | None = None,
    ) -> LoanRequest:
        """Decrement the outstanding balance of an Approved loan.

        The write is conditional on the status and balance that were read, so
        two concurrent repayments cannot both apply against the same balance.
        Callers that already validated against their own read of the loan pass
        it as ``read`` so the precondition is the state they checked.
        """
        loan = read if read is not None else self.get_loan(loan_id)
        try:
            repaid = repay_loan(loan, amount, self.ctx.now(), repayment_id)
        except InsufficientBalanceError:
            logger.warning(
                "Rejected repayment of %s on loan %s (outstanding %s)",
                amount, loan_id, loan.current_balance,
                extra={"operation": "apply_repayment", "member_id": loan.member_id},
            )
            raise

        loan = self.ctx.update(
            LoanRequest,
            loan_id,
            expected={"status": loan.status, "current_balance": loan.current_balance},
            status=repaid.status,
            current_balance=repaid.current_balance,
            last_repayment_date=repaid.last_repayment_date,
            fully_repaid_at=repaid.fully_repaid_at,
            applied_repayment_ids=repaid.applied_repayment_ids,
        )
        fully_repaid = loan.status == LoanStatus.FULLY_REPAID
        logger.info(
            "Loan %s repaid %s, outstanding %s%s",
            loan_id, to_money(amount), loan.current_balance,
            " (fully repaid)" if fully_repaid else "",
            extra={"operation": "apply_repayment", "member_id": loan.member_id},
        )
        self.ctx.publish(
            "loan.fully_repaid" if fully_repaid else "loan.repaid",
            loan_id,
            {
                "amount": to_money(amount),
                "current_balance": loan.current_balance,
                "repayment_id": repayment_id,
            },
            member_id=loan.member_id,
        )
        return loan

    def member_loans(self, member_id: str) -> list[LoanRequest]:
        return self.ctx.query(LoanRequest, member_id=member_id)

    def all_loans(self, status: LoanStatus | None = None) -> list[LoanRequest]:
        if status is None:
            return self.ctx.query(LoanRequest)
        return self.ctx.query(LoanRequest, status=status)
