"""Multi-step admin operations that span more than one document.

The store only guarantees atomicity per document, so each operation here is
an ordered list of single-document writes. Steps are ordered so that a
failure part-way leaves a state that re-running the same operation can
complete:

* ``confirm_repayment``: loan decrement, then repayment Pending -> Confirmed.
  The loan remembers applied repayment ids, so a re-run never decrements twice.
* ``approve_registration``: payment Pending -> Confirmed, then member
  Pending -> Active. ``activate_member`` repairs the second step alone.
* ``approve_withdrawal``: debit entry with a deterministic id, then
  withdrawal Pending -> Approved.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from coop_ledger.exceptions import (
    InvalidInputError,
    InvalidStateError,
    PartialApplicationError,
    StoreUnavailableError,
)
from coop_ledger.ledger.context import LedgerContext
from coop_ledger.ledger.loans import LoanService, repay_loan
from coop_ledger.ledger.membership import MembershipService
from coop_ledger.ledger.withdrawals import WithdrawalService
from coop_ledger.models import (
    LoanRepayment,
    LoanRequest,
    Member,
    MemberStatus,
    PaymentStatus,
    RegistrationPayment,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """Outcome of a multi-step operation."""

    operation: str
    subject_id: str
    completed_steps: list[str] = field(default_factory=list)
    skipped_steps: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.completed_steps)


class _StepTracker:
    def __init__(self, operation: str, subject_id: str) -> None:
        self.result = ReconciliationResult(operation, subject_id)

    @contextmanager
    def step(self, name: str) -> Iterator[None]:
        try:
            yield
        except StoreUnavailableError as e:
            logger.error(
                "%s %s stopped at step %s after %s: %s",
                self.result.operation, self.result.subject_id, name,
                self.result.completed_steps or "no committed steps", e,
                extra={"operation": self.result.operation, "step": name},
            )
            raise PartialApplicationError(
                self.result.operation, name, self.result.completed_steps
            ) from e
        self.result.completed_steps.append(name)

    def skip(self, name: str) -> None:
        logger.info(
            "%s %s: step %s already applied",
            self.result.operation, self.result.subject_id, name,
            extra={"operation": self.result.operation, "step": name},
        )
        self.result.skipped_steps.append(name)


class ReconciliationOrchestrator:
    """Run the cross-document admin operations with step reporting.

    Business errors (invalid state, insufficient balance or funds) propagate
    unchanged before any write. A StoreUnavailableError during a write step is
    re-raised as PartialApplicationError naming that step and the steps
    already committed.
    """

    def __init__(
        self,
        ctx: LedgerContext,
        loans: LoanService,
        membership: MembershipService,
        withdrawals: WithdrawalService,
    ) -> None:
        self.ctx = ctx
        self.loans = loans
        self.membership = membership
        self.withdrawals = withdrawals

    def confirm_repayment(self, repayment_id: str) -> ReconciliationResult:
        """Apply a Pending repayment to its loan and mark it Confirmed."""
        tracker = _StepTracker("confirm_repayment", repayment_id)

        repayment = self.ctx.load(LoanRepayment, repayment_id)
        if repayment.status != PaymentStatus.PENDING:
            raise InvalidStateError(
                f"Repayment {repayment_id} is {repayment.status.value}, not Pending"
            )
        loan = self.ctx.load(LoanRequest, repayment.loan_request_id)
        if loan.member_id != repayment.member_id:
            raise InvalidInputError(
                f"Repayment {repayment_id} does not belong to loan {loan.loan_id}'s member"
            )

        if repayment_id in loan.applied_repayment_ids:
            tracker.skip("apply_to_loan")
        else:
            # Validate against the live loan before writing anything
            repay_loan(loan, repayment.amount, self.ctx.now(), repayment_id)
            with tracker.step("apply_to_loan"):
                self.loans.apply_repayment(
                    loan.loan_id, repayment.amount, repayment_id, read=loan
                )

        with tracker.step("confirm_repayment"):
            self.ctx.update(
                LoanRepayment,
                repayment_id,
                expected={"status": PaymentStatus.PENDING},
                status=PaymentStatus.CONFIRMED,
                confirmed_at=self.ctx.now(),
            )
        logger.info(
            "Repayment %s of %s confirmed on loan %s",
            repayment_id, repayment.amount, loan.loan_id,
            extra={"operation": "confirm_repayment", "member_id": repayment.member_id},
        )
        self.ctx.publish(
            "repayment.confirmed",
            repayment_id,
            {"loan_id": loan.loan_id, "amount": repayment.amount},
            member_id=repayment.member_id,
        )
        return tracker.result

    def approve_registration(self, payment_id: str) -> ReconciliationResult:
        """Confirm a registration payment, then activate its member."""
        tracker = _StepTracker("approve_registration", payment_id)

        payment = self.ctx.load(RegistrationPayment, payment_id)
        if payment.status != PaymentStatus.PENDING:
            raise InvalidStateError(
                f"Registration payment {payment_id} is {payment.status.value}, not Pending"
            )

        with tracker.step("confirm_payment"):
            payment = self.ctx.update(
                RegistrationPayment,
                payment_id,
                expected={"status": PaymentStatus.PENDING},
                status=PaymentStatus.CONFIRMED,
                confirmed_at=self.ctx.now(),
            )
        logger.info(
            "Registration payment %s confirmed", payment_id,
            extra={"operation": "approve_registration", "member_id": payment.member_id},
        )
        self.ctx.publish(
            "registration.confirmed",
            payment_id,
            {"amount": payment.amount},
            member_id=payment.member_id,
        )

        self._activate(payment, tracker)
        return tracker.result

    def activate_member(self, payment_id: str) -> ReconciliationResult:
        """Activate the member of a Confirmed registration payment.

        Safe to run any number of times: an already Active member is left
        untouched and reported as skipped.
        """
        tracker = _StepTracker("activate_member", payment_id)
        payment = self.ctx.load(RegistrationPayment, payment_id)
        if payment.status != PaymentStatus.CONFIRMED:
            raise InvalidStateError(
                f"Registration payment {payment_id} is {payment.status.value}, not Confirmed"
            )
        self._activate(payment, tracker)
        return tracker.result

    def _activate(self, payment: RegistrationPayment, tracker: _StepTracker) -> None:
        member = self.membership.get_member(payment.member_id)
        if member.status == MemberStatus.ACTIVE:
            tracker.skip("activate_member")
            return
        if member.status != MemberStatus.PENDING:
            raise InvalidStateError(
                f"Member {member.member_id} is {member.status.value}; only Pending members are activated"
            )

        with tracker.step("activate_member"):
            self.ctx.update(
                Member,
                member.member_id,
                expected={"status": MemberStatus.PENDING},
                status=MemberStatus.ACTIVE,
                activated_at=self.ctx.now(),
            )
        logger.info(
            "Member %s activated by registration payment %s",
            member.member_id, payment.payment_id,
            extra={"operation": tracker.result.operation, "member_id": member.member_id},
        )
        self.ctx.publish(
            "member.activated",
            member.member_id,
            {"payment_id": payment.payment_id},
            member_id=member.member_id,
        )

    def find_unactivated_members(self) -> list[RegistrationPayment]:
        """Confirmed registration payments whose member is still Pending."""
        confirmed = self.ctx.query(RegistrationPayment, status=PaymentStatus.CONFIRMED)
        stuck = []
        for payment in confirmed:
            member = self.membership.get_member(payment.member_id)
            if member.status == MemberStatus.PENDING:
                stuck.append(payment)
        if stuck:
            logger.warning("Found %d confirmed registrations with Pending members", len(stuck))
        return stuck

    def repair_member_activations(self) -> list[ReconciliationResult]:
        """Activate every member left Pending behind a Confirmed registration."""
        return [
            self.activate_member(payment.payment_id)
            for payment in self.find_unactivated_members()
        ]

    def approve_withdrawal(
        self, withdrawal_id: str, notes: str | None = None
    ) -> ReconciliationResult:
        """Debit savings and approve a Pending withdrawal."""
        tracker = _StepTracker("approve_withdrawal", withdrawal_id)
        withdrawal = self.withdrawals.pending_withdrawal(withdrawal_id)

        if self.withdrawals.find_debit(withdrawal) is not None:
            tracker.skip("debit_savings")
        else:
            self.withdrawals.check_funds(withdrawal)
            with tracker.step("debit_savings"):
                self.withdrawals.write_debit(withdrawal)

        with tracker.step("approve_withdrawal"):
            self.withdrawals.mark_approved(withdrawal, notes)
        return tracker.result
