"""Member-submitted loan repayments awaiting admin confirmation."""

import logging
from decimal import Decimal

from coop_ledger.exceptions import (
    InsufficientBalanceError,
    InvalidInputError,
    InvalidStateError,
)
from coop_ledger.ledger.context import LedgerContext
from coop_ledger.ledger.membership import MembershipService
from coop_ledger.models import (
    LoanRepayment,
    LoanRequest,
    LoanStatus,
    PaymentStatus,
    TransferType,
    to_money,
)

logger = logging.getLogger(__name__)


class RepaymentService:
    """Submit and reject loan repayments.

    Confirmation decrements the loan and is handled by the reconciliation
    orchestrator. The balance check at submission is only an early answer for
    the member; it is repeated against the live loan at confirmation.
    """

    def __init__(self, ctx: LedgerContext, membership: MembershipService) -> None:
        self.ctx = ctx
        self.membership = membership

    def submit_repayment(
        self,
        loan_id: str,
        member_id: str,
        amount: Decimal | str | int,
        proof: bytes | None = None,
        transfer_type: TransferType = TransferType.OFFLINE,
        content_type: str = "application/octet-stream",
    ) -> LoanRepayment:
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidInputError("Repayment amount must be positive")

        member = self.membership.require_active(member_id)
        loan = self.ctx.load(LoanRequest, loan_id)
        if loan.member_id != member_id:
            raise InvalidInputError(f"Loan {loan_id} does not belong to member {member_id}")
        if loan.status != LoanStatus.APPROVED:
            raise InvalidStateError(
                f"Loan {loan_id} is {loan.status.value}; repayments need an Approved loan"
            )
        if amount > loan.current_balance:
            logger.warning(
                "Repayment of %s exceeds outstanding %s on loan %s",
                amount, loan.current_balance, loan_id,
                extra={"operation": "submit_repayment", "member_id": member_id},
            )
            raise InsufficientBalanceError(
                f"Repayment {amount} exceeds outstanding balance {loan.current_balance}"
            )

        proof_file_id = self.ctx.store_proof(member_id, proof, content_type)
        repayment = self.ctx.insert(
            LoanRepayment(
                repayment_id="",
                loan_request_id=loan_id,
                member_id=member_id,
                member_name=member.full_name,
                amount=amount,
                status=PaymentStatus.PENDING,
                created_at=self.ctx.now(),
                transfer_type=TransferType(transfer_type),
                proof_file_id=proof_file_id,
            )
        )
        logger.info(
            "Repayment %s of %s submitted on loan %s", repayment.repayment_id, amount, loan_id,
            extra={"operation": "submit_repayment", "member_id": member_id},
        )
        self.ctx.publish(
            "repayment.submitted",
            repayment.repayment_id,
            {"loan_id": loan_id, "amount": amount},
            member_id=member_id,
        )
        return repayment

    def get_repayment(self, repayment_id: str) -> LoanRepayment:
        return self.ctx.load(LoanRepayment, repayment_id)

    def reject_repayment(self, repayment_id: str, reason: str) -> LoanRepayment:
        """Pending -> Rejected; the loan balance is untouched.

        A repayment already applied to its loan is part-way through
        confirmation and cannot be rejected.
        """
        if not str(reason or "").strip():
            raise InvalidInputError("A rejection reason is required")
        repayment = self.get_repayment(repayment_id)
        if repayment.status != PaymentStatus.PENDING:
            raise InvalidStateError(
                f"Repayment {repayment_id} is {repayment.status.value}, not Pending"
            )
        loan = self.ctx.load(LoanRequest, repayment.loan_request_id)
        if repayment_id in loan.applied_repayment_ids:
            raise InvalidStateError(
                f"Repayment {repayment_id} was already applied to loan {loan.loan_id}; "
                "re-run the confirmation to complete it"
            )
        repayment = self.ctx.update(
            LoanRepayment,
            repayment_id,
            expected={"status": PaymentStatus.PENDING},
            status=PaymentStatus.REJECTED,
            rejection_reason=reason.strip(),
            rejected_at=self.ctx.now(),
        )
        logger.info(
            "Repayment %s rejected", repayment_id,
            extra={"operation": "reject_repayment", "member_id": repayment.member_id},
        )
        self.ctx.publish(
            "repayment.rejected",
            repayment_id,
            {"loan_id": repayment.loan_request_id, "reason": repayment.rejection_reason},
            member_id=repayment.member_id,
        )
        return repayment

    def proof_urls(self, repayment_id: str) -> tuple[str, str]:
        """Return (view_url, download_url) for the repayment's proof of payment."""
        repayment = self.get_repayment(repayment_id)
        if not repayment.proof_file_id:
            raise InvalidStateError(f"Repayment {repayment_id} has no proof attached")
        bucket = self.ctx.proof_bucket
        return (
            self.ctx.store.get_file_view(bucket, repayment.proof_file_id),
            self.ctx.store.get_file_download(bucket, repayment.proof_file_id),
        )

    def member_repayments(self, member_id: str) -> list[LoanRepayment]:
        return self.ctx.query(LoanRepayment, member_id=member_id)

    def loan_repayments(self, loan_id: str) -> list[LoanRepayment]:
        return self.ctx.query(LoanRepayment, loan_request_id=loan_id)
