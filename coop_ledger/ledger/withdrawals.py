"""Withdrawal requests and the guard against overdrawing savings."""

import logging
from decimal import Decimal

from coop_ledger.exceptions import (
    ConflictError,
    EntityNotFoundError,
    InsufficientFundsError,
    InvalidInputError,
    InvalidStateError,
)
from coop_ledger.ledger.balance import BalanceCalculator
from coop_ledger.ledger.context import LedgerContext
from coop_ledger.ledger.membership import MembershipService
from coop_ledger.models import (
    BankDetails,
    PaymentStatus,
    SavingsEntry,
    TransferType,
    WithdrawalRequest,
    WithdrawalStatus,
    to_money,
)

logger = logging.getLogger(__name__)

DEBIT_PREFIX = "wd-"


def debit_entry_id(withdrawal_id: str) -> str:
    """Deterministic id of the savings debit written for a withdrawal."""
    return f"{DEBIT_PREFIX}{withdrawal_id}"


class WithdrawalService:
    """Request and reject withdrawals, and provide the approval steps.

    The balance is checked twice: once when the member asks (nothing is
    stored if the request is over the balance) and again, against a fresh
    read, right before the approval debit is written.

    Approval is two writes, run in order by
    ``ReconciliationOrchestrator.approve_withdrawal``: a Confirmed negative
    SavingsEntry with id ``wd-<withdrawal_id>`` (``write_debit``), then the
    withdrawal's Pending -> Approved update (``mark_approved``). If the second
    write is lost the debit is found on the next attempt and only the status
    update is redone.
    """

    def __init__(
        self,
        ctx: LedgerContext,
        membership: MembershipService,
        balance: BalanceCalculator,
    ) -> None:
        self.ctx = ctx
        self.membership = membership
        self.balance = balance

    def request_withdrawal(
        self,
        member_id: str,
        amount: Decimal | str | int,
        bank_details: BankDetails,
    ) -> WithdrawalRequest:
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidInputError("Withdrawal amount must be positive")
        bank_details.validate()

        member = self.membership.require_active(member_id)
        available = self.balance.compute_balance(member_id)
        if amount > available:
            logger.warning(
                "Withdrawal of %s refused for member %s: balance %s",
                amount, member_id, available,
                extra={"operation": "request_withdrawal", "member_id": member_id},
            )
            raise InsufficientFundsError(
                f"Withdrawal {amount} exceeds available balance {available}"
            )

        withdrawal = self.ctx.insert(
            WithdrawalRequest(
                withdrawal_id="",
                member_id=member_id,
                member_name=member.full_name,
                membership_number=member.membership_number,
                requested_amount=amount,
                bank=bank_details,
                status=WithdrawalStatus.PENDING,
                available_balance=available,
                created_at=self.ctx.now(),
            )
        )
        logger.info(
            "Withdrawal %s of %s requested by member %s (balance %s)",
            withdrawal.withdrawal_id, amount, member_id, available,
            extra={"operation": "request_withdrawal", "member_id": member_id},
        )
        self.ctx.publish(
            "withdrawal.requested",
            withdrawal.withdrawal_id,
            {"amount": amount, "available_balance": available},
            member_id=member_id,
        )
        return withdrawal

    def get_withdrawal(self, withdrawal_id: str) -> WithdrawalRequest:
        return self.ctx.load(WithdrawalRequest, withdrawal_id)

    def pending_withdrawal(self, withdrawal_id: str) -> WithdrawalRequest:
        """Load a withdrawal and require it to be Pending."""
        withdrawal = self.get_withdrawal(withdrawal_id)
        if withdrawal.status != WithdrawalStatus.PENDING:
            raise InvalidStateError(
                f"Withdrawal {withdrawal_id} is {withdrawal.status.value}, not Pending"
            )
        return withdrawal

    def find_debit(self, withdrawal: WithdrawalRequest) -> SavingsEntry | None:
        """Return the debit already written for this withdrawal, if any."""
        try:
            return self.ctx.load(SavingsEntry, debit_entry_id(withdrawal.withdrawal_id))
        except EntityNotFoundError:
            return None

    def check_funds(self, withdrawal: WithdrawalRequest) -> Decimal:
        """Re-read the live balance and refuse approval if it no longer covers the request."""
        live = self.balance.compute_balance(withdrawal.member_id)
        if withdrawal.requested_amount > live:
            logger.warning(
                "Approval of withdrawal %s refused: requested %s, live balance %s",
                withdrawal.withdrawal_id, withdrawal.requested_amount, live,
                extra={"operation": "approve_withdrawal", "member_id": withdrawal.member_id},
            )
            raise InsufficientFundsError(
                f"Withdrawal {withdrawal.requested_amount} exceeds live balance {live}"
            )
        return live

    def write_debit(self, withdrawal: WithdrawalRequest) -> SavingsEntry:
        """Write the Confirmed negative savings entry for an approved withdrawal."""
        now = self.ctx.now()
        entry_id = debit_entry_id(withdrawal.withdrawal_id)
        debit = SavingsEntry(
            entry_id=entry_id,
            member_id=withdrawal.member_id,
            member_name=withdrawal.member_name,
            amount=-withdrawal.requested_amount,
            status=PaymentStatus.CONFIRMED,
            description=f"Withdrawal {withdrawal.withdrawal_id}",
            created_at=now,
            confirmed_at=now,
            withdrawal_id=withdrawal.withdrawal_id,
            transfer_type=TransferType.ONLINE,
        )
        try:
            entry = self.ctx.insert(debit, record_id=entry_id)
        except ConflictError:
            # A retried create whose first attempt committed
            existing = self.find_debit(withdrawal)
            if existing is None or existing.withdrawal_id != withdrawal.withdrawal_id:
                raise
            return existing
        logger.info(
            "Debited %s from member %s for withdrawal %s",
            withdrawal.requested_amount, withdrawal.member_id, withdrawal.withdrawal_id,
            extra={"operation": "approve_withdrawal", "member_id": withdrawal.member_id},
        )
        return entry

    def mark_approved(self, withdrawal: WithdrawalRequest, notes: str | None) -> WithdrawalRequest:
        withdrawal = self.ctx.update(
            WithdrawalRequest,
            withdrawal.withdrawal_id,
            expected={"status": WithdrawalStatus.PENDING},
            status=WithdrawalStatus.APPROVED,
            admin_notes=notes,
            processed_at=self.ctx.now(),
        )
        logger.info(
            "Withdrawal %s approved", withdrawal.withdrawal_id,
            extra={"operation": "approve_withdrawal", "member_id": withdrawal.member_id},
        )
        self.ctx.publish(
            "withdrawal.approved",
            withdrawal.withdrawal_id,
            {"amount": withdrawal.requested_amount},
            member_id=withdrawal.member_id,
        )
        return withdrawal

    def reject_withdrawal(self, withdrawal_id: str, reason: str) -> WithdrawalRequest:
        """Pending -> Rejected; no savings entry is written.

        A Pending withdrawal whose debit already exists is part-way through
        approval and cannot be rejected.
        """
        if not str(reason or "").strip():
            raise InvalidInputError("A rejection reason is required")
        withdrawal = self.pending_withdrawal(withdrawal_id)
        if self.find_debit(withdrawal) is not None:
            raise InvalidStateError(
                f"Withdrawal {withdrawal_id} has already been debited; "
                "re-run the approval to complete it"
            )
        withdrawal = self.ctx.update(
            WithdrawalRequest,
            withdrawal_id,
            expected={"status": WithdrawalStatus.PENDING},
            status=WithdrawalStatus.REJECTED,
            rejection_reason=reason.strip(),
            processed_at=self.ctx.now(),
        )
        logger.info(
            "Withdrawal %s rejected", withdrawal_id,
            extra={"operation": "reject_withdrawal", "member_id": withdrawal.member_id},
        )
        self.ctx.publish(
            "withdrawal.rejected",
            withdrawal_id,
            {"reason": withdrawal.rejection_reason},
            member_id=withdrawal.member_id,
        )
        return withdrawal

    def member_withdrawals(self, member_id: str) -> list[WithdrawalRequest]:
        return self.ctx.query(WithdrawalRequest, member_id=member_id)

    def pending_withdrawals(self) -> list[WithdrawalRequest]:
        return self.ctx.query(WithdrawalRequest, status=WithdrawalStatus.PENDING)
