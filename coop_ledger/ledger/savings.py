"""Member savings deposits."""

import logging
from decimal import Decimal

from coop_ledger.exceptions import InvalidInputError, InvalidStateError
from coop_ledger.ledger.context import LedgerContext
from coop_ledger.ledger.membership import MembershipService
from coop_ledger.models import PaymentStatus, SavingsEntry, TransferType, to_money

logger = logging.getLogger(__name__)


class SavingsService:
    """Submit deposits and let an admin confirm or reject them.

    Withdrawal debits are also SavingsEntry records but are written Confirmed
    by the withdrawal flow; they never pass through here.
    """

    def __init__(self, ctx: LedgerContext, membership: MembershipService) -> None:
        self.ctx = ctx
        self.membership = membership

    def submit_deposit(
        self,
        member_id: str,
        amount: Decimal | str | int,
        description: str = "Savings deposit",
        proof: bytes | None = None,
        transfer_type: TransferType = TransferType.OFFLINE,
    ) -> SavingsEntry:
        """Create a Pending deposit for an Active member."""
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidInputError("Deposit amount must be positive")
        member = self.membership.require_active(member_id)

        proof_file_id = self.ctx.store_proof(member_id, proof)
        entry = self.ctx.insert(
            SavingsEntry(
                entry_id="",
                member_id=member_id,
                member_name=member.full_name,
                amount=amount,
                status=PaymentStatus.PENDING,
                description=description,
                created_at=self.ctx.now(),
                proof_file_id=proof_file_id,
                transfer_type=TransferType(transfer_type),
            )
        )
        logger.info(
            "Deposit %s of %s submitted by member %s", entry.entry_id, amount, member_id,
            extra={"operation": "submit_deposit", "member_id": member_id},
        )
        self.ctx.publish(
            "savings.submitted", entry.entry_id, {"amount": amount}, member_id=member_id
        )
        return entry

    def _pending_deposit(self, entry_id: str) -> SavingsEntry:
        entry = self.ctx.load(SavingsEntry, entry_id)
        if entry.status != PaymentStatus.PENDING:
            raise InvalidStateError(f"Savings entry {entry_id} is {entry.status.value}, not Pending")
        if entry.is_withdrawal:
            raise InvalidStateError(f"Savings entry {entry_id} is a withdrawal debit, not a deposit")
        return entry

    def confirm_deposit(self, entry_id: str) -> SavingsEntry:
        """Pending -> Confirmed; the amount now counts toward the balance."""
        self._pending_deposit(entry_id)
        entry = self.ctx.update(
            SavingsEntry,
            entry_id,
            expected={"status": PaymentStatus.PENDING},
            status=PaymentStatus.CONFIRMED,
            confirmed_at=self.ctx.now(),
        )
        logger.info(
            "Deposit %s of %s confirmed", entry_id, entry.amount,
            extra={"operation": "confirm_deposit", "member_id": entry.member_id},
        )
        self.ctx.publish(
            "savings.confirmed", entry_id, {"amount": entry.amount}, member_id=entry.member_id
        )
        return entry

    def reject_deposit(self, entry_id: str, reason: str) -> SavingsEntry:
        """Pending -> Rejected."""
        if not str(reason or "").strip():
            raise InvalidInputError("A rejection reason is required")
        self._pending_deposit(entry_id)
        entry = self.ctx.update(
            SavingsEntry,
            entry_id,
            expected={"status": PaymentStatus.PENDING},
            status=PaymentStatus.REJECTED,
            rejection_reason=reason.strip(),
            rejected_at=self.ctx.now(),
        )
        logger.info(
            "Deposit %s rejected", entry_id,
            extra={"operation": "reject_deposit", "member_id": entry.member_id},
        )
        self.ctx.publish(
            "savings.rejected", entry_id, {"reason": entry.rejection_reason},
            member_id=entry.member_id,
        )
        return entry

    def member_entries(self, member_id: str) -> list[SavingsEntry]:
        """All entries for a member, newest first."""
        return self.ctx.query(SavingsEntry, member_id=member_id)

    def pending_entries(self) -> list[SavingsEntry]:
        return self.ctx.query(SavingsEntry, status=PaymentStatus.PENDING)
