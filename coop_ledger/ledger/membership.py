"""Member lifecycle and registration payments."""

import logging
import random
from decimal import Decimal

from coop_ledger.exceptions import InvalidInputError, InvalidStateError
from coop_ledger.ledger.context import LedgerContext
from coop_ledger.models import (
    Member,
    MemberRole,
    MemberStatus,
    PaymentStatus,
    RegistrationPayment,
    TransferType,
    to_money,
)

logger = logging.getLogger(__name__)


class MembershipService:
    """Register members and manage their Pending/Active/Inactive status.

    Activation itself belongs to the reconciliation orchestrator, because it
    is the second half of approving a registration payment.

    Parameters
    ----------
    ctx : LedgerContext
        Shared store access.
    membership_prefix : str
        Prefix of generated membership numbers.
    rng : random.Random | None
        Source of the random suffix (seedable in tests).
    """

    def __init__(
        self,
        ctx: LedgerContext,
        membership_prefix: str = "COOP",
        rng: random.Random | None = None,
    ) -> None:
        self.ctx = ctx
        self.membership_prefix = membership_prefix
        self.rng = rng or random.Random()

    def generate_membership_number(self) -> str:
        """Return ``<prefix><last 6 digits of epoch ms><2 random digits>``."""
        millis = int(self.ctx.now().timestamp() * 1000)
        return f"{self.membership_prefix}{millis % 1_000_000:06d}{self.rng.randint(0, 99):02d}"

    def register_member(
        self,
        full_name: str,
        email: str,
        phone: str,
        role: MemberRole = MemberRole.MEMBER,
    ) -> Member:
        """Create a Pending member."""
        for name, value in (("full_name", full_name), ("email", email), ("phone", phone)):
            if not str(value or "").strip():
                raise InvalidInputError(f"Member {name} is required")

        now = self.ctx.now()
        member = self.ctx.insert(
            Member(
                member_id="",
                membership_number=self.generate_membership_number(),
                full_name=full_name.strip(),
                email=email.strip().lower(),
                phone=phone.strip(),
                status=MemberStatus.PENDING,
                role=MemberRole(role),
                join_date=now,
                created_at=now,
            )
        )
        logger.info(
            "Registered member %s (%s)", member.member_id, member.membership_number,
            extra={"operation": "register_member", "member_id": member.member_id},
        )
        self.ctx.publish(
            "member.registered",
            member.member_id,
            {"membership_number": member.membership_number, "role": member.role},
            member_id=member.member_id,
        )
        return member

    def get_member(self, member_id: str) -> Member:
        return self.ctx.load(Member, member_id)

    def all_members(self, status: MemberStatus | None = None) -> list[Member]:
        if status is None:
            return self.ctx.query(Member)
        return self.ctx.query(Member, status=status)

    def require_active(self, member_id: str) -> Member:
        """Return the member, or raise InvalidStateError unless it is Active."""
        member = self.get_member(member_id)
        if not member.is_active:
            logger.warning(
                "Member %s is %s, not Active", member_id, member.status.value,
                extra={"member_id": member_id},
            )
            raise InvalidStateError(f"Member {member_id} is {member.status.value}, not Active")
        return member

    def submit_registration_payment(
        self,
        member_id: str,
        amount: Decimal | str | int,
        transfer_type: TransferType = TransferType.OFFLINE,
        proof: bytes | None = None,
        bank_account_number: str = "",
    ) -> RegistrationPayment:
        """Record a Pending registration fee payment for a Pending member."""
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidInputError("Registration payment amount must be positive")

        member = self.get_member(member_id)
        if member.status != MemberStatus.PENDING:
            raise InvalidStateError(
                f"Member {member_id} is {member.status.value}; registration is only paid while Pending"
            )
        # Only a rejected payment may be followed by a new one
        open_payments = [
            payment
            for payment in self.ctx.query(RegistrationPayment, member_id=member_id)
            if payment.status in (PaymentStatus.PENDING, PaymentStatus.CONFIRMED)
        ]
        if open_payments:
            raise InvalidStateError(
                f"Member {member_id} already has a {open_payments[0].status.value} "
                f"registration payment ({open_payments[0].payment_id})"
            )

        proof_file_id = self.ctx.store_proof(member_id, proof)
        payment = self.ctx.insert(
            RegistrationPayment(
                payment_id="",
                member_id=member_id,
                member_name=member.full_name,
                membership_number=member.membership_number,
                amount=amount,
                status=PaymentStatus.PENDING,
                transfer_type=TransferType(transfer_type),
                created_at=self.ctx.now(),
                bank_account_number=bank_account_number,
                proof_file_id=proof_file_id,
            )
        )
        logger.info(
            "Registration payment %s of %s submitted by member %s",
            payment.payment_id, amount, member_id,
            extra={"operation": "submit_registration_payment", "member_id": member_id},
        )
        self.ctx.publish(
            "registration.submitted",
            payment.payment_id,
            {"amount": amount, "transfer_type": payment.transfer_type},
            member_id=member_id,
        )
        return payment

    def reject_registration_payment(self, payment_id: str, reason: str) -> RegistrationPayment:
        """Reject a Pending registration payment; the member stays Pending."""
        if not str(reason or "").strip():
            raise InvalidInputError("A rejection reason is required")

        payment = self.ctx.load(RegistrationPayment, payment_id)
        if payment.status != PaymentStatus.PENDING:
            raise InvalidStateError(
                f"Registration payment {payment_id} is {payment.status.value}, not Pending"
            )

        payment = self.ctx.update(
            RegistrationPayment,
            payment_id,
            expected={"status": PaymentStatus.PENDING},
            status=PaymentStatus.REJECTED,
            rejection_reason=reason.strip(),
            rejected_at=self.ctx.now(),
        )
        logger.info(
            "Registration payment %s rejected", payment_id,
            extra={"operation": "reject_registration_payment", "member_id": payment.member_id},
        )
        self.ctx.publish(
            "registration.rejected",
            payment_id,
            {"reason": payment.rejection_reason},
            member_id=payment.member_id,
        )
        return payment

    def registration_payments(
        self, status: PaymentStatus | None = None
    ) -> list[RegistrationPayment]:
        if status is None:
            return self.ctx.query(RegistrationPayment)
        return self.ctx.query(RegistrationPayment, status=status)

    def deactivate_member(self, member_id: str) -> Member:
        """Active -> Inactive."""
        return self._set_status(
            member_id,
            MemberStatus.ACTIVE,
            MemberStatus.INACTIVE,
            "member.deactivated",
            deactivated_at=self.ctx.now(),
        )

    def reactivate_member(self, member_id: str) -> Member:
        """Inactive -> Active."""
        return self._set_status(
            member_id,
            MemberStatus.INACTIVE,
            MemberStatus.ACTIVE,
            "member.reactivated",
            deactivated_at=None,
        )

    def _set_status(
        self,
        member_id: str,
        from_status: MemberStatus,
        to_status: MemberStatus,
        event_type: str,
        **changes,
    ) -> Member:
        member = self.get_member(member_id)
        if member.status != from_status:
            raise InvalidStateError(
                f"Member {member_id} is {member.status.value}, expected {from_status.value}"
            )
        member = self.ctx.update(
            Member,
            member_id,
            expected={"status": from_status},
            status=to_status,
            **changes,
        )
        logger.info(
            "Member %s: %s -> %s", member_id, from_status.value, to_status.value,
            extra={"member_id": member_id},
        )
        self.ctx.publish(event_type, member_id, {"status": to_status}, member_id=member_id)
        return member
