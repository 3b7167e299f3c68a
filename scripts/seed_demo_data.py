#!/usr/bin/env python3
"""Seed a document store with a demo cooperative.

Members are generated with Faker and pushed through the real ledger
operations (registration, deposits, loans, repayments, withdrawals), so the
seeded data satisfies every ledger invariant. Defaults to the in-memory
store; set STORE_BACKEND=postgres or supabase to seed a real database.
"""

import argparse
import logging
import random
import sys
import time
from decimal import Decimal
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from faker import Faker

from coop_ledger.config import LedgerConfig
from coop_ledger.cooperative import Cooperative
from coop_ledger.logging import setup_logging
from coop_ledger.models import BankDetails, Member, TransferType

logger = logging.getLogger(__name__)


def fake_bank_details(fake: Faker, account_name: str) -> BankDetails:
    return BankDetails(
        bank_name=f"{fake.last_name()} Bank",
        account_number=fake.numerify("##########"),
        account_name=account_name,
    )


def seed_member(coop: Cooperative, fake: Faker, rng: random.Random, fee: Decimal) -> Member:
    """Register a member, pay and approve the registration fee."""
    member = coop.membership.register_member(fake.name(), fake.email(), fake.phone_number())
    payment = coop.membership.submit_registration_payment(
        member.member_id,
        fee,
        transfer_type=rng.choice(list(TransferType)),
        proof=fake.binary(length=256),
    )
    coop.orchestrator.approve_registration(payment.payment_id)
    return coop.membership.get_member(member.member_id)


def seed_savings(coop: Cooperative, member: Member, rng: random.Random, deposits: int) -> None:
    for _ in range(deposits):
        entry = coop.savings.submit_deposit(
            member.member_id, Decimal(rng.randrange(1_000, 50_000, 500)), "Monthly savings"
        )
        # Leave roughly one deposit in six waiting for review
        if rng.random() < 0.85:
            coop.savings.confirm_deposit(entry.entry_id)


def seed_loan(coop: Cooperative, member: Member, fake: Faker, rng: random.Random) -> None:
    requested = Decimal(rng.randrange(10_000, 200_000, 5_000))
    loan = coop.loans.submit(
        member.member_id,
        requested,
        purpose=fake.sentence(nb_words=6),
        repayment_period=rng.choice([3, 6, 12]),
        monthly_income=Decimal(rng.randrange(50_000, 500_000, 10_000)),
        disbursement=fake_bank_details(fake, member.full_name),
        guarantor=fake.name(),
        guarantor_contact=fake.phone_number(),
    )
    if rng.random() < 0.2:
        coop.loans.reject(loan.loan_id, "Insufficient guarantor information")
        return
    if rng.random() < 0.2:
        return  # Left in review

    loan = coop.loans.approve(loan.loan_id, requested, "Approved by committee")
    for _ in range(rng.randint(0, loan.repayment_period)):
        amount = min(loan.monthly_installment, loan.current_balance)
        if amount <= 0:
            break
        repayment = coop.repayments.submit_repayment(loan.loan_id, member.member_id, amount)
        coop.orchestrator.confirm_repayment(repayment.repayment_id)
        loan = coop.loans.get_loan(loan.loan_id)


def seed_withdrawal(coop: Cooperative, member: Member, fake: Faker, rng: random.Random) -> None:
    balance = coop.balance.compute_balance(member.member_id)
    if balance <= 0:
        return
    amount = (balance * Decimal(rng.uniform(0.1, 0.5))).quantize(Decimal("0.01"))
    if amount <= 0:
        return
    withdrawal = coop.withdrawals.request_withdrawal(
        member.member_id, amount, fake_bank_details(fake, member.full_name)
    )
    if rng.random() < 0.7:
        coop.orchestrator.approve_withdrawal(withdrawal.withdrawal_id, "Paid out")


def seed(coop: Cooperative, members: int, seed_value: int) -> None:
    fake = Faker()
    Faker.seed(seed_value)
    rng = random.Random(seed_value)
    fee = coop.config.cooperative.registration_fee

    for i in range(members):
        member = seed_member(coop, fake, rng, fee)
        seed_savings(coop, member, rng, deposits=rng.randint(1, 6))
        if rng.random() < 0.5:
            seed_loan(coop, member, fake, rng)
        if rng.random() < 0.3:
            seed_withdrawal(coop, member, fake, rng)
        if (i + 1) % 10 == 0:
            logger.info("Seeded %d/%d members", i + 1, members)

    # A few members who signed up but never paid
    for _ in range(max(1, members // 10)):
        coop.membership.register_member(fake.name(), fake.email(), fake.phone_number())


def print_summary(coop: Cooperative, elapsed: float) -> None:
    admin = coop.stats.admin_stats()
    loans = coop.stats.loan_request_stats()
    savings = coop.stats.savings_stats()
    withdrawals = coop.stats.withdrawal_stats()
    currency = coop.config.cooperative.currency

    print(f"\n{'='*60}")
    print("Seed Summary")
    print("=" * 60)
    print(f"  Members:            {admin.total_members} ({admin.active_members} active)")
    print(f"  Pending payments:   {admin.pending_payments}")
    print(f"  Confirmed payments: {currency} {admin.confirmed_payment_total:,}")
    print(f"  Savings balance:    {currency} {savings.confirmed_total:,}")
    print(f"  Loans:              {loans.total_requests} ({loans.approved_requests} active)")
    print(f"  Withdrawals:        {withdrawals.total_withdrawals}")
    print(f"  Elapsed:            {elapsed:.2f}s")


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seed a store with a demo cooperative")
    parser.add_argument(
        "--members",
        type=int,
        default=25,
        help="Number of active members to create (default: 25)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for reproducibility (default: 42)",
    )
    parser.add_argument(
        "--ensure-schema",
        action="store_true",
        help="Create collection tables first (postgres backend only)",
    )
    args = parser.parse_args()

    config = LedgerConfig.from_env()
    setup_logging(config.log_level, config.log_format)

    coop = Cooperative.from_config(config)
    if args.ensure_schema:
        if config.store.backend != "postgres":
            parser.error("--ensure-schema requires STORE_BACKEND=postgres")
        coop.store.inner.ensure_schema(config.collections.all())

    logger.info("Seeding %d members into %s store (seed=%d)", args.members, config.store.backend, args.seed)
    start = time.perf_counter()
    try:
        seed(coop, args.members, args.seed)
        print_summary(coop, time.perf_counter() - start)
    finally:
        coop.close()


if __name__ == "__main__":
    main()
