#!/usr/bin/env python3
"""Find and repair members left Pending behind a confirmed registration.

Approving a registration confirms the payment and then activates the member
in a second write. If the second write was lost, this script finds the
affected members and completes the activation. Safe to run repeatedly.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from coop_ledger.config import LedgerConfig
from coop_ledger.cooperative import Cooperative
from coop_ledger.logging import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Activate members whose registration payment is already confirmed"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only list affected members, do not activate them",
    )
    args = parser.parse_args()

    config = LedgerConfig.from_env()
    setup_logging(config.log_level, config.log_format)
    coop = Cooperative.from_config(config)

    try:
        stuck = coop.orchestrator.find_unactivated_members()
        for payment in stuck:
            print(f"  {payment.membership_number}  {payment.member_name}  (payment {payment.payment_id})")
        if not stuck:
            print("No unactivated members found")
            return
        if args.dry_run:
            print(f"{len(stuck)} member(s) need activation (dry run)")
            return

        results = coop.orchestrator.repair_member_activations()
        activated = sum(1 for result in results if result.changed)
        logger.info("Activated %d of %d member(s)", activated, len(results))
        print(f"Activated {activated} member(s)")
    finally:
        coop.close()


if __name__ == "__main__":
    main()
