"""Top-level entry point wiring the store, events and ledger services."""

import logging
import random
from datetime import datetime
from typing import Callable

from coop_ledger.config import LedgerConfig
from coop_ledger.ledger import (
    BalanceCalculator,
    LedgerContext,
    LedgerStats,
    LoanService,
    MembershipService,
    ReconciliationOrchestrator,
    RepaymentService,
    SavingsService,
    WithdrawalService,
)
from coop_ledger.sinks import EventPublisher, create_sinks
from coop_ledger.sinks.publisher import utc_now
from coop_ledger.store import DocumentStore, create_store

logger = logging.getLogger(__name__)


class Cooperative:
    """One cooperative's ledger: every service over a shared store.

    Parameters
    ----------
    store : DocumentStore
        Backing document store.
    config : LedgerConfig | None
        Collections, membership prefix, fee and proof bucket settings.
    publisher : EventPublisher | None
        Event fan-out; defaults to a publisher with no sinks.
    clock : Callable[[], datetime]
        Source of timestamps.
    rng : random.Random | None
        Random source for membership numbers.

    Examples
    --------
    >>> coop = Cooperative.from_config(LedgerConfig())
    >>> member = coop.membership.register_member("Ada Obi", "ada@example.com", "0800")
    """

    def __init__(
        self,
        store: DocumentStore,
        config: LedgerConfig | None = None,
        publisher: EventPublisher | None = None,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or LedgerConfig()
        self.store = store
        self.publisher = publisher or EventPublisher(clock=clock)
        self.ctx = LedgerContext(
            store=store,
            collections=self.config.collections,
            clock=clock,
            publisher=self.publisher,
            proof_bucket=self.config.supabase.proof_bucket,
        )

        self.membership = MembershipService(
            self.ctx, self.config.cooperative.membership_prefix, rng
        )
        self.balance = BalanceCalculator(self.ctx)
        self.savings = SavingsService(self.ctx, self.membership)
        self.loans = LoanService(self.ctx, self.membership)
        self.repayments = RepaymentService(self.ctx, self.membership)
        self.withdrawals = WithdrawalService(self.ctx, self.membership, self.balance)
        self.orchestrator = ReconciliationOrchestrator(
            self.ctx, self.loans, self.membership, self.withdrawals
        )
        self.stats = LedgerStats(self.ctx, self.config.cooperative.registration_fee)

    @classmethod
    def from_config(cls, config: LedgerConfig, clock: Callable[[], datetime] = utc_now) -> "Cooperative":
        """Build the configured store and event sinks."""
        store = create_store(config)
        publisher = EventPublisher(create_sinks(config), clock=clock)
        logger.info(
            "Cooperative ledger ready (store=%s, events=%s)",
            config.store.backend, config.events.sink,
        )
        return cls(store, config=config, publisher=publisher, clock=clock)

    def close(self) -> None:
        """Flush event sinks and release the store."""
        self.publisher.close()
        self.store.close()
