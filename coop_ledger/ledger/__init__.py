"""Cooperative ledger services."""

from coop_ledger.ledger.balance import BalanceCalculator, sum_confirmed
from coop_ledger.ledger.context import LedgerContext
from coop_ledger.ledger.loans import LoanService, approve_loan, reject_loan, repay_loan
from coop_ledger.ledger.membership import MembershipService
from coop_ledger.ledger.orchestrator import ReconciliationOrchestrator, ReconciliationResult
from coop_ledger.ledger.repayments import RepaymentService
from coop_ledger.ledger.savings import SavingsService
from coop_ledger.ledger.stats import LedgerStats
from coop_ledger.ledger.withdrawals import WithdrawalService, debit_entry_id

__all__ = [
    "BalanceCalculator",
    "LedgerContext",
    "LedgerStats",
    "LoanService",
    "MembershipService",
    "ReconciliationOrchestrator",
    "ReconciliationResult",
    "RepaymentService",
    "SavingsService",
    "WithdrawalService",
    "approve_loan",
    "debit_entry_id",
    "reject_loan",
    "repay_loan",
    "sum_confirmed",
]
