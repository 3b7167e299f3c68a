"""Custom exception hierarchy for coop-ledger."""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_STATE = "INVALID_STATE"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    NOT_FOUND = "NOT_FOUND"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    CONFIGURATION = "CONFIGURATION"
    SINK = "SINK"


class LedgerError(Exception):
    """Base exception for all coop-ledger errors."""

    kind: ErrorKind = ErrorKind.INVALID_STATE
    retryable: bool = False


class InvalidInputError(LedgerError):
    """Raised when request parameters are malformed or out of range."""

    kind = ErrorKind.INVALID_INPUT


class InvalidStateError(LedgerError):
    """Raised when a record is not in the state an operation requires."""

    kind = ErrorKind.INVALID_STATE


class ConflictError(InvalidStateError):
    """Raised when a compare-and-set precondition no longer holds at write time."""


class InsufficientBalanceError(LedgerError):
    """Raised when a repayment exceeds the outstanding loan balance."""

    kind = ErrorKind.INSUFFICIENT_BALANCE


class InsufficientFundsError(LedgerError):
    """Raised when a withdrawal exceeds the member's savings balance."""

    kind = ErrorKind.INSUFFICIENT_FUNDS


class EntityNotFoundError(LedgerError):
    """Raised when a referenced record does not exist."""

    kind = ErrorKind.NOT_FOUND


class StoreUnavailableError(LedgerError):
    """Raised on a transient fault talking to the document store."""

    kind = ErrorKind.STORE_UNAVAILABLE
    retryable = True


class PartialApplicationError(StoreUnavailableError):
    """Raised when a multi-step operation stopped after committing some steps.

    Parameters
    ----------
    operation : str
        Name of the multi-step operation.
    failed_step : str
        Step whose write did not commit.
    completed_steps : list[str]
        Steps that committed before the failure.
    """

    def __init__(self, operation: str, failed_step: str, completed_steps: list[str]) -> None:
        self.operation = operation
        self.failed_step = failed_step
        self.completed_steps = list(completed_steps)
        done = ", ".join(self.completed_steps) or "none"
        super().__init__(f"{operation} failed at step '{failed_step}' (committed: {done})")


class ConfigurationError(LedgerError):
    """Raised when configuration is invalid or missing."""

    kind = ErrorKind.CONFIGURATION


class SinkError(LedgerError):
    """Raised when an event sink operation fails."""

    kind = ErrorKind.SINK
