"""Base models shared across ledger entities."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from coop_ledger.exceptions import InvalidInputError

CENTS = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Normalise an amount to a two-decimal ``Decimal``.

    Floats go through ``str`` so ``0.1`` becomes ``0.10`` and not its binary
    expansion. Raises InvalidInputError for anything that is not a finite number.
    """
    if isinstance(value, bool):
        raise InvalidInputError(f"Invalid amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InvalidInputError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite():
        raise InvalidInputError(f"Invalid amount: {value!r}")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass
class BankDetails:
    """Bank account used to disburse a loan or pay out a withdrawal."""

    bank_name: str
    account_number: str
    account_name: str

    def validate(self) -> None:
        """Raise InvalidInputError if any field is blank."""
        missing = [
            name
            for name in ("bank_name", "account_number", "account_name")
            if not str(getattr(self, name) or "").strip()
        ]
        if missing:
            raise InvalidInputError(f"Missing bank details: {', '.join(missing)}")


@dataclass
class Event:
    """Standard event envelope for ledger state changes."""

    event_id: str
    event_type: str  # entity.action (e.g., loan.approved)
    event_time: datetime
    source: str  # Service that committed the change
    subject: str  # Entity ID affected
    data: dict
    metadata: dict = field(default_factory=dict)
