"""Conversion between ledger records and store documents.

Documents are flat JSON-compatible dicts keyed by ``"id"``. Decimals travel
as strings so amounts survive any store without float rounding, enums as
their values and datetimes as ISO-8601.
"""

import types
import typing
from dataclasses import MISSING, fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, TypeVar

from coop_ledger.exceptions import InvalidInputError
from coop_ledger.models.base import to_money

T = TypeVar("T")

DOCUMENT_ID = "id"


def serialize_value(value: Any) -> Any:
    """Serialize a value for a JSON document."""
    if isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, date):
        return value.isoformat()
    elif is_dataclass(value) and not isinstance(value, type):
        return {f.name: serialize_value(getattr(value, f.name)) for f in fields(value)}
    elif isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [serialize_value(v) for v in value]
    return value


def to_document(record: Any) -> dict[str, Any]:
    """Convert a record to a store document, renaming its id field to ``id``."""
    id_field = getattr(record, "ID_FIELD", None)
    document = {}
    for f in fields(record):
        key = DOCUMENT_ID if f.name == id_field else f.name
        document[key] = serialize_value(getattr(record, f.name))
    return document


def to_fields(**values: Any) -> dict[str, Any]:
    """Serialize keyword arguments for a partial ``update_document`` call."""
    return {key: serialize_value(value) for key, value in values.items()}


def from_document(cls: type[T], document: dict[str, Any]) -> T:
    """Build a record of type ``cls`` from a store document.

    Raises
    ------
    InvalidInputError
        If the document has unknown fields, lacks a required field, or holds a
        value that cannot be coerced to the declared type.
    """
    if not isinstance(document, dict):
        raise InvalidInputError(f"{cls.__name__} document must be a mapping, got {type(document).__name__}")

    id_field = getattr(cls, "ID_FIELD", None)
    data = dict(document)
    if id_field is not None and DOCUMENT_ID in data:
        data[id_field] = data.pop(DOCUMENT_ID)

    hints = typing.get_type_hints(cls)
    declared = {f.name: f for f in fields(cls)}

    unknown = sorted(set(data) - set(declared))
    if unknown:
        raise InvalidInputError(f"Unknown {cls.__name__} fields: {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    for name, f in declared.items():
        if name not in data:
            if f.default is MISSING and f.default_factory is MISSING:
                raise InvalidInputError(f"{cls.__name__} is missing required field '{name}'")
            continue
        kwargs[name] = _coerce(data[name], hints[name], f"{cls.__name__}.{name}")
    return cls(**kwargs)


def _coerce(value: Any, hint: Any, where: str) -> Any:
    origin = typing.get_origin(hint)
    args = typing.get_args(hint)

    if origin in (typing.Union, types.UnionType):
        if value is None:
            if type(None) in args:
                return None
            raise InvalidInputError(f"{where} cannot be null")
        inner = [a for a in args if a is not type(None)]
        return _coerce(value, inner[0], where)

    if value is None:
        raise InvalidInputError(f"{where} cannot be null")

    if origin is list:
        if not isinstance(value, list):
            raise InvalidInputError(f"{where} must be a list")
        return [_coerce(v, args[0], where) for v in value] if args else list(value)

    if hint is Decimal:
        return to_money(value)
    if hint is datetime:
        return _parse_datetime(value, where)
    if isinstance(hint, type) and issubclass(hint, Enum):
        try:
            return hint(value)
        except ValueError as e:
            raise InvalidInputError(f"{where} has invalid value {value!r}") from e
    if hint is int:
        if isinstance(value, bool) or not isinstance(value, (int, str, float)):
            raise InvalidInputError(f"{where} must be an integer")
        try:
            number = int(value)
        except ValueError as e:
            raise InvalidInputError(f"{where} must be an integer") from e
        if isinstance(value, float) and value != number:
            raise InvalidInputError(f"{where} must be an integer")
        return number
    if hint is str:
        if not isinstance(value, str):
            raise InvalidInputError(f"{where} must be a string")
        return value
    if hint is dict:
        if not isinstance(value, dict):
            raise InvalidInputError(f"{where} must be a mapping")
        return value
    if is_dataclass(hint):
        if isinstance(value, hint):
            return value
        return from_document(hint, value)
    return value


def _parse_datetime(value: Any, where: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise InvalidInputError(f"{where} must be an ISO-8601 timestamp")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as e:
        raise InvalidInputError(f"{where} must be an ISO-8601 timestamp") from e
