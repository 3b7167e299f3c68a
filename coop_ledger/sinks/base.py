"""Event sink interface and envelope serialization."""

from abc import ABC, abstractmethod
from dataclasses import fields

from coop_ledger.models.base import Event
from coop_ledger.models.serialization import serialize_value


def event_to_dict(event: Event) -> dict:
    """Convert an event envelope to a JSON-ready dict."""
    return {f.name: serialize_value(getattr(event, f.name)) for f in fields(event)}


class EventSink(ABC):
    """Destination for committed ledger events."""

    @abstractmethod
    def write_event(self, event: Event) -> None:
        """Deliver one event; raise SinkError on failure."""

    def close(self) -> None:
        """Flush buffered events and release resources."""
