"""Fan committed ledger changes out to event sinks."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from coop_ledger.exceptions import SinkError
from coop_ledger.models.base import Event
from coop_ledger.sinks.base import EventSink

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventPublisher:
    """Build event envelopes and hand them to every configured sink.

    Publication happens after the store write committed, so a failing sink
    must not surface to the caller: SinkError is logged and counted per sink
    and the next sink still receives the event.

    Parameters
    ----------
    sinks : list[EventSink] | None
        Destinations; an empty list disables publication.
    clock : Callable[[], datetime]
        Source of event timestamps.
    source : str
        Value of the envelope's ``source`` field.
    """

    def __init__(
        self,
        sinks: list[EventSink] | None = None,
        clock: Callable[[], datetime] = utc_now,
        source: str = "coop-ledger",
    ) -> None:
        self.sinks = list(sinks or [])
        self.clock = clock
        self.source = source
        self.published = 0
        self.failures = 0

    def publish(
        self,
        event_type: str,
        subject: str,
        data: dict[str, Any],
        member_id: str | None = None,
    ) -> Event:
        """Publish one event and return the envelope."""
        event = Event(
            event_id=uuid.uuid4().hex,
            event_type=event_type,
            event_time=self.clock(),
            source=self.source,
            subject=subject,
            data=data,
            metadata={"member_id": member_id} if member_id else {},
        )
        for sink in self.sinks:
            try:
                sink.write_event(event)
            except SinkError as e:
                self.failures += 1
                logger.error(
                    "Sink %s dropped %s for %s: %s",
                    type(sink).__name__, event_type, subject, e,
                )
        self.published += 1
        logger.debug("Published %s for %s", event_type, subject)
        return event

    def close(self) -> None:
        """Close every sink."""
        for sink in self.sinks:
            sink.close()
