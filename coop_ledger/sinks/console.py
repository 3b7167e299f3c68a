"""Console sink for debugging and development."""

import json

from coop_ledger.models.base import Event
from coop_ledger.sinks.base import EventSink, event_to_dict


class ConsoleSink(EventSink):
    """Print events to stdout as JSON."""

    def __init__(self, pretty: bool = False) -> None:
        """Initialize console sink.

        Parameters
        ----------
        pretty : bool
            Pretty-print JSON output.
        """
        self.pretty = pretty
        self._counts: dict[str, int] = {}

    def write_event(self, event: Event) -> None:
        data = event_to_dict(event)
        if self.pretty:
            print(json.dumps(data, indent=2, ensure_ascii=False))
        else:
            print(json.dumps(data, ensure_ascii=False))
        self._counts[event.event_type] = self._counts.get(event.event_type, 0) + 1

    def close(self) -> None:
        """Print summary."""
        print(f"\n{'='*60}")
        print("Console Sink Summary")
        print("=" * 60)
        for event_type, count in sorted(self._counts.items()):
            print(f"  {event_type}: {count} events")
