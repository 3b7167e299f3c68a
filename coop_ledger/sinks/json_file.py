"""JSON Lines audit log sink."""

import json
from pathlib import Path
from typing import TextIO

from coop_ledger.exceptions import SinkError
from coop_ledger.models.base import Event
from coop_ledger.sinks.base import EventSink, event_to_dict


class JsonFileSink(EventSink):
    """Append events to one JSON Lines file per entity.

    ``loan.approved`` and ``loan.rejected`` both land in ``loan.jsonl``.
    Files are opened lazily in append mode and flushed after every event so
    the audit trail survives a crash of the calling process.
    """

    def __init__(self, output_dir: str | Path) -> None:
        """Initialize JSON Lines sink.

        Parameters
        ----------
        output_dir : str | Path
            Directory to write ``<entity>.jsonl`` files.
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self._files: dict[str, TextIO] = {}
        self._counts: dict[str, int] = {}

    def _file_for(self, entity: str) -> TextIO:
        handle = self._files.get(entity)
        if handle is None:
            handle = open(self.output_dir / f"{entity}.jsonl", "a", encoding="utf-8")
            self._files[entity] = handle
        return handle

    def write_event(self, event: Event) -> None:
        entity = event.event_type.split(".", 1)[0]
        line = json.dumps(event_to_dict(event), ensure_ascii=False)
        try:
            handle = self._file_for(entity)
            handle.write(line + "\n")
            handle.flush()
        except OSError as e:
            raise SinkError(f"Cannot write {event.event_type} to {self.output_dir}: {e}") from e
        self._counts[entity] = self._counts.get(entity, 0) + 1

    def close(self) -> None:
        """Close all open files and print summary."""
        for handle in self._files.values():
            handle.close()
        self._files.clear()
        print(f"Event logs written to: {self.output_dir}")
        for entity, count in sorted(self._counts.items()):
            print(f"  {entity}: {count} events")
