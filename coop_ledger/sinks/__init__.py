"""Event sinks for committed ledger changes."""

from coop_ledger.config import LedgerConfig
from coop_ledger.sinks.base import EventSink, event_to_dict
from coop_ledger.sinks.console import ConsoleSink
from coop_ledger.sinks.json_file import JsonFileSink
from coop_ledger.sinks.publisher import EventPublisher

__all__ = [
    "ConsoleSink",
    "EventPublisher",
    "EventSink",
    "JsonFileSink",
    "create_sinks",
    "event_to_dict",
]


def create_sinks(config: LedgerConfig) -> list[EventSink]:
    """Build the sinks selected by ``EVENT_SINK``.

    The Kafka sink is imported lazily so confluent-kafka is only loaded when
    it is actually used.
    """
    events = config.events
    events.validate()
    if events.sink == "console":
        return [ConsoleSink()]
    if events.sink == "json":
        return [JsonFileSink(events.output_dir)]
    if events.sink == "kafka":
        from coop_ledger.sinks.kafka import KafkaSink

        return [KafkaSink(config.kafka)]
    return []
