"""Kafka sink for streaming ledger events."""

import json
import logging
from dataclasses import dataclass
from typing import Any

from confluent_kafka import KafkaException, Producer

from coop_ledger.config import KafkaConfig
from coop_ledger.exceptions import SinkError
from coop_ledger.models.base import Event
from coop_ledger.sinks.base import EventSink, event_to_dict

logger = logging.getLogger(__name__)


@dataclass
class ProducerStats:
    """Track producer delivery statistics."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        total = self.delivered + self.failed
        return self.delivered / total if total > 0 else 0.0


class KafkaSink(EventSink):
    """Publish events to a single Kafka topic.

    Messages are keyed by the member id from the event metadata (falling back
    to the event subject) so every event for one member lands in the same
    partition and keeps its order.
    """

    def __init__(self, config: KafkaConfig | str, producer: Any = None) -> None:
        """Initialize Kafka sink.

        Parameters
        ----------
        config : KafkaConfig | str
            Producer configuration or bootstrap servers string.
        producer : Any
            Pre-built producer (tests).
        """
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)

        self.config = config
        self.topic = config.topic
        self.producer = producer if producer is not None else Producer(config.to_dict())
        self.stats = ProducerStats()

    def _delivery_callback(self, err: Any, msg: Any) -> None:
        """Handle delivery reports."""
        if err:
            self.stats.failed += 1
            logger.error("Delivery failed: %s", err)
        else:
            self.stats.delivered += 1
            logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

    def write_event(self, event: Event) -> None:
        key = event.metadata.get("member_id") or event.subject
        value = json.dumps(event_to_dict(event), ensure_ascii=False).encode("utf-8")
        try:
            self.producer.produce(
                topic=self.topic,
                key=key.encode("utf-8") if key else None,
                value=value,
                callback=self._delivery_callback,
            )
        except (BufferError, KafkaException) as e:
            raise SinkError(f"Cannot produce {event.event_type} to {self.topic}: {e}") from e
        self.stats.sent += 1
        self.producer.poll(0)

    def flush(self, timeout: float = 30.0) -> None:
        """Flush pending messages."""
        self.producer.flush(timeout)

    def close(self) -> None:
        """Flush and close the producer."""
        self.flush()
        logger.info(
            "Kafka sink closed: sent=%d, delivered=%d, failed=%d",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
        )
