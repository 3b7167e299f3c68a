"""Tests for event sinks and the publisher."""

import json
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from confluent_kafka import KafkaException

from coop_ledger.config import EventsConfig, KafkaConfig, LedgerConfig
from coop_ledger.exceptions import ConfigurationError, SinkError
from coop_ledger.models import Event
from coop_ledger.sinks import ConsoleSink, EventPublisher, JsonFileSink, create_sinks, event_to_dict
from coop_ledger.sinks.base import EventSink

EVENT_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_event(event_type: str = "loan.approved", member_id: str | None = "m-1") -> Event:
    return Event(
        event_id="evt-1",
        event_type=event_type,
        event_time=EVENT_TIME,
        source="coop-ledger",
        subject="loan-1",
        data={"approved_amount": "4000.00"},
        metadata={"member_id": member_id} if member_id else {},
    )


class FailingSink(EventSink):
    def write_event(self, event: Event) -> None:
        raise SinkError("broker down")


class TestEventToDict:
    """Tests for event_to_dict."""

    def test_serializes_envelope(self) -> None:
        result = event_to_dict(make_event())

        assert result["event_type"] == "loan.approved"
        assert result["event_time"] == "2024-03-01T12:00:00+00:00"
        assert result["metadata"] == {"member_id": "m-1"}
        assert json.loads(json.dumps(result)) == result


class TestConsoleSink:
    """Tests for ConsoleSink."""

    def test_write_event(self, capsys: pytest.CaptureFixture) -> None:
        sink = ConsoleSink()
        sink.write_event(make_event())
        captured = capsys.readouterr()

        assert json.loads(captured.out)["subject"] == "loan-1"
        assert sink._counts == {"loan.approved": 1}

    def test_pretty(self, capsys: pytest.CaptureFixture) -> None:
        ConsoleSink(pretty=True).write_event(make_event())

        assert '\n  "event_id"' in capsys.readouterr().out

    def test_close_prints_summary(self, capsys: pytest.CaptureFixture) -> None:
        sink = ConsoleSink()
        sink.write_event(make_event())
        sink.write_event(make_event())
        capsys.readouterr()

        sink.close()

        assert "loan.approved: 2 events" in capsys.readouterr().out


class TestJsonFileSink:
    """Tests for JsonFileSink."""

    def test_appends_per_entity(self, tmp_path: Path) -> None:
        sink = JsonFileSink(tmp_path / "events")
        sink.write_event(make_event("loan.approved"))
        sink.write_event(make_event("loan.fully_repaid"))
        sink.write_event(make_event("member.activated"))
        sink.close()

        loan_lines = (tmp_path / "events" / "loan.jsonl").read_text().splitlines()
        member_lines = (tmp_path / "events" / "member.jsonl").read_text().splitlines()
        assert [json.loads(line)["event_type"] for line in loan_lines] == [
            "loan.approved",
            "loan.fully_repaid",
        ]
        assert len(member_lines) == 1

    def test_reopens_in_append_mode(self, tmp_path: Path) -> None:
        for _ in range(2):
            sink = JsonFileSink(tmp_path)
            sink.write_event(make_event())
            sink.close()

        assert len((tmp_path / "loan.jsonl").read_text().splitlines()) == 2

    def test_write_failure_raises_sink_error(self, tmp_path: Path) -> None:
        sink = JsonFileSink(tmp_path)
        with patch("builtins.open", side_effect=PermissionError("read-only")):
            with pytest.raises(SinkError):
                sink.write_event(make_event())


class TestKafkaSink:
    """Tests for KafkaSink."""

    @patch("coop_ledger.sinks.kafka.Producer")
    def test_init_with_string(self, mock_producer_class: MagicMock) -> None:
        from coop_ledger.sinks.kafka import KafkaSink

        sink = KafkaSink("localhost:9092")

        assert sink.config.bootstrap_servers == "localhost:9092"
        assert sink.topic == "coop.ledger.events"
        mock_producer_class.assert_called_once_with(
            {"bootstrap.servers": "localhost:9092", "acks": "all", "retries": 3}
        )

    @patch("coop_ledger.sinks.kafka.Producer")
    def test_write_event_keyed_by_member(self, mock_producer_class: MagicMock) -> None:
        from coop_ledger.sinks.kafka import KafkaSink

        mock_producer = mock_producer_class.return_value
        sink = KafkaSink(KafkaConfig(topic="test.events"))

        sink.write_event(make_event())

        kwargs = mock_producer.produce.call_args[1]
        assert kwargs["topic"] == "test.events"
        assert kwargs["key"] == b"m-1"
        assert json.loads(kwargs["value"])["event_id"] == "evt-1"
        mock_producer.poll.assert_called_with(0)
        assert sink.stats.sent == 1

    @patch("coop_ledger.sinks.kafka.Producer")
    def test_key_falls_back_to_subject(self, mock_producer_class: MagicMock) -> None:
        from coop_ledger.sinks.kafka import KafkaSink

        sink = KafkaSink("localhost:9092")
        sink.write_event(make_event(member_id=None))

        assert mock_producer_class.return_value.produce.call_args[1]["key"] == b"loan-1"

    @patch("coop_ledger.sinks.kafka.Producer")
    def test_buffer_full_raises_sink_error(self, mock_producer_class: MagicMock) -> None:
        from coop_ledger.sinks.kafka import KafkaSink

        mock_producer_class.return_value.produce.side_effect = BufferError("queue full")
        sink = KafkaSink("localhost:9092")

        with pytest.raises(SinkError):
            sink.write_event(make_event())
        assert sink.stats.sent == 0

    @patch("coop_ledger.sinks.kafka.Producer")
    def test_kafka_exception_raises_sink_error(self, mock_producer_class: MagicMock) -> None:
        from coop_ledger.sinks.kafka import KafkaSink

        mock_producer_class.return_value.produce.side_effect = KafkaException("broker down")
        sink = KafkaSink("localhost:9092")

        with pytest.raises(SinkError):
            sink.write_event(make_event())

    @patch("coop_ledger.sinks.kafka.Producer")
    def test_delivery_callbacks(self, mock_producer_class: MagicMock) -> None:
        from coop_ledger.sinks.kafka import KafkaSink

        sink = KafkaSink("localhost:9092")
        mock_msg = MagicMock()
        mock_msg.topic.return_value = "coop.ledger.events"
        mock_msg.partition.return_value = 0
        mock_msg.offset.return_value = 1

        sink._delivery_callback(None, mock_msg)
        sink._delivery_callback("Connection error", None)

        assert sink.stats.delivered == 1
        assert sink.stats.failed == 1
        assert sink.stats.success_rate == 0.5

    @patch("coop_ledger.sinks.kafka.Producer")
    def test_close_flushes(self, mock_producer_class: MagicMock) -> None:
        from coop_ledger.sinks.kafka import KafkaSink

        sink = KafkaSink("localhost:9092")
        sink.close()

        mock_producer_class.return_value.flush.assert_called_once_with(30.0)


class TestEventPublisher:
    """Tests for EventPublisher."""

    def test_publish_builds_envelope(self) -> None:
        sink = MagicMock(spec=EventSink)
        publisher = EventPublisher([sink], clock=lambda: EVENT_TIME)

        event = publisher.publish("member.activated", "m-1", {"payment_id": "p-1"}, member_id="m-1")

        sink.write_event.assert_called_once_with(event)
        assert event.event_time == EVENT_TIME
        assert event.source == "coop-ledger"
        assert event.metadata == {"member_id": "m-1"}
        assert publisher.published == 1

    def test_sink_failure_is_counted_not_raised(self) -> None:
        healthy = MagicMock(spec=EventSink)
        publisher = EventPublisher([FailingSink(), healthy])

        publisher.publish("loan.approved", "loan-1", {"approved_amount": Decimal("1.00")})

        assert publisher.failures == 1
        healthy.write_event.assert_called_once()

    def test_no_sinks(self) -> None:
        publisher = EventPublisher()
        event = publisher.publish("loan.rejected", "loan-1", {})

        assert event.metadata == {}
        assert publisher.published == 1

    def test_close_closes_sinks(self) -> None:
        sink = MagicMock(spec=EventSink)
        EventPublisher([sink]).close()

        sink.close.assert_called_once()


class TestCreateSinks:
    """Tests for create_sinks."""

    def test_none(self) -> None:
        assert create_sinks(LedgerConfig()) == []

    def test_console(self) -> None:
        sinks = create_sinks(LedgerConfig(events=EventsConfig(sink="console")))
        assert isinstance(sinks[0], ConsoleSink)

    def test_json(self, tmp_path: Path) -> None:
        sinks = create_sinks(LedgerConfig(events=EventsConfig(sink="json", output_dir=tmp_path)))
        assert isinstance(sinks[0], JsonFileSink)

    @patch("coop_ledger.sinks.kafka.Producer")
    def test_kafka(self, mock_producer_class: MagicMock) -> None:
        from coop_ledger.sinks.kafka import KafkaSink

        sinks = create_sinks(LedgerConfig(events=EventsConfig(sink="kafka")))
        assert isinstance(sinks[0], KafkaSink)

    def test_unknown(self) -> None:
        with pytest.raises(ConfigurationError):
            create_sinks(LedgerConfig(events=EventsConfig(sink="webhook")))
