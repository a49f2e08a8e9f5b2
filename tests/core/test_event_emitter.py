"""
Tests for core.events — contracts, envelopes, sinks, the best-effort
emitter and the delivery monitor.
"""

import json
import logging
import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from decimal import Decimal
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from core.events import (
    CompletionTriggerEmitter,
    DeliveryMonitor,
    DuplicateEventContract,
    EventContractRegistry,
    EventContractViolation,
    EventDeliveryError,
    EventEmitter,
    InMemoryEventSink,
    InvalidEventTypeFormat,
    NullEventSink,
    Transition,
    UnknownEventType,
    WebhookEventSink,
    build_envelope,
)

NOW = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)
EVENT = "contract.lifecycle.activated.v1"


class FailingSink:
    def __init__(self):
        self.attempts = 0

    def publish(self, message, timeout):
        self.attempts += 1
        raise EventDeliveryError("sink unreachable")


@pytest.fixture
def contracts():
    registry = EventContractRegistry()
    registry.declare(EVENT, ["user_id", "provider_id", "activation_date"])
    return registry


def _envelope(contracts, **overrides):
    fields = dict(
        event_type=EVENT,
        event_source="ledgerline.ledger",
        entity_id="c-1",
        entity_type="Contract",
        trace_id="trace-1",
        timestamp=NOW,
        context={"user_id": "user-42", "activation_date": date(2026, 2, 1)},
        transition=Transition("PENDING_ACTIVATION", "ACTIVE"),
    )
    fields.update(overrides)
    return build_envelope(contracts, **fields)


# ── Contracts ────────────────────────────────────────────────

class TestEventContractRegistry:
    def test_event_type_needs_three_segments(self):
        with pytest.raises(InvalidEventTypeFormat):
            EventContractRegistry().declare("contract.activated", [])

    def test_identical_redeclaration_is_idempotent(self, contracts):
        contracts.declare(EVENT, ["activation_date", "provider_id", "user_id"])
        assert contracts.event_types() == frozenset({EVENT})

    def test_conflicting_redeclaration(self, contracts):
        with pytest.raises(DuplicateEventContract):
            contracts.declare(EVENT, ["user_id"])

    def test_unknown_event_type(self, contracts):
        with pytest.raises(UnknownEventType):
            contracts.check_context("contract.lifecycle.vanished.v1", [])


# ── Envelope ─────────────────────────────────────────────────

class TestEnvelope:
    def test_canonical_shape(self, contracts):
        envelope = _envelope(contracts)
        data = envelope.to_dict()
        assert data["event_type"] == EVENT
        assert data["event_version"] == 1
        assert data["timestamp"] == NOW.isoformat()
        assert data["entity"] == {"id": "c-1", "type": "Contract"}
        assert data["payload"] == {
            "transition": {"from_status": "PENDING_ACTIVATION", "to_status": "ACTIVE"},
            "context": {"user_id": "user-42", "activation_date": "2026-02-01"},
        }
        json.dumps(data)

    def test_lean_contract_rejects_undeclared_keys(self, contracts):
        with pytest.raises(EventContractViolation) as exc_info:
            _envelope(contracts, context={"user_id": "u", "full_entity": {"a": 1}})
        assert exc_info.value.undeclared == frozenset({"full_entity"})

    def test_preallocated_event_id_is_kept(self, contracts):
        assert _envelope(contracts, event_id="evt-1").event_id == "evt-1"

    def test_decimals_become_strings(self, contracts):
        contracts.declare("contract.price.increase_reported.v1", ["new_monthly_fee"])
        envelope = _envelope(
            contracts,
            event_type="contract.price.increase_reported.v1",
            context={"new_monthly_fee": Decimal("44.50")},
            transition=None,
        )
        assert envelope.context == {"new_monthly_fee": "44.50"}
        assert "transition" not in envelope.to_dict()["payload"]


# ── Emitter ──────────────────────────────────────────────────

class TestEventEmitter:
    def test_successful_publish_is_logged(self, contracts, caplog):
        sink = InMemoryEventSink()
        envelope = _envelope(contracts)
        with caplog.at_level(logging.INFO, logger="ledgerline.events"):
            EventEmitter(sink).emit(envelope)
        assert sink.delivered_ids() == {envelope.event_id}
        assert "EventPublished" in caplog.text

    def test_failure_is_logged_never_raised(self, contracts, caplog):
        sink = FailingSink()
        envelope = _envelope(contracts)
        EventEmitter(sink).emit(envelope)

        assert sink.attempts == 1
        records = [r for r in caplog.records if "EventPublishFailed" in r.getMessage()]
        assert len(records) == 1
        assert records[0].levelno == logging.ERROR
        assert records[0].delivery["event_id"] == envelope.event_id
        assert records[0].delivery["error_type"] == "EventDeliveryError"

    def test_no_retry_on_failure(self, contracts):
        sink = FailingSink()
        emitter = EventEmitter(sink)
        emitter.emit(_envelope(contracts))
        emitter.emit(_envelope(contracts))
        assert sink.attempts == 2

    def test_executor_delivery(self, contracts):
        sink = InMemoryEventSink()
        envelope = _envelope(contracts)
        with ThreadPoolExecutor(max_workers=1) as executor:
            EventEmitter(sink, executor=executor).emit(envelope)
        assert sink.delivered_ids() == {envelope.event_id}

    def test_shut_down_executor_counts_as_failure(self, contracts):
        monitor = DeliveryMonitor(min_samples=1, failure_threshold=1.0)
        executor = ThreadPoolExecutor(max_workers=1)
        executor.shutdown()
        EventEmitter(InMemoryEventSink(), executor=executor, monitor=monitor).emit(
            _envelope(contracts)
        )
        assert monitor.stats().failed_total == 1

    def test_outcomes_recorded_on_monitor(self, contracts):
        monitor = DeliveryMonitor()
        EventEmitter(InMemoryEventSink(), monitor=monitor).emit(_envelope(contracts))
        EventEmitter(FailingSink(), monitor=monitor).emit(_envelope(contracts))
        stats = monitor.stats()
        assert (stats.published_total, stats.failed_total) == (1, 1)

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            EventEmitter(NullEventSink(), timeout=0)


class TestCompletionTriggerEmitter:
    def test_delivers_full_record(self):
        sink = InMemoryEventSink()
        record = {"entity_id": "task-1", "status": "COMPLETED", "attributes": {"x": 1}}
        CompletionTriggerEmitter(sink).trigger(record, trace_id="trace-1")
        assert sink.messages == [record]

    def test_failure_logged_on_task_logger(self, caplog):
        CompletionTriggerEmitter(FailingSink()).trigger({"entity_id": "task-1"}, trace_id="t")
        records = [r for r in caplog.records if r.name == "ledgerline.tasks"]
        assert "TaskCompletionTriggerFailed" in records[0].getMessage()


# ── Monitor ──────────────────────────────────────────────────

class TestDeliveryMonitor:
    def test_alerts_once_when_threshold_crossed(self, caplog):
        monitor = DeliveryMonitor(failure_threshold=0.5, window_size=4, min_samples=4)
        for outcome in (True, True, False, False, False):
            monitor.record(outcome)
        alerts = [r for r in caplog.records
                  if "EventDeliveryFailureRateExceeded" in r.getMessage()]
        assert len(alerts) == 1
        assert monitor.is_alerting

    def test_no_alert_below_min_samples(self, caplog):
        monitor = DeliveryMonitor(failure_threshold=0.1, window_size=10, min_samples=5)
        for _ in range(4):
            monitor.record(False)
        assert not monitor.is_alerting
        assert "EventDeliveryFailureRateExceeded" not in caplog.text

    def test_recovers_below_threshold(self):
        monitor = DeliveryMonitor(failure_threshold=0.5, window_size=2, min_samples=2)
        monitor.record(False)
        monitor.record(False)
        assert monitor.is_alerting
        monitor.record(True)
        monitor.record(True)
        assert not monitor.is_alerting

    def test_stats(self):
        monitor = DeliveryMonitor(window_size=3)
        for outcome in (False, True, True, True):
            monitor.record(outcome)
        stats = monitor.stats()
        assert stats.samples == 3
        assert stats.failures == 0
        assert stats.failed_total == 1
        assert stats.failure_rate == 0.0

    def test_threshold_bounds(self):
        with pytest.raises(ValueError):
            DeliveryMonitor(failure_threshold=0)


# ── Webhook sink ─────────────────────────────────────────────

class _Receiver(BaseHTTPRequestHandler):
    status = 204
    received = []

    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        type(self).received.append(json.loads(self.rfile.read(length)))
        self.send_response(type(self).status)
        self.end_headers()

    def log_message(self, *args):
        pass


@pytest.fixture
def receiver():
    handler = type("Receiver", (_Receiver,), {"received": [], "status": 204})
    server = HTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server, handler
    finally:
        server.shutdown()
        server.server_close()


class TestWebhookEventSink:
    def test_posts_json(self, receiver):
        server, handler = receiver
        url = f"http://127.0.0.1:{server.server_port}/events"
        WebhookEventSink(url).publish({"event_id": "e-1"}, timeout=2.0)
        assert handler.received == [{"event_id": "e-1"}]

    def test_non_2xx_is_delivery_error(self, receiver):
        server, handler = receiver
        handler.status = 503
        url = f"http://127.0.0.1:{server.server_port}/events"
        with pytest.raises(EventDeliveryError, match="503"):
            WebhookEventSink(url).publish({"event_id": "e-1"}, timeout=2.0)

    def test_unreachable_is_delivery_error(self):
        with socket.socket() as probe:
            probe.bind(("127.0.0.1", 0))
            port = probe.getsockname()[1]
        with pytest.raises(EventDeliveryError, match="unreachable"):
            WebhookEventSink(f"http://127.0.0.1:{port}/events").publish({}, timeout=1.0)

    def test_url_required(self):
        with pytest.raises(ValueError):
            WebhookEventSink("")
