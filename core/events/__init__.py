"""
Ledgerline Events — Public API
==============================
The Ledger commits truth. The emitter announces it, once, best effort.
Truth must exist before it is heard.

Reconciliation (core.events.reconciliation) reads the Ledger and is
imported explicitly.
"""

from core.events.contracts import EventContract, EventContractRegistry
from core.events.emitter import CompletionTriggerEmitter, EventEmitter
from core.events.envelope import EventEnvelope, Transition, build_envelope, new_event_id
from core.events.errors import (
    DuplicateEventContract,
    EventContractViolation,
    EventDeliveryError,
    EventError,
    InvalidEventTypeFormat,
    UnknownEventType,
)
from core.events.monitor import DeliveryMonitor, DeliveryStats
from core.events.sinks import EventSink, InMemoryEventSink, NullEventSink, WebhookEventSink

__all__ = [
    "CompletionTriggerEmitter",
    "DeliveryMonitor",
    "DeliveryStats",
    "DuplicateEventContract",
    "EventContract",
    "EventContractRegistry",
    "EventContractViolation",
    "EventDeliveryError",
    "EventEmitter",
    "EventEnvelope",
    "EventError",
    "EventSink",
    "InMemoryEventSink",
    "InvalidEventTypeFormat",
    "NullEventSink",
    "Transition",
    "UnknownEventType",
    "WebhookEventSink",
    "build_envelope",
    "new_event_id",
]
