"""
Ledgerline Events — Canonical Envelope
======================================
{
    event_id, event_type, event_source, event_version, timestamp,
    trace_id,
    entity:  {id, type},
    payload: {transition?: {from_status, to_status}, context: {...}}
}

One envelope per successful command application. The event_id is
allocated before commit and written into the entity's history entry,
which is what lets reconciliation match history against delivered
events later.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from core.events.contracts import EventContractRegistry


@dataclass(frozen=True)
class Transition:
    from_status: Optional[str]
    to_status: str

    def to_dict(self) -> dict:
        return {"from_status": self.from_status, "to_status": self.to_status}


@dataclass(frozen=True)
class EventEnvelope:
    event_id: str
    event_type: str
    event_source: str
    event_version: int
    timestamp: datetime
    trace_id: str
    entity_id: str
    entity_type: str
    context: Mapping[str, Any] = field(default_factory=dict)
    transition: Optional[Transition] = None

    def __post_init__(self):
        if not self.event_id:
            raise ValueError("event_id must be non-empty.")
        if not self.trace_id:
            raise ValueError("trace_id must be non-empty.")
        if not isinstance(self.timestamp, datetime):
            raise ValueError("timestamp must be a datetime.")

    def to_dict(self) -> dict:
        payload: dict = {"context": dict(self.context)}
        if self.transition is not None:
            payload["transition"] = self.transition.to_dict()
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "event_source": self.event_source,
            "event_version": self.event_version,
            "timestamp": self.timestamp.isoformat(),
            "trace_id": self.trace_id,
            "entity": {"id": self.entity_id, "type": self.entity_type},
            "payload": payload,
        }


def normalize_context_value(value: Any) -> Any:
    """Context values must survive JSON: dates as ISO strings, Decimals as str."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [normalize_context_value(v) for v in value]
    if isinstance(value, Mapping):
        return {k: normalize_context_value(v) for k, v in value.items()}
    return value


def new_event_id() -> str:
    return str(uuid.uuid4())


def build_envelope(
    contracts: EventContractRegistry,
    *,
    event_type: str,
    event_source: str,
    entity_id: str,
    entity_type: str,
    trace_id: str,
    timestamp: datetime,
    context: Mapping[str, Any],
    transition: Optional[Transition] = None,
    event_id: Optional[str] = None,
) -> EventEnvelope:
    """
    Build an envelope after checking the lean-context contract.

    Raises EventContractViolation / UnknownEventType.
    """
    contract = contracts.check_context(event_type, context.keys())
    return EventEnvelope(
        event_id=event_id or new_event_id(),
        event_type=event_type,
        event_source=event_source,
        event_version=contract.event_version,
        timestamp=timestamp,
        trace_id=trace_id,
        entity_id=entity_id,
        entity_type=entity_type,
        context={k: normalize_context_value(v) for k, v in context.items()},
        transition=transition,
    )
