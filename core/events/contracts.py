"""
Ledgerline Events — Event Contract Registry
===========================================
Declares, per event type, the stable context keys an event may carry.

Events are lean: a transition block plus a curated context, enough
for downstream routing without calling back into the Ledger. No
before/after entity dumps.

Rules:
- Event types follow entity.subject.action (minimum 3 segments)
- One contract per event type
- Thread-safe, in-memory only
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Iterable, Optional

from core.events.errors import (
    DuplicateEventContract,
    EventContractViolation,
    InvalidEventTypeFormat,
    UnknownEventType,
)

logger = logging.getLogger("ledgerline.events")

DEFAULT_EVENT_VERSION = 1


@dataclass(frozen=True)
class EventContract:
    event_type: str
    context_keys: frozenset[str]
    event_version: int = DEFAULT_EVENT_VERSION


class EventContractRegistry:
    def __init__(self):
        self._contracts: dict[str, EventContract] = {}
        self._lock = Lock()

    @staticmethod
    def _validate_event_type_format(event_type: str) -> None:
        if not event_type or not isinstance(event_type, str):
            raise InvalidEventTypeFormat(event_type or "")
        if len(event_type.strip().split(".")) < 3:
            raise InvalidEventTypeFormat(event_type)

    def declare(
        self,
        event_type: str,
        context_keys: Iterable[str],
        event_version: int = DEFAULT_EVENT_VERSION,
    ) -> EventContract:
        self._validate_event_type_format(event_type)
        contract = EventContract(
            event_type=event_type,
            context_keys=frozenset(context_keys),
            event_version=event_version,
        )
        with self._lock:
            existing = self._contracts.get(event_type)
            if existing is not None:
                if existing == contract:
                    return existing
                raise DuplicateEventContract(event_type)
            self._contracts[event_type] = contract
        logger.debug(f"Event contract declared: {event_type}")
        return contract

    def get(self, event_type: str) -> Optional[EventContract]:
        with self._lock:
            return self._contracts.get(event_type)

    def require(self, event_type: str) -> EventContract:
        contract = self.get(event_type)
        if contract is None:
            raise UnknownEventType(event_type)
        return contract

    def check_context(self, event_type: str, context_keys: Iterable[str]) -> EventContract:
        contract = self.require(event_type)
        undeclared = frozenset(context_keys) - contract.context_keys
        if undeclared:
            raise EventContractViolation(event_type, undeclared)
        return contract

    def event_types(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._contracts)
