"""
Ledgerline Ledger — Queries
===========================
Read-only views over ledger-owned entities.

    get_details(entity_id)              → status, attributes, computed
    get_history(entity_id)              → append-only history
    get_timeline_projection(entity_id)  → past history + future dates

Computed properties and projections are pure functions of the
snapshot and the injected clock. They never write, never call out,
and never guess: projections come from written terms only (or from
explicit hypothetical overrides supplied by the caller).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Protocol

from core.ledger.errors import EntityNotFound
from core.ledger.repository import EntityRepository
from core.ledger.snapshot import EntitySnapshot, HistoryEntry
from core.time.clock import Clock

HISTORY = "HISTORY"
PROJECTION = "PROJECTION"

ComputedProperty = Callable[[EntitySnapshot, datetime], Any]


class ComputedPropertyRegistry:
    """Named pure functions per entity type."""

    def __init__(self):
        self._properties: Dict[str, Dict[str, ComputedProperty]] = {}

    def register(self, entity_type: str, name: str, fn: ComputedProperty) -> None:
        by_name = self._properties.setdefault(entity_type, {})
        if name in by_name:
            raise ValueError(f"Computed property '{entity_type}.{name}' already registered.")
        by_name[name] = fn

    def names(self, entity_type: str) -> tuple[str, ...]:
        return tuple(sorted(self._properties.get(entity_type, {})))

    def evaluate(self, snapshot: EntitySnapshot, now: datetime) -> dict:
        return {
            name: fn(snapshot, now)
            for name, fn in sorted(self._properties.get(snapshot.entity_type, {}).items())
        }


def at_start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


@dataclass(frozen=True)
class TimelineEntry:
    kind: str
    at: datetime
    status: Optional[str]
    label: str
    detail: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.kind not in (HISTORY, PROJECTION):
            raise ValueError(f"Unknown timeline entry kind '{self.kind}'.")

    @classmethod
    def from_history(cls, entry: HistoryEntry) -> "TimelineEntry":
        return cls(
            kind=HISTORY,
            at=entry.occurred_at,
            status=entry.to_status,
            label=entry.command,
            detail={"sequence": entry.sequence, "trace_id": entry.trace_id},
        )

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "at": self.at.isoformat(),
            "status": self.status,
            "label": self.label,
            "detail": dict(self.detail),
        }


class Timeline:
    """
    Finite, chronologically ordered, restartable: iterating twice
    yields the same entries.
    """

    def __init__(self, entity_id: str, entries: Iterable[TimelineEntry]):
        self.entity_id = entity_id
        # sorted() is stable, so same-instant entries keep history order.
        self._entries = tuple(sorted(entries, key=lambda e: e.at))

    def __iter__(self) -> Iterator[TimelineEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def history(self) -> tuple[TimelineEntry, ...]:
        return tuple(e for e in self._entries if e.kind == HISTORY)

    def projections(self) -> tuple[TimelineEntry, ...]:
        return tuple(e for e in self._entries if e.kind == PROJECTION)

    def to_list(self) -> list[dict]:
        return [entry.to_dict() for entry in self._entries]


class TimelineProjector(Protocol):
    def project(
        self, snapshot: EntitySnapshot, terms: Mapping[str, Any], now: datetime
    ) -> Iterable[TimelineEntry]:
        ...


class LedgerQueries:
    def __init__(
        self,
        repository: EntityRepository,
        clock: Clock,
        *,
        computed: Optional[ComputedPropertyRegistry] = None,
        projectors: Optional[Mapping[str, TimelineProjector]] = None,
    ):
        self._repository = repository
        self._clock = clock
        self._computed = computed or ComputedPropertyRegistry()
        self._projectors = dict(projectors or {})

    def _load(self, entity_id: str, entity_type: Optional[str]) -> EntitySnapshot:
        snapshot = self._repository.get(entity_id)
        if snapshot is None or (entity_type and snapshot.entity_type != entity_type):
            raise EntityNotFound(entity_type or "Entity", entity_id)
        return snapshot

    def get_details(self, entity_id: str, entity_type: Optional[str] = None) -> dict:
        snapshot = self._load(entity_id, entity_type)
        return {
            "entity_id": snapshot.entity_id,
            "entity_type": snapshot.entity_type,
            "status": snapshot.status,
            "attributes": dict(snapshot.attributes),
            "computed": self._computed.evaluate(snapshot, self._clock.now_utc()),
        }

    def get_history(
        self, entity_id: str, entity_type: Optional[str] = None
    ) -> tuple[HistoryEntry, ...]:
        return self._load(entity_id, entity_type).history

    def get_timeline_projection(
        self,
        entity_id: str,
        hypothetical_terms: Optional[Mapping[str, Any]] = None,
        entity_type: Optional[str] = None,
    ) -> Timeline:
        snapshot = self._load(entity_id, entity_type)
        entries = [TimelineEntry.from_history(entry) for entry in snapshot.history]

        projector = self._projectors.get(snapshot.entity_type)
        if projector is not None:
            terms = {**snapshot.attributes, **dict(hypothetical_terms or {})}
            entries.extend(projector.project(snapshot, terms, self._clock.now_utc()))
        return Timeline(snapshot.entity_id, entries)
