"""
Ledgerline Ledger — Entity Snapshots
====================================
Immutable views of ledger-owned entities.

An EntitySnapshot is what a Command Handler reads, what it commits
(as a new snapshot), and what it returns to its caller. Snapshots
are never edited in place; each successful command produces a new
one with version + 1 and exactly one more history entry.

History is append-only. Entries are never edited or removed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional, Tuple

SYSTEM_ACTOR = "system"


@dataclass(frozen=True)
class HistoryEntry:
    """
    One applied command.

    event_id/event_type/context mirror the event emitted for this
    entry, so a missing event can be rebuilt during reconciliation.
    data holds the audited command fields.
    """

    entry_id: str
    sequence: int
    command: str
    from_status: Optional[str]
    to_status: str
    occurred_at: datetime
    trace_id: str
    actor_id: str
    event_id: str
    event_type: str
    context: Mapping[str, Any] = field(default_factory=dict)
    data: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_transition(self) -> bool:
        return self.from_status != self.to_status

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "sequence": self.sequence,
            "command": self.command,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "occurred_at": self.occurred_at.isoformat(),
            "trace_id": self.trace_id,
            "actor_id": self.actor_id,
            "event_id": self.event_id,
            "event_type": self.event_type,
            "context": dict(self.context),
            "data": dict(self.data),
        }


@dataclass(frozen=True)
class EntitySnapshot:
    entity_id: str
    entity_type: str
    status: str
    attributes: Mapping[str, Any]
    history: Tuple[HistoryEntry, ...]
    version: int
    created_at: datetime
    updated_at: datetime

    def __post_init__(self):
        if not self.entity_id or not isinstance(self.entity_id, str):
            raise ValueError("entity_id must be a non-empty string.")
        if not self.entity_type:
            raise ValueError("entity_type must be non-empty.")
        if self.version < 1:
            raise ValueError("version must be >= 1.")
        if len(self.history) != self.version:
            raise ValueError(
                f"{self.entity_type} '{self.entity_id}' has version "
                f"{self.version} but {len(self.history)} history entries."
            )

    def attribute(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def to_dict(self, *, include_history: bool = True) -> dict:
        data = {
            "entity_id": self.entity_id,
            "entity_type": self.entity_type,
            "status": self.status,
            "attributes": dict(self.attributes),
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if include_history:
            data["history"] = [entry.to_dict() for entry in self.history]
        return data
