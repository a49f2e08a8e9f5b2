"""
Ledgerline Ledger — Entity Repository
=====================================
Storage contract for ledger-owned entities.

Only Command Handlers write through a repository. Every write is a
compare-and-swap on (entity_id, expected version, expected status):
a commit that loses the race returns False and writes nothing.

Implementations:
    InMemoryEntityRepository   — per-entity locks, deep copies
    DjangoEntityRepository     — core.ledger.django_repository
"""

from __future__ import annotations

import copy
from datetime import datetime
from threading import Lock
from typing import Dict, Iterator, Optional, Protocol

from core.ledger.errors import EntityAlreadyExists, HistoryImmutableError
from core.ledger.snapshot import EntitySnapshot


class EntityRepository(Protocol):
    def get(self, entity_id: str) -> Optional[EntitySnapshot]:
        ...

    def insert(self, snapshot: EntitySnapshot) -> None:
        ...

    def commit(
        self,
        snapshot: EntitySnapshot,
        *,
        expected_version: int,
        expected_status: str,
    ) -> bool:
        ...

    def iter_entities(
        self,
        entity_type: Optional[str] = None,
        changed_since: Optional[datetime] = None,
    ) -> Iterator[EntitySnapshot]:
        ...


def check_append_only(current: EntitySnapshot, proposed: EntitySnapshot) -> None:
    """A commit may only add exactly one entry after the stored history."""
    if proposed.entity_type != current.entity_type:
        raise HistoryImmutableError(
            f"{current.entity_type} '{current.entity_id}' cannot change entity type."
        )
    if proposed.version != current.version + 1:
        raise HistoryImmutableError(
            f"{current.entity_type} '{current.entity_id}' commit must advance "
            f"version {current.version} by exactly one, got {proposed.version}."
        )
    if tuple(proposed.history[: len(current.history)]) != tuple(current.history):
        raise HistoryImmutableError(
            f"{current.entity_type} '{current.entity_id}': history is append-only."
        )


class InMemoryEntityRepository:
    """
    Thread-safe in-memory store.

    Each entity has its own lock; there is no repository-wide lock,
    so commands on different entities never serialise each other.
    Snapshots are deep-copied in and out so callers cannot mutate
    stored state.
    """

    def __init__(self):
        self._entities: Dict[str, EntitySnapshot] = {}
        self._locks: Dict[str, Lock] = {}

    def _lock_for(self, entity_id: str) -> Lock:
        # dict.setdefault is atomic, so two threads always share one lock.
        return self._locks.setdefault(entity_id, Lock())

    def get(self, entity_id: str) -> Optional[EntitySnapshot]:
        stored = self._entities.get(entity_id)
        return copy.deepcopy(stored) if stored is not None else None

    def insert(self, snapshot: EntitySnapshot) -> None:
        if snapshot.version != 1:
            raise HistoryImmutableError(
                f"New {snapshot.entity_type} '{snapshot.entity_id}' must start at version 1."
            )
        with self._lock_for(snapshot.entity_id):
            if snapshot.entity_id in self._entities:
                existing = self._entities[snapshot.entity_id]
                raise EntityAlreadyExists(existing.entity_type, snapshot.entity_id)
            self._entities[snapshot.entity_id] = copy.deepcopy(snapshot)

    def commit(
        self,
        snapshot: EntitySnapshot,
        *,
        expected_version: int,
        expected_status: str,
    ) -> bool:
        with self._lock_for(snapshot.entity_id):
            current = self._entities.get(snapshot.entity_id)
            if current is None:
                return False
            if current.version != expected_version or current.status != expected_status:
                return False
            check_append_only(current, snapshot)
            self._entities[snapshot.entity_id] = copy.deepcopy(snapshot)
            return True

    def iter_entities(
        self,
        entity_type: Optional[str] = None,
        changed_since: Optional[datetime] = None,
    ) -> Iterator[EntitySnapshot]:
        for entity_id in sorted(list(self._entities)):
            stored = self._entities.get(entity_id)
            if stored is None:
                continue
            if entity_type is not None and stored.entity_type != entity_type:
                continue
            if changed_since is not None and stored.updated_at < changed_since:
                continue
            yield copy.deepcopy(stored)

    def __len__(self) -> int:
        return len(self._entities)
