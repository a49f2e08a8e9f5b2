"""
Ledgerline Ledger — Django Repository
=====================================
EntityRepository backed by the Django ORM (core.ledger.models).

commit() is one transaction:
    UPDATE ledgerline_entity
       SET status, attributes, version, updated_at
     WHERE entity_id = ? AND version = ? AND status = ?
    INSERT the new history entry

Zero rows updated means another command won the race: nothing is
written and the handler re-reads and retries.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Iterator, Optional

from django.db import IntegrityError, transaction

from core.ledger.errors import EntityAlreadyExists, HistoryImmutableError
from core.ledger.models import LedgerEntity, LedgerHistoryEntry
from core.ledger.snapshot import EntitySnapshot, HistoryEntry


def _entry_from_row(row: LedgerHistoryEntry) -> HistoryEntry:
    return HistoryEntry(
        entry_id=row.entry_id,
        sequence=row.sequence,
        command=row.command,
        from_status=row.from_status,
        to_status=row.to_status,
        occurred_at=row.occurred_at,
        trace_id=row.trace_id,
        actor_id=row.actor_id,
        event_id=row.event_id,
        event_type=row.event_type,
        context=dict(row.context or {}),
        data=dict(row.data or {}),
    )


def _row_from_entry(entity_id: str, entry: HistoryEntry) -> LedgerHistoryEntry:
    return LedgerHistoryEntry(
        entry_id=entry.entry_id,
        entity_id=entity_id,
        sequence=entry.sequence,
        command=entry.command,
        from_status=entry.from_status,
        to_status=entry.to_status,
        occurred_at=entry.occurred_at,
        trace_id=entry.trace_id,
        actor_id=entry.actor_id,
        event_id=entry.event_id,
        event_type=entry.event_type,
        context=dict(entry.context),
        data=dict(entry.data),
    )


def _snapshot_from_rows(
    row: LedgerEntity, entries: Iterable[LedgerHistoryEntry]
) -> EntitySnapshot:
    # Entries past the row's version belong to a commit we did not read.
    history = tuple(
        _entry_from_row(e)
        for e in sorted(entries, key=lambda e: e.sequence)
        if e.sequence <= row.version
    )
    return EntitySnapshot(
        entity_id=row.entity_id,
        entity_type=row.entity_type,
        status=row.status,
        attributes=dict(row.attributes or {}),
        history=history,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class DjangoEntityRepository:
    def get(self, entity_id: str) -> Optional[EntitySnapshot]:
        with transaction.atomic():
            row = LedgerEntity.objects.filter(entity_id=entity_id).first()
            if row is None:
                return None
            entries = list(
                LedgerHistoryEntry.objects.filter(entity_id=entity_id).order_by("sequence")
            )
        return _snapshot_from_rows(row, entries)

    def insert(self, snapshot: EntitySnapshot) -> None:
        if snapshot.version != 1:
            raise HistoryImmutableError(
                f"New {snapshot.entity_type} '{snapshot.entity_id}' must start at version 1."
            )
        try:
            with transaction.atomic():
                if LedgerEntity.objects.filter(entity_id=snapshot.entity_id).exists():
                    raise EntityAlreadyExists(snapshot.entity_type, snapshot.entity_id)
                LedgerEntity.objects.create(
                    entity_id=snapshot.entity_id,
                    entity_type=snapshot.entity_type,
                    status=snapshot.status,
                    attributes=dict(snapshot.attributes),
                    version=snapshot.version,
                    created_at=snapshot.created_at,
                    updated_at=snapshot.updated_at,
                )
                LedgerHistoryEntry.objects.bulk_create(
                    [_row_from_entry(snapshot.entity_id, e) for e in snapshot.history]
                )
        except IntegrityError as exc:
            raise EntityAlreadyExists(snapshot.entity_type, snapshot.entity_id) from exc

    def commit(
        self,
        snapshot: EntitySnapshot,
        *,
        expected_version: int,
        expected_status: str,
    ) -> bool:
        if snapshot.version != expected_version + 1:
            raise HistoryImmutableError(
                f"{snapshot.entity_type} '{snapshot.entity_id}' commit must advance "
                f"version {expected_version} by exactly one."
            )
        new_entries = snapshot.history[expected_version:]

        try:
            with transaction.atomic():
                updated = LedgerEntity.objects.filter(
                    entity_id=snapshot.entity_id,
                    entity_type=snapshot.entity_type,
                    version=expected_version,
                    status=expected_status,
                ).update(
                    status=snapshot.status,
                    attributes=dict(snapshot.attributes),
                    version=snapshot.version,
                    updated_at=snapshot.updated_at,
                )
                if updated != 1:
                    return False
                LedgerHistoryEntry.objects.bulk_create(
                    [_row_from_entry(snapshot.entity_id, e) for e in new_entries]
                )
        except IntegrityError:
            # A concurrent writer already holds this sequence number.
            return False
        return True

    def iter_entities(
        self,
        entity_type: Optional[str] = None,
        changed_since: Optional[datetime] = None,
    ) -> Iterator[EntitySnapshot]:
        query = LedgerEntity.objects.all()
        if entity_type is not None:
            query = query.filter(entity_type=entity_type)
        if changed_since is not None:
            query = query.filter(updated_at__gte=changed_since)
        for row in query.order_by("entity_id").prefetch_related("history"):
            yield _snapshot_from_rows(row, row.history.all())
