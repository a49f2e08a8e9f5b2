"""
Tests for the EntityRepository implementations — in-memory and Django ORM.

Both must honour the same compare-and-swap contract:
    commit(snapshot, expected_version, expected_status) -> bool
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from core.ledger import (
    EntityAlreadyExists,
    EntitySnapshot,
    HistoryEntry,
    HistoryImmutableError,
    InMemoryEntityRepository,
)

T0 = datetime(2026, 1, 10, 8, 0, tzinfo=timezone.utc)


def _entry(sequence, from_status, to_status, at):
    return HistoryEntry(
        entry_id=f"entry-{sequence}",
        sequence=sequence,
        command=f"Command{sequence}",
        from_status=from_status,
        to_status=to_status,
        occurred_at=at,
        trace_id="trace-1",
        actor_id="system",
        event_id=f"event-{sequence}",
        event_type="widget.lifecycle.changed.v1",
        context={"n": sequence},
        data={"entity_id": "w-1"},
    )


def _created(entity_id="w-1"):
    return EntitySnapshot(
        entity_id=entity_id,
        entity_type="Widget",
        status="DRAFT",
        attributes={"name": "Gadget"},
        history=(replace(_entry(1, None, "DRAFT", T0), entry_id=f"{entity_id}-1",
                         event_id=f"{entity_id}-event-1"),),
        version=1,
        created_at=T0,
        updated_at=T0,
    )


def _advanced(snapshot, to_status="LIVE", minutes=5):
    at = snapshot.updated_at + timedelta(minutes=minutes)
    entry = replace(
        _entry(snapshot.version + 1, snapshot.status, to_status, at),
        entry_id=f"{snapshot.entity_id}-{snapshot.version + 1}",
        event_id=f"{snapshot.entity_id}-event-{snapshot.version + 1}",
    )
    return replace(
        snapshot,
        status=to_status,
        attributes={**snapshot.attributes, "step": snapshot.version + 1},
        history=snapshot.history + (entry,),
        version=snapshot.version + 1,
        updated_at=at,
    )


class RepositoryContract:
    """Shared behaviour; subclasses provide the repository fixture."""

    def test_get_missing_returns_none(self, repository):
        assert repository.get("nope") is None

    def test_insert_and_get_roundtrip(self, repository):
        repository.insert(_created())
        stored = repository.get("w-1")
        assert stored == _created()

    def test_duplicate_insert(self, repository):
        repository.insert(_created())
        with pytest.raises(EntityAlreadyExists):
            repository.insert(_created())

    def test_insert_requires_version_one(self, repository):
        with pytest.raises(HistoryImmutableError):
            repository.insert(_advanced(_created()))

    def test_commit_with_matching_precondition(self, repository):
        repository.insert(_created())
        proposed = _advanced(_created())
        assert repository.commit(proposed, expected_version=1, expected_status="DRAFT")
        stored = repository.get("w-1")
        assert stored.status == "LIVE"
        assert stored.version == 2
        assert [e.sequence for e in stored.history] == [1, 2]
        assert stored.attributes == {"name": "Gadget", "step": 2}

    def test_stale_version_loses(self, repository):
        repository.insert(_created())
        first = _advanced(_created())
        assert repository.commit(first, expected_version=1, expected_status="DRAFT")

        rival = _advanced(_created(), to_status="RETIRED")
        assert not repository.commit(rival, expected_version=1, expected_status="DRAFT")
        assert repository.get("w-1").status == "LIVE"

    def test_stale_status_loses(self, repository):
        repository.insert(_created())
        proposed = _advanced(_created())
        assert not repository.commit(proposed, expected_version=1, expected_status="LIVE")
        assert repository.get("w-1").version == 1

    def test_commit_on_missing_entity_loses(self, repository):
        assert not repository.commit(
            _advanced(_created()), expected_version=1, expected_status="DRAFT"
        )

    def test_iter_entities_filters(self, repository):
        repository.insert(_created("w-1"))
        repository.insert(_created("w-2"))
        later = _advanced(_created("w-2"), minutes=60)
        repository.commit(later, expected_version=1, expected_status="DRAFT")

        assert [s.entity_id for s in repository.iter_entities()] == ["w-1", "w-2"]
        assert [s.entity_id for s in repository.iter_entities(entity_type="Gadget")] == []
        changed = repository.iter_entities(changed_since=T0 + timedelta(minutes=30))
        assert [s.entity_id for s in changed] == ["w-2"]


class TestInMemoryEntityRepository(RepositoryContract):
    @pytest.fixture
    def repository(self):
        return InMemoryEntityRepository()

    def test_returned_snapshots_are_copies(self, repository):
        repository.insert(_created())
        stored = repository.get("w-1")
        stored.attributes["name"] = "Tampered"
        assert repository.get("w-1").attributes["name"] == "Gadget"

    def test_rewriting_history_rejected(self, repository):
        repository.insert(_created())
        proposed = _advanced(_created())
        forged = replace(
            proposed,
            history=(replace(proposed.history[0], command="Forged"), proposed.history[1]),
        )
        with pytest.raises(HistoryImmutableError, match="append-only"):
            repository.commit(forged, expected_version=1, expected_status="DRAFT")

    def test_skipping_versions_rejected(self, repository):
        repository.insert(_created())
        with pytest.raises(HistoryImmutableError):
            repository.commit(
                _advanced(_advanced(_created())), expected_version=1, expected_status="DRAFT"
            )

    def test_len(self, repository):
        repository.insert(_created("w-1"))
        repository.insert(_created("w-2"))
        assert len(repository) == 2


@pytest.mark.django_db
class TestDjangoEntityRepository(RepositoryContract):
    @pytest.fixture
    def repository(self):
        from core.ledger.django_repository import DjangoEntityRepository

        return DjangoEntityRepository()

    def test_history_rows_are_immutable(self, repository):
        from core.ledger.models import LedgerEntity, LedgerHistoryEntry

        repository.insert(_created())
        row = LedgerHistoryEntry.objects.get(entity_id="w-1", sequence=1)
        row.command = "Forged"
        with pytest.raises(PermissionError):
            row.save()
        with pytest.raises(PermissionError):
            row.delete()
        with pytest.raises(PermissionError):
            LedgerEntity.objects.get(entity_id="w-1").delete()

    def test_entity_rows_reject_direct_updates(self, repository):
        from core.ledger.models import LedgerEntity

        repository.insert(_created())
        row = LedgerEntity.objects.get(entity_id="w-1")
        row.status = "LIVE"
        with pytest.raises(PermissionError):
            row.save()
        assert repository.get("w-1").status == "DRAFT"

    def test_skipping_versions_rejected(self, repository):
        repository.insert(_created())
        with pytest.raises(HistoryImmutableError):
            repository.commit(
                _advanced(_advanced(_created())), expected_version=1, expected_status="DRAFT"
            )
