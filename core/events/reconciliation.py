"""
Ledgerline Events — Reconciliation
==================================
Emission is best effort, so an event can be lost. The Ledger's
history is the source of truth: every history entry carries the
event_id of the event it produced.

Reconciliation diffs history entries against the event ids a
downstream actually observed. Missing events can be re-published
with their ORIGINAL event ids, so consumers can deduplicate.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from core.events.contracts import EventContractRegistry
from core.events.emitter import EventEmitter
from core.events.envelope import EventEnvelope, Transition, build_envelope
from core.ledger.repository import EntityRepository
from core.ledger.snapshot import EntitySnapshot, HistoryEntry
from core.time.clock import Clock

logger = logging.getLogger("ledgerline.events")


@dataclass(frozen=True)
class MissingEvent:
    entity_id: str
    entity_type: str
    sequence: int
    event_id: str
    event_type: str
    occurred_at: datetime


@dataclass(frozen=True)
class ReconciliationReport:
    checked: int
    missing: tuple[MissingEvent, ...]
    redelivered: int = 0

    @property
    def is_consistent(self) -> bool:
        return not self.missing

    @property
    def missing_event_ids(self) -> frozenset[str]:
        return frozenset(m.event_id for m in self.missing)


class EventReconciler:
    def __init__(
        self,
        repository: EntityRepository,
        contracts: EventContractRegistry,
        *,
        emitter: Optional[EventEmitter] = None,
        event_source: str = "ledgerline.ledger",
    ):
        self._repository = repository
        self._contracts = contracts
        self._emitter = emitter
        self._event_source = event_source

    def rebuild_envelope(self, snapshot: EntitySnapshot, entry: HistoryEntry) -> EventEnvelope:
        transition = None
        if entry.from_status != entry.to_status:
            transition = Transition(from_status=entry.from_status, to_status=entry.to_status)
        return build_envelope(
            self._contracts,
            event_type=entry.event_type,
            event_source=self._event_source,
            entity_id=snapshot.entity_id,
            entity_type=snapshot.entity_type,
            trace_id=entry.trace_id,
            timestamp=entry.occurred_at,
            context=entry.context,
            transition=transition,
            event_id=entry.event_id,
        )

    def reconcile(
        self,
        observed_event_ids: Iterable[str],
        changed_since: Optional[datetime] = None,
        redeliver: bool = False,
    ) -> ReconciliationReport:
        if redeliver and self._emitter is None:
            raise ValueError("redeliver=True requires an emitter.")

        observed = frozenset(observed_event_ids)
        checked = 0
        missing: list[MissingEvent] = []
        redelivered = 0

        for snapshot in self._repository.iter_entities(changed_since=changed_since):
            for entry in snapshot.history:
                if changed_since is not None and entry.occurred_at < changed_since:
                    continue
                checked += 1
                if entry.event_id in observed:
                    continue
                missing.append(
                    MissingEvent(
                        entity_id=snapshot.entity_id,
                        entity_type=snapshot.entity_type,
                        sequence=entry.sequence,
                        event_id=entry.event_id,
                        event_type=entry.event_type,
                        occurred_at=entry.occurred_at,
                    )
                )
                if redeliver:
                    self._emitter.emit(self.rebuild_envelope(snapshot, entry))
                    redelivered += 1

        report = ReconciliationReport(
            checked=checked, missing=tuple(missing), redelivered=redelivered
        )
        if report.missing:
            logger.warning(
                f"Reconciliation found {len(report.missing)} of {checked} events "
                f"missing downstream; redelivered {redelivered}",
                extra={
                    "reconciliation": {
                        "checked": checked,
                        "missing": len(report.missing),
                        "redelivered": redelivered,
                    }
                },
            )
        else:
            logger.info(f"Reconciliation checked {checked} events; none missing")
        return report


def run_reconciliation_loop(
    reconciler: EventReconciler,
    observed_event_ids: Callable[[], Iterable[str]],
    *,
    interval_seconds: float,
    clock: Clock,
    stop: threading.Event,
    redeliver: bool = True,
) -> None:
    """
    Reconcile every interval_seconds until stop is set.

    Each pass covers changes since the previous pass started, minus
    one interval of overlap for events still in flight.
    """
    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be positive.")
    changed_since: Optional[datetime] = None
    while not stop.wait(interval_seconds):
        started = clock.now_utc()
        reconciler.reconcile(
            observed_event_ids(), changed_since=changed_since, redeliver=redeliver
        )
        changed_since = started - timedelta(seconds=interval_seconds)
