"""
Ledgerline Task Engine — Computed Properties
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from core.ledger.queries import ComputedPropertyRegistry
from core.ledger.snapshot import EntitySnapshot
from core.time.temporal import days_between, to_date
from engines.task.machine import TASK, TERMINAL_STATES


def is_overdue(snapshot: EntitySnapshot, now: datetime) -> bool:
    due = to_date(snapshot.attribute("due_date"))
    if due is None or snapshot.status in TERMINAL_STATES:
        return False
    return now.date() > due


def days_until_due(snapshot: EntitySnapshot, now: datetime) -> Optional[int]:
    due = to_date(snapshot.attribute("due_date"))
    return days_between(now.date(), due) if due else None


def register_task_properties(registry: ComputedPropertyRegistry) -> None:
    registry.register(TASK, "is_overdue", is_overdue)
    registry.register(TASK, "days_until_due", days_until_due)
