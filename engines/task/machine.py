"""
Ledgerline Task Engine — State Machine
======================================

    OPEN ──AssignTask──► ASSIGNED ──BeginProgress──► IN_PROGRESS
    IN_PROGRESS ──CompleteTask──► COMPLETED
    IN_PROGRESS ──FailTask──────► FAILED
    IN_PROGRESS ──RequestInfo───► PENDING_INFO ──ProvideInfo──► IN_PROGRESS
    OPEN | ASSIGNED ──CancelTask──► CANCELLED

With allow_direct_completion, CompleteTask is also legal from OPEN.
"""

from __future__ import annotations

from core.ledger.state_machine import EntityStateMachine, command, creation
from engines.task import events as ev

TASK = "Task"

OPEN = "OPEN"
ASSIGNED = "ASSIGNED"
IN_PROGRESS = "IN_PROGRESS"
PENDING_INFO = "PENDING_INFO"
COMPLETED = "COMPLETED"
CANCELLED = "CANCELLED"
FAILED = "FAILED"

TASK_STATES = frozenset({
    OPEN, ASSIGNED, IN_PROGRESS, PENDING_INFO, COMPLETED, CANCELLED, FAILED,
})
TERMINAL_STATES = frozenset({COMPLETED, CANCELLED, FAILED})


def build_task_machine(*, allow_direct_completion: bool = False) -> EntityStateMachine:
    complete_from = {IN_PROGRESS, OPEN} if allow_direct_completion else {IN_PROGRESS}
    keys = ev.CONTEXT_KEYS
    return EntityStateMachine(
        entity_type=TASK,
        states=TASK_STATES,
        initial_status=OPEN,
        commands=(
            creation("CreateTask", OPEN, ev.TASK_CREATED_V1, keys[ev.TASK_CREATED_V1]),
            command("AssignTask", {OPEN}, ASSIGNED,
                    ev.TASK_ASSIGNED_V1, keys[ev.TASK_ASSIGNED_V1]),
            command("BeginProgress", {ASSIGNED}, IN_PROGRESS,
                    ev.TASK_STARTED_V1, keys[ev.TASK_STARTED_V1]),
            command("RequestInfo", {IN_PROGRESS}, PENDING_INFO,
                    ev.TASK_INFO_REQUESTED_V1, keys[ev.TASK_INFO_REQUESTED_V1]),
            command("ProvideInfo", {PENDING_INFO}, IN_PROGRESS,
                    ev.TASK_INFO_PROVIDED_V1, keys[ev.TASK_INFO_PROVIDED_V1]),
            command("CompleteTask", complete_from, COMPLETED,
                    ev.TASK_COMPLETED_V1, keys[ev.TASK_COMPLETED_V1]),
            command("FailTask", {IN_PROGRESS}, FAILED,
                    ev.TASK_FAILED_V1, keys[ev.TASK_FAILED_V1]),
            command("CancelTask", {OPEN, ASSIGNED}, CANCELLED,
                    ev.TASK_CANCELLED_V1, keys[ev.TASK_CANCELLED_V1]),
        ),
    )


TASK_MACHINE = build_task_machine()
