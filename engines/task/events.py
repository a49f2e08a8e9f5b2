"""
Ledgerline Task Engine — Event Types and Context Contracts
==========================================================
Engine: Task (work items for humans, AI agents and teams)
"""

from __future__ import annotations

TASK_CREATED_V1 = "task.lifecycle.created.v1"
TASK_ASSIGNED_V1 = "task.assignment.assigned.v1"
TASK_STARTED_V1 = "task.progress.started.v1"
TASK_INFO_REQUESTED_V1 = "task.info.requested.v1"
TASK_INFO_PROVIDED_V1 = "task.info.provided.v1"
TASK_COMPLETED_V1 = "task.lifecycle.completed.v1"
TASK_FAILED_V1 = "task.lifecycle.failed.v1"
TASK_CANCELLED_V1 = "task.lifecycle.cancelled.v1"

TASK_EVENT_TYPES = (
    TASK_CREATED_V1,
    TASK_ASSIGNED_V1,
    TASK_STARTED_V1,
    TASK_INFO_REQUESTED_V1,
    TASK_INFO_PROVIDED_V1,
    TASK_COMPLETED_V1,
    TASK_FAILED_V1,
    TASK_CANCELLED_V1,
)

CONTEXT_KEYS = {
    TASK_CREATED_V1: ("priority", "due_date"),
    TASK_ASSIGNED_V1: ("assignee_type", "assignee_id"),
    TASK_STARTED_V1: ("assignee_id",),
    TASK_INFO_REQUESTED_V1: ("assignee_id",),
    TASK_INFO_PROVIDED_V1: ("assignee_id",),
    TASK_COMPLETED_V1: ("assignee_id",),
    TASK_FAILED_V1: ("reason",),
    TASK_CANCELLED_V1: ("reason",),
}
