"""
Ledgerline Task Engine — Commands
=================================
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Mapping, Optional

from core.ledger.errors import LedgerValidationError

PRIORITIES = ("LOW", "NORMAL", "HIGH", "URGENT")
ASSIGNEE_TYPES = ("HUMAN", "AI", "TEAM")


def _require_text(value: Any, field_name: str, command: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise LedgerValidationError(field_name, "must be a non-empty string", command=command)


class _Request:
    def to_payload(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CreateTaskRequest(_Request):
    """
    context records where the task came from: originating entity
    references and the process invocation (including its trace_id).
    """
    entity_id: str
    title: str
    description: str = ""
    priority: str = "NORMAL"
    due_date: Optional[date] = None
    context: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "CreateTask")
        _require_text(self.title, "title", "CreateTask")
        if self.priority not in PRIORITIES:
            raise LedgerValidationError(
                "priority", f"must be one of {list(PRIORITIES)}", command="CreateTask"
            )
        if self.due_date is not None and not isinstance(self.due_date, date):
            raise LedgerValidationError("due_date", "must be a date", command="CreateTask")
        if not isinstance(self.context, Mapping):
            raise LedgerValidationError("context", "must be a mapping", command="CreateTask")


@dataclass(frozen=True)
class AssignTaskRequest(_Request):
    entity_id: str
    assignee_type: str
    assignee_id: str

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "AssignTask")
        if self.assignee_type not in ASSIGNEE_TYPES:
            raise LedgerValidationError(
                "assignee_type", f"must be one of {list(ASSIGNEE_TYPES)}", command="AssignTask"
            )
        _require_text(self.assignee_id, "assignee_id", "AssignTask")


@dataclass(frozen=True)
class BeginProgressRequest(_Request):
    entity_id: str

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "BeginProgress")


@dataclass(frozen=True)
class RequestInfoRequest(_Request):
    entity_id: str
    question: str

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "RequestInfo")
        _require_text(self.question, "question", "RequestInfo")


@dataclass(frozen=True)
class ProvideInfoRequest(_Request):
    entity_id: str
    answer: str

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "ProvideInfo")
        _require_text(self.answer, "answer", "ProvideInfo")


@dataclass(frozen=True)
class CompleteTaskRequest(_Request):
    entity_id: str
    resolution: Mapping[str, Any]

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "CompleteTask")
        if not isinstance(self.resolution, Mapping) or not self.resolution:
            raise LedgerValidationError(
                "resolution", "must be a non-empty mapping", command="CompleteTask"
            )


@dataclass(frozen=True)
class FailTaskRequest(_Request):
    entity_id: str
    reason: str

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "FailTask")
        _require_text(self.reason, "reason", "FailTask")


@dataclass(frozen=True)
class CancelTaskRequest(_Request):
    entity_id: str
    reason: str

    def __post_init__(self):
        _require_text(self.entity_id, "entity_id", "CancelTask")
        _require_text(self.reason, "reason", "CancelTask")
