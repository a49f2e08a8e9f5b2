"""
Ledgerline Task Engine — Application Service
============================================
Tasks are ordinary ledger entities with one extra: completing a
task makes ONE best-effort call to the completion-trigger sink with
the full task record, so whichever orchestrator was waiting on it
can resume. The Ledger does nothing further.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from core.events.emitter import CompletionTriggerEmitter
from core.ledger.handler import (
    CommandHandler,
    CreationHandler,
    LedgerRuntime,
    declare_machine_events,
)
from core.ledger.snapshot import SYSTEM_ACTOR, EntitySnapshot
from engines.task.commands import (
    AssignTaskRequest,
    BeginProgressRequest,
    CancelTaskRequest,
    CompleteTaskRequest,
    CreateTaskRequest,
    FailTaskRequest,
    ProvideInfoRequest,
    RequestInfoRequest,
)
from engines.task.machine import build_task_machine

logger = logging.getLogger("ledgerline.tasks")


def _initial_attributes(request: CreateTaskRequest, now: datetime) -> dict:
    return {
        "title": request.title,
        "description": request.description,
        "priority": request.priority,
        "due_date": request.due_date,
        "context": dict(request.context),
        "assignment": None,
        "resolution": None,
        "info_exchanges": [],
        "pending_question": None,
    }


def _assigned(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    return {
        "assignment": {
            "assignee_type": request.assignee_type,
            "assignee_id": request.assignee_id,
            "assigned_at": now,
        }
    }


def _started(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    return {"started_at": now}


def _info_requested(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    return {"pending_question": request.question}


def _info_provided(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    exchanges = list(snapshot.attribute("info_exchanges") or [])
    exchanges.append({
        "question": snapshot.attribute("pending_question"),
        "answer": request.answer,
        "answered_at": now,
    })
    return {"info_exchanges": exchanges, "pending_question": None}


def _completed(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    return {"resolution": dict(request.resolution), "completed_at": now}


def _failed(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    return {"failure_reason": request.reason, "failed_at": now}


def _cancelled(snapshot: EntitySnapshot, request, now: datetime) -> dict:
    return {"cancellation_reason": request.reason, "cancelled_at": now}


def _assignee_context(request, attributes: Mapping[str, Any]) -> dict:
    assignment = attributes.get("assignment") or {}
    return {"assignee_id": assignment.get("assignee_id")}


class TaskService:
    def __init__(
        self,
        runtime: LedgerRuntime,
        *,
        allow_direct_completion: bool = False,
        completion_trigger: Optional[CompletionTriggerEmitter] = None,
    ):
        self.machine = build_task_machine(allow_direct_completion=allow_direct_completion)
        declare_machine_events(runtime.contracts, self.machine)
        self._completion_trigger = completion_trigger
        machine = self.machine

        self._create = CreationHandler(runtime, machine, initial_attributes=_initial_attributes)
        self._handlers: Dict[str, CommandHandler] = {
            "AssignTask": CommandHandler(runtime, machine, "AssignTask", mutate=_assigned),
            "BeginProgress": CommandHandler(
                runtime, machine, "BeginProgress", mutate=_started, context=_assignee_context),
            "RequestInfo": CommandHandler(
                runtime, machine, "RequestInfo", mutate=_info_requested,
                context=_assignee_context),
            "ProvideInfo": CommandHandler(
                runtime, machine, "ProvideInfo", mutate=_info_provided,
                context=_assignee_context),
            "CompleteTask": CommandHandler(
                runtime, machine, "CompleteTask", mutate=_completed,
                context=_assignee_context, after_commit=self._trigger_completion),
            "FailTask": CommandHandler(runtime, machine, "FailTask", mutate=_failed),
            "CancelTask": CommandHandler(runtime, machine, "CancelTask", mutate=_cancelled),
        }

    def _trigger_completion(self, snapshot: EntitySnapshot, trace_id: str) -> None:
        if self._completion_trigger is None:
            logger.debug(f"No completion trigger configured; task '{snapshot.entity_id}' done")
            return
        self._completion_trigger.trigger(
            snapshot.to_dict(include_history=False), trace_id=trace_id
        )

    @property
    def allows_direct_completion(self) -> bool:
        return "OPEN" in self.machine.spec("CompleteTask").allowed_from

    def handle(self, command_name: str, request, *, trace_id: str,
               actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        if command_name == self._create.command_name:
            return self._create(request, trace_id=trace_id, actor_id=actor_id)
        try:
            handler = self._handlers[command_name]
        except KeyError:
            raise ValueError(f"Unknown task command '{command_name}'.") from None
        return handler(request, trace_id=trace_id, actor_id=actor_id)

    def create_task(self, request: CreateTaskRequest, *, trace_id: str,
                    actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self._create(request, trace_id=trace_id, actor_id=actor_id)

    def assign_task(self, request: AssignTaskRequest, *, trace_id: str,
                    actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("AssignTask", request, trace_id=trace_id, actor_id=actor_id)

    def begin_progress(self, request: BeginProgressRequest, *, trace_id: str,
                       actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("BeginProgress", request, trace_id=trace_id, actor_id=actor_id)

    def request_info(self, request: RequestInfoRequest, *, trace_id: str,
                     actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("RequestInfo", request, trace_id=trace_id, actor_id=actor_id)

    def provide_info(self, request: ProvideInfoRequest, *, trace_id: str,
                     actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("ProvideInfo", request, trace_id=trace_id, actor_id=actor_id)

    def complete_task(self, request: CompleteTaskRequest, *, trace_id: str,
                      actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("CompleteTask", request, trace_id=trace_id, actor_id=actor_id)

    def fail_task(self, request: FailTaskRequest, *, trace_id: str,
                  actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("FailTask", request, trace_id=trace_id, actor_id=actor_id)

    def cancel_task(self, request: CancelTaskRequest, *, trace_id: str,
                    actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        return self.handle("CancelTask", request, trace_id=trace_id, actor_id=actor_id)
