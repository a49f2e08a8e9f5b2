"""Ledgerline Task Engine tests — lifecycle, information exchange, completion trigger."""

from datetime import date, datetime, timezone

import pytest

from core.bootstrap import build_platform
from core.config import PlatformSettings
from core.events.errors import EventDeliveryError
from core.events.sinks import InMemoryEventSink
from core.ledger.errors import IllegalTransition, LedgerValidationError
from core.time.clock import FixedClock
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
from engines.task.machine import TASK_MACHINE, build_task_machine

NOW = datetime(2026, 9, 1, 8, 30, 0, tzinfo=timezone.utc)


class DownSink:
    def publish(self, message, timeout):
        raise EventDeliveryError("orchestrator unreachable")


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def triggers():
    return InMemoryEventSink()


@pytest.fixture
def events():
    return InMemoryEventSink()


def build(clock, events, triggers, **settings):
    return build_platform(
        PlatformSettings(**settings), clock=clock, event_sink=events, trigger_sink=triggers
    )


@pytest.fixture
def platform(clock, events, triggers):
    return build(clock, events, triggers)


@pytest.fixture
def tasks(platform):
    return platform.task_service


def create(tasks, entity_id="task-1", **overrides):
    fields = dict(
        entity_id=entity_id,
        title="Review price increase",
        priority="HIGH",
        due_date=date(2026, 9, 10),
        context={"entity_refs": [{"entity_type": "Contract", "entity_id": "c-1"}]},
    )
    fields.update(overrides)
    return tasks.create_task(CreateTaskRequest(**fields), trace_id="t-create")


def start(tasks, entity_id="task-1"):
    tasks.assign_task(
        AssignTaskRequest(entity_id, assignee_type="HUMAN", assignee_id="agent-anna"),
        trace_id="t-assign",
    )
    return tasks.begin_progress(BeginProgressRequest(entity_id), trace_id="t-start")


class TestTaskRequests:
    def test_priority_must_be_known(self):
        with pytest.raises(LedgerValidationError) as exc_info:
            CreateTaskRequest(entity_id="task-1", title="x", priority="SOMEDAY")
        assert exc_info.value.field == "priority"

    def test_assignee_type_must_be_known(self):
        with pytest.raises(LedgerValidationError):
            AssignTaskRequest("task-1", assignee_type="ROBOT", assignee_id="r2")

    def test_completion_needs_resolution(self):
        with pytest.raises(LedgerValidationError):
            CompleteTaskRequest("task-1", resolution={})


class TestTaskMachine:
    def test_direct_completion_off_by_default(self):
        assert TASK_MACHINE.spec("CompleteTask").allowed_from == frozenset({"IN_PROGRESS"})

    def test_direct_completion_widens_source_set(self):
        machine = build_task_machine(allow_direct_completion=True)
        assert machine.spec("CompleteTask").allowed_from == frozenset({"IN_PROGRESS", "OPEN"})


class TestTaskLifecycle:
    def test_created_open_with_context(self, tasks, events):
        task = create(tasks)
        assert task.status == "OPEN"
        assert task.attributes["due_date"] == "2026-09-10"
        assert task.attributes["context"]["entity_refs"][0]["entity_id"] == "c-1"
        assert task.attributes["assignment"] is None
        assert events.messages[-1]["payload"]["context"] == {
            "priority": "HIGH", "due_date": "2026-09-10",
        }

    def test_assign_and_start(self, tasks, events):
        create(tasks)
        task = start(tasks)
        assert task.status == "IN_PROGRESS"
        assert task.attributes["assignment"] == {
            "assignee_type": "HUMAN",
            "assignee_id": "agent-anna",
            "assigned_at": NOW.isoformat(),
        }
        assert task.attributes["started_at"] == NOW.isoformat()
        assert events.messages[-1]["payload"]["context"] == {"assignee_id": "agent-anna"}

    def test_complete_from_open_rejected_by_default(self, tasks):
        create(tasks)
        with pytest.raises(IllegalTransition) as exc_info:
            tasks.complete_task(
                CompleteTaskRequest("task-1", resolution={"outcome": "switched"}),
                trace_id="t-done",
            )
        assert exc_info.value.current_status == "OPEN"

    def test_complete_from_open_when_enabled(self, clock, events, triggers):
        tasks = build(clock, events, triggers, task_allow_direct_completion=True).task_service
        create(tasks)
        task = tasks.complete_task(
            CompleteTaskRequest("task-1", resolution={"outcome": "switched"}),
            trace_id="t-done",
        )
        assert task.status == "COMPLETED"

    def test_information_exchange_round_trip(self, tasks, clock):
        create(tasks)
        start(tasks)
        waiting = tasks.request_info(
            RequestInfoRequest("task-1", question="Which meter number?"), trace_id="t-q"
        )
        assert waiting.status == "PENDING_INFO"
        assert waiting.attributes["pending_question"] == "Which meter number?"

        with pytest.raises(IllegalTransition):
            tasks.complete_task(
                CompleteTaskRequest("task-1", resolution={"outcome": "switched"}),
                trace_id="t-early",
            )

        clock.advance(3600)
        resumed = tasks.provide_info(
            ProvideInfoRequest("task-1", answer="DE0001"), trace_id="t-a"
        )
        assert resumed.status == "IN_PROGRESS"
        assert resumed.attributes["pending_question"] is None
        assert resumed.attributes["info_exchanges"] == [{
            "question": "Which meter number?",
            "answer": "DE0001",
            "answered_at": "2026-09-01T09:30:00+00:00",
        }]

    def test_fail_records_reason(self, tasks):
        create(tasks)
        start(tasks)
        task = tasks.fail_task(FailTaskRequest("task-1", reason="provider offline"),
                               trace_id="t-fail")
        assert task.status == "FAILED"
        assert task.attributes["failure_reason"] == "provider offline"

    def test_cancel_only_before_work_starts(self, tasks):
        create(tasks)
        start(tasks)
        with pytest.raises(IllegalTransition):
            tasks.cancel_task(CancelTaskRequest("task-1", reason="duplicate"), trace_id="t")

        create(tasks, entity_id="task-2")
        cancelled = tasks.cancel_task(CancelTaskRequest("task-2", reason="duplicate"),
                                      trace_id="t")
        assert cancelled.status == "CANCELLED"

    def test_unknown_command(self, tasks):
        with pytest.raises(ValueError, match="Unknown task command"):
            tasks.handle("SnoozeTask", BeginProgressRequest("task-1"), trace_id="t")


class TestCompletionTrigger:
    def test_completion_sends_full_record_once(self, tasks, triggers):
        create(tasks)
        start(tasks)
        task = tasks.complete_task(
            CompleteTaskRequest("task-1", resolution={"outcome": "switched", "saving": "84.00"}),
            trace_id="t-done",
        )
        assert task.status == "COMPLETED"

        (record,) = triggers.messages
        assert record["entity_id"] == "task-1"
        assert record["status"] == "COMPLETED"
        assert record["attributes"]["resolution"] == {"outcome": "switched", "saving": "84.00"}
        assert record["attributes"]["context"]["entity_refs"][0]["entity_id"] == "c-1"

    def test_no_trigger_for_other_commands(self, tasks, triggers):
        create(tasks)
        start(tasks)
        tasks.fail_task(FailTaskRequest("task-1", reason="gave up"), trace_id="t")
        assert triggers.messages == []

    def test_trigger_failure_leaves_completion_committed(self, clock, events, caplog):
        platform = build(clock, events, DownSink())
        tasks = platform.task_service
        create(tasks)
        start(tasks)
        tasks.complete_task(
            CompleteTaskRequest("task-1", resolution={"outcome": "switched"}),
            trace_id="t-done",
        )
        assert platform.repository.get("task-1").status == "COMPLETED"
        assert "TaskCompletionTriggerFailed" in caplog.text


class TestTaskQueries:
    def test_overdue_only_while_open_work_remains(self, platform, tasks, clock):
        create(tasks)
        details = platform.queries.get_details("task-1", entity_type="Task")
        assert details["computed"] == {"is_overdue": False, "days_until_due": 9}

        clock.advance(days=12)
        assert platform.queries.get_details("task-1")["computed"] == {
            "is_overdue": True, "days_until_due": -3,
        }

        tasks.cancel_task(CancelTaskRequest("task-1", reason="superseded"), trace_id="t")
        assert platform.queries.get_details("task-1")["computed"]["is_overdue"] is False

    def test_task_without_due_date(self, platform, tasks):
        create(tasks, due_date=None)
        assert platform.queries.get_details("task-1")["computed"] == {
            "is_overdue": False, "days_until_due": None,
        }

    def test_timeline_is_history_only(self, platform, tasks):
        create(tasks)
        start(tasks)
        timeline = platform.queries.get_timeline_projection("task-1")
        assert [entry.label for entry in timeline] == ["CreateTask", "AssignTask", "BeginProgress"]
        assert timeline.projections() == ()
