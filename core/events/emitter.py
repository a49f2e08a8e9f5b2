"""
Ledgerline Events — Best-Effort Emitter
=======================================
Called by the Ledger AFTER a command has committed.

Delivery behaviour:
1. Serialise the message
2. ONE attempt against the single configured sink (bounded timeout)
3. Log the outcome — EventPublished / EventPublishFailed
4. Record the outcome on the DeliveryMonitor
5. NEVER raise to the caller, NEVER roll back the committed change

With an executor the attempt runs in the background and emit()
returns immediately. Without one the attempt is inline but still
fully isolated from the caller.

Lost events are recovered by reconciliation against the Ledger's
history, not by retrying here.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from typing import Optional

from core.events.envelope import EventEnvelope
from core.events.monitor import DeliveryMonitor
from core.events.sinks import EventSink

logger = logging.getLogger("ledgerline.events")

DEFAULT_TIMEOUT_SECONDS = 2.0


class _BestEffortChannel:
    success_label = "Delivered"
    failure_label = "DeliveryFailed"

    def __init__(
        self,
        sink: EventSink,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        monitor: Optional[DeliveryMonitor] = None,
        executor: Optional[Executor] = None,
        channel_logger: logging.Logger = logger,
    ):
        if timeout <= 0:
            raise ValueError("timeout must be positive.")
        self._sink = sink
        self._timeout = timeout
        self._monitor = monitor
        self._executor = executor
        self._logger = channel_logger

    @property
    def monitor(self) -> Optional[DeliveryMonitor]:
        return self._monitor

    def _submit(self, message: dict, log_fields: dict) -> None:
        if self._executor is None:
            self._attempt(message, log_fields)
            return
        try:
            self._executor.submit(self._attempt, message, log_fields)
        except RuntimeError as exc:
            # Executor shut down: counts as a failed delivery.
            self._record_failure(log_fields, exc)

    def _attempt(self, message: dict, log_fields: dict) -> None:
        try:
            self._sink.publish(message, self._timeout)
        except Exception as exc:
            self._record_failure(log_fields, exc)
            return

        if self._monitor is not None:
            self._monitor.record(True)
        self._logger.info(
            f"{self.success_label}: {self._describe(log_fields)}",
            extra={"delivery": {**log_fields, "outcome": self.success_label}},
        )

    def _record_failure(self, log_fields: dict, exc: BaseException) -> None:
        if self._monitor is not None:
            self._monitor.record(False)
        self._logger.error(
            f"{self.failure_label}: {self._describe(log_fields)} — "
            f"{type(exc).__name__}: {exc}",
            extra={
                "delivery": {
                    **log_fields,
                    "outcome": self.failure_label,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                }
            },
        )

    @staticmethod
    def _describe(log_fields: dict) -> str:
        return " ".join(f"{key}={value}" for key, value in log_fields.items())


class EventEmitter(_BestEffortChannel):
    """
    Usage:
        emitter = EventEmitter(WebhookEventSink(url), timeout=2.0,
                               monitor=DeliveryMonitor(name="events"))
        emitter.emit(envelope)     # never raises
    """

    success_label = "EventPublished"
    failure_label = "EventPublishFailed"

    def emit(self, envelope: EventEnvelope) -> None:
        try:
            message = envelope.to_dict()
        except Exception as exc:
            self._record_failure({"event_id": envelope.event_id}, exc)
            return

        self._submit(
            message,
            {
                "event_id": envelope.event_id,
                "event_type": envelope.event_type,
                "entity_id": envelope.entity_id,
                "trace_id": envelope.trace_id,
            },
        )


class CompletionTriggerEmitter(_BestEffortChannel):
    """
    One best-effort call per completed task, carrying the full task
    record. This is how an external orchestrator resumes work that
    was blocked on the task; the Ledger knows nothing further.
    """

    success_label = "TaskCompletionTriggerDelivered"
    failure_label = "TaskCompletionTriggerFailed"

    def __init__(self, sink: EventSink, **kwargs):
        kwargs.setdefault("channel_logger", logging.getLogger("ledgerline.tasks"))
        super().__init__(sink, **kwargs)

    def trigger(self, task_record: dict, *, trace_id: str) -> None:
        self._submit(
            task_record,
            {"task_id": task_record.get("entity_id"), "trace_id": trace_id},
        )
