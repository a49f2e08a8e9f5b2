"""
Ledgerline Ledger — Command Handlers
====================================
The ONLY code path that writes entity state.

Every handler runs the same apply-with-precondition primitive:

    1. Fetch the snapshot              → EntityNotFound
    2. Check the allowed source set    → IllegalTransition
    3. Validate business invariants    → LedgerValidationError
    4. Build the new snapshot, its history entry and its event
       envelope (lean contract checked HERE, before anything is
       written), then compare-and-swap on (version, status).
       A lost race re-runs 1–4, up to max_attempts
                                       → ConcurrentModification
    5. Emit the event (best effort, never raises, never rolls back)

A command either fully applies (status + attributes + history +
emission attempt) or has no effect at all.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Protocol

from core.events.contracts import EventContractRegistry
from core.events.emitter import EventEmitter
from core.events.envelope import (
    EventEnvelope,
    Transition,
    build_envelope,
    normalize_context_value,
)
from core.ledger.errors import (
    ConcurrentModification,
    EntityAlreadyExists,
    EntityNotFound,
    IllegalTransition,
    LedgerValidationError,
)
from core.ledger.repository import EntityRepository
from core.ledger.snapshot import SYSTEM_ACTOR, EntitySnapshot, HistoryEntry
from core.ledger.state_machine import CommandSpec, EntityStateMachine
from core.time.clock import Clock

logger = logging.getLogger("ledgerline.ledger")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_EVENT_SOURCE = "ledgerline.ledger"


class CommandRequest(Protocol):
    entity_id: str

    def to_payload(self) -> dict:
        ...


# validate(snapshot, request, now) -> None, raises LedgerValidationError
Validator = Callable[[EntitySnapshot, Any, datetime], None]
# mutate(snapshot, request, now) -> attribute updates
Mutator = Callable[[EntitySnapshot, Any, datetime], Mapping[str, Any]]
# context(request, attributes) -> lean event context
ContextBuilder = Callable[[Any, Mapping[str, Any]], Mapping[str, Any]]
# after_commit(snapshot, trace_id) -> None
AfterCommit = Callable[[EntitySnapshot, str], None]


@dataclass
class LedgerRuntime:
    """Collaborators shared by every handler."""

    repository: EntityRepository
    contracts: EventContractRegistry
    emitter: EventEmitter
    clock: Clock
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    event_source: str = DEFAULT_EVENT_SOURCE

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1.")


def declare_machine_events(
    contracts: EventContractRegistry, machine: EntityStateMachine
) -> None:
    """Declare the event contract of every command in a machine."""
    for spec in machine.commands:
        contracts.declare(spec.event_type, spec.context_keys)


def _normalize(values: Mapping[str, Any]) -> dict:
    return {key: normalize_context_value(value) for key, value in values.items()}


def _default_context(spec: CommandSpec):
    def build(request, attributes: Mapping[str, Any]) -> dict:
        payload = request.to_payload()
        context = {}
        for key in spec.context_keys:
            if key in payload:
                context[key] = payload[key]
            elif key in attributes:
                context[key] = attributes[key]
        return context

    return build


class _HandlerBase:
    def __init__(
        self,
        runtime: LedgerRuntime,
        machine: EntityStateMachine,
        spec: CommandSpec,
        *,
        context: Optional[ContextBuilder] = None,
        after_commit: Optional[AfterCommit] = None,
    ):
        self._runtime = runtime
        self._machine = machine
        self._spec = spec
        self._context = context or _default_context(spec)
        self._after_commit = after_commit

    @property
    def command_name(self) -> str:
        return self._spec.name

    @property
    def spec(self) -> CommandSpec:
        return self._spec

    @property
    def entity_type(self) -> str:
        return self._machine.entity_type

    def _validation_error(self, exc: LedgerValidationError) -> LedgerValidationError:
        if exc.command is None:
            return LedgerValidationError(exc.field, exc.reason, command=self.command_name)
        return exc

    def _prepare(
        self,
        *,
        entity_id: str,
        request,
        from_status: Optional[str],
        to_status: str,
        attributes: Mapping[str, Any],
        sequence: int,
        now: datetime,
        trace_id: str,
        actor_id: str,
    ) -> tuple[HistoryEntry, EventEnvelope]:
        transition = None
        if from_status != to_status:
            transition = Transition(from_status=from_status, to_status=to_status)

        envelope = build_envelope(
            self._runtime.contracts,
            event_type=self._spec.event_type,
            event_source=self._runtime.event_source,
            entity_id=entity_id,
            entity_type=self.entity_type,
            trace_id=trace_id,
            timestamp=now,
            context=self._context(request, attributes),
            transition=transition,
        )
        entry = HistoryEntry(
            entry_id=str(uuid.uuid4()),
            sequence=sequence,
            command=self.command_name,
            from_status=from_status,
            to_status=to_status,
            occurred_at=now,
            trace_id=trace_id,
            actor_id=actor_id,
            event_id=envelope.event_id,
            event_type=envelope.event_type,
            context=dict(envelope.context),
            data=_normalize(request.to_payload()),
        )
        return entry, envelope

    def _finish(self, snapshot: EntitySnapshot, envelope: EventEnvelope, trace_id: str) -> None:
        entry = snapshot.history[-1]
        logger.info(
            f"{self.command_name} applied to {self.entity_type} '{snapshot.entity_id}': "
            f"{entry.from_status} -> {entry.to_status} (v{snapshot.version})",
            extra={
                "ledger": {
                    "command": self.command_name,
                    "entity_type": self.entity_type,
                    "entity_id": snapshot.entity_id,
                    "from_status": entry.from_status,
                    "to_status": entry.to_status,
                    "version": snapshot.version,
                    "event_id": envelope.event_id,
                    "trace_id": trace_id,
                }
            },
        )
        self._runtime.emitter.emit(envelope)

        if self._after_commit is None:
            return
        try:
            self._after_commit(snapshot, trace_id)
        except Exception:
            # The command is committed; a failing hook cannot undo it.
            logger.exception(
                f"after-commit hook of {self.command_name} failed for "
                f"{self.entity_type} '{snapshot.entity_id}'"
            )


class CommandHandler(_HandlerBase):
    """
    Applies one command to an existing entity.

    Usage:
        confirm = CommandHandler(runtime, CONTRACT_MACHINE, "ConfirmActivation",
                                 mutate=lambda s, r, now: {"activated_on": r.activation_date})
        snapshot = confirm(ConfirmActivationRequest(...), trace_id=trace_id)
    """

    def __init__(
        self,
        runtime: LedgerRuntime,
        machine: EntityStateMachine,
        command_name: str,
        *,
        validate: Optional[Validator] = None,
        mutate: Optional[Mutator] = None,
        context: Optional[ContextBuilder] = None,
        after_commit: Optional[AfterCommit] = None,
    ):
        spec = machine.spec(command_name)
        if spec.creates:
            raise ValueError(f"'{command_name}' is a creation command; use CreationHandler.")
        super().__init__(runtime, machine, spec, context=context, after_commit=after_commit)
        self._validate = validate
        self._mutate = mutate

    def _load(self, entity_id: str) -> EntitySnapshot:
        current = self._runtime.repository.get(entity_id)
        if current is None or current.entity_type != self.entity_type:
            raise EntityNotFound(self.entity_type, entity_id)
        return current

    def _check_source(self, current: EntitySnapshot) -> None:
        if current.status not in self._spec.allowed_from:
            raise IllegalTransition(
                entity_type=self.entity_type,
                entity_id=current.entity_id,
                command=self.command_name,
                current_status=current.status,
                allowed_from=self._spec.allowed_from,
            )

    def _next_snapshot(
        self, current: EntitySnapshot, request, now: datetime, trace_id: str, actor_id: str
    ) -> tuple[EntitySnapshot, EventEnvelope]:
        try:
            if self._validate is not None:
                self._validate(current, request, now)
            updates = self._mutate(current, request, now) if self._mutate else {}
        except LedgerValidationError as exc:
            raise self._validation_error(exc) from None

        attributes = {**current.attributes, **_normalize(updates)}
        to_status = self._spec.to_status or current.status
        entry, envelope = self._prepare(
            entity_id=current.entity_id,
            request=request,
            from_status=current.status,
            to_status=to_status,
            attributes=attributes,
            sequence=current.version + 1,
            now=now,
            trace_id=trace_id,
            actor_id=actor_id,
        )
        snapshot = EntitySnapshot(
            entity_id=current.entity_id,
            entity_type=current.entity_type,
            status=to_status,
            attributes=attributes,
            history=current.history + (entry,),
            version=current.version + 1,
            created_at=current.created_at,
            updated_at=now,
        )
        return snapshot, envelope

    def __call__(self, request, *, trace_id: str, actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        if not trace_id:
            raise LedgerValidationError("trace_id", "must be non-empty", command=self.command_name)

        entity_id = request.entity_id
        attempts = self._runtime.max_attempts
        for attempt in range(1, attempts + 1):
            current = self._load(entity_id)
            self._check_source(current)
            now = self._runtime.clock.now_utc()
            snapshot, envelope = self._next_snapshot(current, request, now, trace_id, actor_id)

            committed = self._runtime.repository.commit(
                snapshot,
                expected_version=current.version,
                expected_status=current.status,
            )
            if committed:
                self._finish(snapshot, envelope, trace_id)
                return snapshot

            logger.warning(
                f"{self.command_name} on {self.entity_type} '{entity_id}' lost a commit "
                f"race at v{current.version} (attempt {attempt}/{attempts})"
            )

        raise ConcurrentModification(self.entity_type, entity_id, self.command_name, attempts)


class CreationHandler(_HandlerBase):
    """
    Registers a new entity in its machine's initial status.

    initial_attributes(request, now) defaults to the request payload
    without entity_id.
    """

    def __init__(
        self,
        runtime: LedgerRuntime,
        machine: EntityStateMachine,
        *,
        validate: Optional[Callable[[Any, datetime], None]] = None,
        initial_attributes: Optional[Callable[[Any, datetime], Mapping[str, Any]]] = None,
        context: Optional[ContextBuilder] = None,
        after_commit: Optional[AfterCommit] = None,
    ):
        super().__init__(
            runtime, machine, machine.creation_spec, context=context, after_commit=after_commit
        )
        self._validate = validate
        self._initial_attributes = initial_attributes

    def _attributes_for(self, request, now: datetime) -> dict:
        if self._initial_attributes is not None:
            return _normalize(self._initial_attributes(request, now))
        payload = dict(request.to_payload())
        payload.pop("entity_id", None)
        return _normalize(payload)

    def __call__(self, request, *, trace_id: str, actor_id: str = SYSTEM_ACTOR) -> EntitySnapshot:
        if not trace_id:
            raise LedgerValidationError("trace_id", "must be non-empty", command=self.command_name)

        entity_id = request.entity_id
        existing = self._runtime.repository.get(entity_id)
        if existing is not None:
            raise EntityAlreadyExists(existing.entity_type, entity_id)

        now = self._runtime.clock.now_utc()
        try:
            if self._validate is not None:
                self._validate(request, now)
            attributes = self._attributes_for(request, now)
        except LedgerValidationError as exc:
            raise self._validation_error(exc) from None

        status = self._machine.initial_status
        entry, envelope = self._prepare(
            entity_id=entity_id,
            request=request,
            from_status=None,
            to_status=status,
            attributes=attributes,
            sequence=1,
            now=now,
            trace_id=trace_id,
            actor_id=actor_id,
        )
        snapshot = EntitySnapshot(
            entity_id=entity_id,
            entity_type=self.entity_type,
            status=status,
            attributes=attributes,
            history=(entry,),
            version=1,
            created_at=now,
            updated_at=now,
        )
        self._runtime.repository.insert(snapshot)
        self._finish(snapshot, envelope, trace_id)
        return snapshot
