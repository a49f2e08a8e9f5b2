"""
Ledgerline Ledger — Entity State Machines
=========================================
Declarative state machine per entity type.

A machine lists the finite status set, the initial status, and one
CommandSpec per intent-named command. Each spec declares:
    allowed_from  — source statuses in which the command is legal
    to_status     — resulting status, or None for status-preserving
                    commands (which still append history and emit)
    event_type    — the event emitted on success
    context_keys  — the lean context that event may carry

RULES:
- Every status a spec mentions must belong to the machine
- Exactly one creation spec, resulting in the initial status
- Transitions outside the declared edges are illegal, full stop
- Definitions are immutable (frozen)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Tuple


@dataclass(frozen=True)
class CommandSpec:
    name: str
    allowed_from: FrozenSet[str]
    to_status: Optional[str]
    event_type: str
    context_keys: FrozenSet[str] = frozenset()
    creates: bool = False

    def __post_init__(self):
        if not self.name:
            raise ValueError("CommandSpec name must be non-empty.")
        if not self.event_type:
            raise ValueError(f"CommandSpec '{self.name}' needs an event_type.")
        if self.creates:
            if self.allowed_from:
                raise ValueError(
                    f"Creation command '{self.name}' cannot declare source statuses."
                )
            if self.to_status is None:
                raise ValueError(
                    f"Creation command '{self.name}' must declare a resulting status."
                )
        elif not self.allowed_from:
            raise ValueError(f"Command '{self.name}' needs at least one source status.")

    @property
    def preserves_status(self) -> bool:
        return self.to_status is None


def command(
    name: str,
    allowed_from: Iterable[str],
    to_status: Optional[str],
    event_type: str,
    context_keys: Iterable[str] = (),
) -> CommandSpec:
    return CommandSpec(
        name=name,
        allowed_from=frozenset(allowed_from),
        to_status=to_status,
        event_type=event_type,
        context_keys=frozenset(context_keys),
    )


def creation(
    name: str,
    to_status: str,
    event_type: str,
    context_keys: Iterable[str] = (),
) -> CommandSpec:
    return CommandSpec(
        name=name,
        allowed_from=frozenset(),
        to_status=to_status,
        event_type=event_type,
        context_keys=frozenset(context_keys),
        creates=True,
    )


@dataclass(frozen=True)
class EntityStateMachine:
    """
    Fields:
        entity_type:    e.g. 'Contract'
        states:         the finite status set
        initial_status: status of freshly created entities
        commands:       every CommandSpec of the entity type
    """

    entity_type: str
    states: FrozenSet[str]
    initial_status: str
    commands: Tuple[CommandSpec, ...]

    def __post_init__(self):
        if not self.entity_type:
            raise ValueError("entity_type must be non-empty.")
        if self.initial_status not in self.states:
            raise ValueError(
                f"{self.entity_type}: initial status '{self.initial_status}' "
                f"is not a declared state."
            )

        names: set[str] = set()
        creations = 0
        for spec in self.commands:
            if spec.name in names:
                raise ValueError(f"{self.entity_type}: duplicate command '{spec.name}'.")
            names.add(spec.name)

            unknown = set(spec.allowed_from) - set(self.states)
            if spec.to_status is not None and spec.to_status not in self.states:
                unknown.add(spec.to_status)
            if unknown:
                raise ValueError(
                    f"{self.entity_type}.{spec.name} references undeclared "
                    f"statuses {sorted(unknown)}."
                )

            if spec.creates:
                creations += 1
                if spec.to_status != self.initial_status:
                    raise ValueError(
                        f"{self.entity_type}.{spec.name} must create entities in "
                        f"'{self.initial_status}'."
                    )

        if creations != 1:
            raise ValueError(
                f"{self.entity_type} needs exactly one creation command, found {creations}."
            )

    def spec(self, name: str) -> CommandSpec:
        for spec in self.commands:
            if spec.name == name:
                return spec
        raise KeyError(f"{self.entity_type} has no command '{name}'.")

    @property
    def creation_spec(self) -> CommandSpec:
        return next(spec for spec in self.commands if spec.creates)

    def commands_from(self, status: str) -> tuple[CommandSpec, ...]:
        return tuple(
            spec for spec in self.commands
            if not spec.creates and status in spec.allowed_from
        )

    def edges(self) -> frozenset[tuple[str, str, str]]:
        """All status-changing edges as (from_status, command, to_status)."""
        return frozenset(
            (source, spec.name, spec.to_status)
            for spec in self.commands
            if not spec.creates and spec.to_status is not None
            for source in spec.allowed_from
        )

    def is_terminal(self, status: str) -> bool:
        return not self.commands_from(status)
