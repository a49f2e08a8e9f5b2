"""
Ledgerline Reference Engine — Application Service
=================================================
Generic handlers for every catalog entity. Payloads are plain field
mappings checked against the catalog's required/accepted fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from core.ledger.errors import LedgerValidationError
from core.ledger.handler import (
    CommandHandler,
    CreationHandler,
    LedgerRuntime,
    declare_machine_events,
)
from core.ledger.snapshot import SYSTEM_ACTOR, EntitySnapshot
from engines.reference.catalog import REFERENCE_ENTITIES, ReferenceCommand, ReferenceEntity


@dataclass(frozen=True)
class ReferenceRequest:
    entity_id: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.entity_id, str) or not self.entity_id.strip():
            raise LedgerValidationError("entity_id", "must be a non-empty string")

    def to_payload(self) -> dict:
        return {"entity_id": self.entity_id, **dict(self.fields)}


def _check_fields(spec: ReferenceCommand, fields: Mapping[str, Any]) -> None:
    unknown = set(fields) - spec.accepted
    if unknown:
        raise LedgerValidationError(
            sorted(unknown)[0], f"is not accepted; allowed: {sorted(spec.accepted)}"
        )
    for name in spec.required:
        value = fields.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise LedgerValidationError(name, "is required")
    if spec.optional and not spec.required and not fields and spec.stores:
        raise LedgerValidationError(
            "fields", f"at least one of {sorted(spec.optional)} is required"
        )


def _validator(spec: ReferenceCommand):
    def validate(snapshot: EntitySnapshot, request: ReferenceRequest, now: datetime) -> None:
        _check_fields(spec, request.fields)
        if spec.validate is not None:
            spec.validate(snapshot, request.fields, now)

    return validate


def _mutator(spec: ReferenceCommand):
    def mutate(snapshot: EntitySnapshot, request: ReferenceRequest, now: datetime) -> Mapping:
        if spec.mutate is not None:
            return spec.mutate(snapshot, request.fields, now)
        return dict(request.fields) if spec.stores else {}

    return mutate


class ReferenceService:
    def __init__(
        self,
        runtime: LedgerRuntime,
        entities: Optional[Mapping[str, ReferenceEntity]] = None,
    ):
        self._entities = dict(entities or REFERENCE_ENTITIES)
        self._creators: Dict[str, CreationHandler] = {}
        self._handlers: Dict[Tuple[str, str], CommandHandler] = {}

        for entity_type, entity in self._entities.items():
            machine = entity.machine
            declare_machine_events(runtime.contracts, machine)
            creation_spec = entity.commands[machine.creation_spec.name]

            def validate_creation(request, now, _spec=creation_spec):
                _check_fields(_spec, request.fields)
                if _spec.validate is not None:
                    _spec.validate(None, request.fields, now)

            self._creators[entity_type] = CreationHandler(
                runtime,
                machine,
                validate=validate_creation,
                initial_attributes=lambda request, now: dict(request.fields),
            )
            for spec in machine.commands:
                if spec.creates:
                    continue
                catalog_spec = entity.commands[spec.name]
                self._handlers[(entity_type, spec.name)] = CommandHandler(
                    runtime,
                    machine,
                    spec.name,
                    validate=_validator(catalog_spec),
                    mutate=_mutator(catalog_spec),
                )

    @property
    def entity_types(self) -> tuple[str, ...]:
        return tuple(sorted(self._entities))

    def machine(self, entity_type: str):
        return self._entities[entity_type].machine

    def handle(
        self,
        entity_type: str,
        command_name: str,
        request: ReferenceRequest,
        *,
        trace_id: str,
        actor_id: str = SYSTEM_ACTOR,
    ) -> EntitySnapshot:
        if entity_type not in self._entities:
            raise ValueError(f"Unknown reference entity type '{entity_type}'.")
        machine = self._entities[entity_type].machine
        if command_name == machine.creation_spec.name:
            return self._creators[entity_type](request, trace_id=trace_id, actor_id=actor_id)
        try:
            handler = self._handlers[(entity_type, command_name)]
        except KeyError:
            raise ValueError(f"{entity_type} has no command '{command_name}'.") from None
        return handler(request, trace_id=trace_id, actor_id=actor_id)
