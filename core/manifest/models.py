"""
Ledgerline Manifest Store — Immutable Models
============================================
One ProcessManifest per process name.

A manifest is edited by humans through a reviewed configuration
change and is read-only at dispatch time. Changing which variant
serves a process is a manifest edit, never a code edit.

Invariants (enforced at construction):
- At least one variant
- Variant ids unique within the manifest
- Weights, when present, lie in [0, 1]
- If any variant carries a weight, all do, and the sum is <= 1
- input_schema uses only the supported schema subset
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping, Optional, Tuple

from core.manifest.errors import InvalidSchemaDefinition, MalformedManifest
from core.manifest.schema import check_schema

WEIGHT_TOLERANCE = 1e-9


@dataclass(frozen=True)
class Variant:
    """One candidate implementation of a process."""

    variant_id: str
    target: str
    weight: Optional[float] = None

    def to_dict(self) -> dict:
        data: dict = {"id": self.variant_id, "target": self.target}
        if self.weight is not None:
            data["weight"] = self.weight
        return data


@dataclass(frozen=True)
class StrategyRef:
    """Address of a registered strategy plus its static arguments."""

    address: str
    static_args: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"address": self.address, "static_args": dict(self.static_args)}


@dataclass(frozen=True)
class Experiment:
    experiment_id: str
    hypothesis: str = ""
    started_on: Optional[date] = None
    metrics: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "experiment_id": self.experiment_id,
            "hypothesis": self.hypothesis,
            "started_on": self.started_on.isoformat() if self.started_on else None,
            "metrics": list(self.metrics),
        }


@dataclass(frozen=True)
class ProcessManifest:
    """
    Routing configuration for one named process.

    Fields:
        process_name: Stable name, e.g. 'lifecycle_management/handle-price-increase'.
        description:  Human-readable purpose.
        owner:        Owning team or person.
        input_schema: Structural contract for input_args.
        strategy:     StrategyRef selecting among variants.
        variants:     Ordered candidates. Order matters to strategies.
        experiment:   Optional experiment metadata.
    """

    process_name: str
    description: str
    owner: str
    input_schema: Mapping[str, Any]
    strategy: StrategyRef
    variants: Tuple[Variant, ...]
    experiment: Optional[Experiment] = None

    def __post_init__(self):
        if not self.process_name or not isinstance(self.process_name, str):
            raise MalformedManifest(str(self.process_name), "process_name must be non-empty.")

        if not self.strategy.address:
            raise MalformedManifest(self.process_name, "strategy address is required.")

        if not self.variants:
            raise MalformedManifest(self.process_name, "at least one variant is required.")

        seen: set[str] = set()
        for variant in self.variants:
            if not variant.variant_id:
                raise MalformedManifest(self.process_name, "variant id must be non-empty.")
            if variant.variant_id in seen:
                raise MalformedManifest(
                    self.process_name,
                    f"duplicate variant id '{variant.variant_id}'.",
                )
            seen.add(variant.variant_id)
            if not variant.target:
                raise MalformedManifest(
                    self.process_name,
                    f"variant '{variant.variant_id}' has no target.",
                )
            if variant.weight is not None and not 0.0 <= variant.weight <= 1.0:
                raise MalformedManifest(
                    self.process_name,
                    f"variant '{variant.variant_id}' weight {variant.weight} "
                    f"is outside [0, 1].",
                )

        weighted = [v for v in self.variants if v.weight is not None]
        if weighted:
            if len(weighted) != len(self.variants):
                raise MalformedManifest(
                    self.process_name,
                    "either every variant carries a weight or none does.",
                )
            total = sum(v.weight for v in weighted)
            if total > 1.0 + WEIGHT_TOLERANCE:
                raise MalformedManifest(
                    self.process_name,
                    f"variant weights sum to {total}, must be <= 1.",
                )

        try:
            check_schema(self.input_schema)
        except InvalidSchemaDefinition as exc:
            raise MalformedManifest(self.process_name, str(exc)) from exc

    @property
    def variant_ids(self) -> frozenset[str]:
        return frozenset(v.variant_id for v in self.variants)

    @property
    def is_weighted(self) -> bool:
        return all(v.weight is not None for v in self.variants)

    def get_variant(self, variant_id: str) -> Optional[Variant]:
        for variant in self.variants:
            if variant.variant_id == variant_id:
                return variant
        return None

    def to_dict(self) -> dict:
        return {
            "process_name": self.process_name,
            "description": self.description,
            "owner": self.owner,
            "input_schema": dict(self.input_schema),
            "strategy": self.strategy.to_dict(),
            "variants": [v.to_dict() for v in self.variants],
            "experiment": self.experiment.to_dict() if self.experiment else None,
        }


def manifest_from_dict(process_name: str, record: Mapping[str, Any]) -> ProcessManifest:
    """
    Build a ProcessManifest from a raw record (YAML/JSON shape):

        description: ...
        owner: ...
        input_schema: {...}
        strategy: {address: strategies.percentage_rollout, static_args: {...}}
        variants: [{id: v1, target: ..., weight: 0.8}, ...]
        experiment: {experiment_id: ..., hypothesis: ..., started_on: ..., metrics: [...]}
    """
    if not isinstance(record, Mapping):
        raise MalformedManifest(process_name, "record must be a mapping.")

    strategy_raw = record.get("strategy")
    if not isinstance(strategy_raw, Mapping):
        raise MalformedManifest(process_name, "strategy must be a mapping.")

    variants_raw = record.get("variants")
    if not isinstance(variants_raw, list):
        raise MalformedManifest(process_name, "variants must be a list.")

    variants = []
    for index, raw in enumerate(variants_raw):
        if not isinstance(raw, Mapping) or "id" not in raw or "target" not in raw:
            raise MalformedManifest(
                process_name, f"variants[{index}] must declare 'id' and 'target'."
            )
        weight = raw.get("weight")
        try:
            weight = float(weight) if weight is not None else None
        except (TypeError, ValueError):
            raise MalformedManifest(
                process_name, f"variants[{index}] weight must be a number."
            )
        variants.append(
            Variant(variant_id=str(raw["id"]), target=str(raw["target"]), weight=weight)
        )

    experiment = None
    experiment_raw = record.get("experiment")
    if experiment_raw:
        if not isinstance(experiment_raw, Mapping) or not experiment_raw.get("experiment_id"):
            raise MalformedManifest(process_name, "experiment needs an experiment_id.")
        started_on = experiment_raw.get("started_on")
        if isinstance(started_on, str):
            started_on = date.fromisoformat(started_on)
        experiment = Experiment(
            experiment_id=str(experiment_raw["experiment_id"]),
            hypothesis=str(experiment_raw.get("hypothesis", "")),
            started_on=started_on,
            metrics=tuple(experiment_raw.get("metrics", ())),
        )

    return ProcessManifest(
        process_name=process_name,
        description=str(record.get("description", "")),
        owner=str(record.get("owner", "")),
        input_schema=dict(record.get("input_schema") or {"type": "object"}),
        strategy=StrategyRef(
            address=str(strategy_raw.get("address", "")),
            static_args=dict(strategy_raw.get("static_args") or {}),
        ),
        variants=tuple(variants),
        experiment=experiment,
    )
