"""
Ledgerline Dispatch — Strategy Resolver
=======================================
(process_name, caller_context, input_args, trace_id) → Resolution

Flow:
    1. Take the current manifest snapshot → UnknownProcess if absent
    2. Validate input_args against input_schema → InvalidInput
    3. Run the referenced strategy over the declared variants
    4. Verify the strategy returned a declared variant
       → InvalidStrategyResult otherwise
    5. Log the decision (structured)
    6. Return the chosen variant's target address

The resolver has no side effects beyond logging and holds no
mutable state besides the injected, read-only manifest store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

from core.dispatch.errors import (
    InvalidInput,
    InvalidStrategyResult,
    UnknownProcess,
    UnknownStrategy,
)
from core.manifest.models import ProcessManifest
from core.manifest.schema import validate_against_schema
from core.manifest.store import ManifestSnapshot
from core.strategies.base import StrategyConfigurationError, StrategyContextError
from core.strategies.registry import StrategyRegistry

logger = logging.getLogger("ledgerline.dispatch")


class ManifestSource(Protocol):
    def current(self) -> ManifestSnapshot:
        ...


@dataclass(frozen=True)
class Resolution:
    """Outcome of one routing decision."""

    process_name: str
    variant_id: str
    target: str
    strategy_address: str
    manifest_version: str
    experiment_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "process_name": self.process_name,
            "variant_id": self.variant_id,
            "target": self.target,
            "strategy_address": self.strategy_address,
            "manifest_version": self.manifest_version,
            "experiment_id": self.experiment_id,
        }


class StrategyResolver:
    """
    Usage:
        resolver = StrategyResolver(manifest_store, build_default_registry())
        resolution = resolver.resolve(
            "lifecycle_management/handle-price-increase",
            {"user_id": "user-42"},
            {"contract_id": "c-1", "new_monthly_fee": 4200},
            trace_id,
        )
    """

    def __init__(self, manifests: ManifestSource, strategies: StrategyRegistry):
        self._manifests = manifests
        self._strategies = strategies

    def resolve(
        self,
        process_name: str,
        caller_context: Mapping[str, Any],
        input_args: Mapping[str, Any],
        trace_id: str,
    ) -> Resolution:
        snapshot = self._manifests.current()

        # ── Step 1: Manifest lookup ───────────────────────────
        manifest = snapshot.get(process_name)
        if manifest is None:
            logger.info(
                f"Unknown process '{process_name}' (trace_id: {trace_id})"
            )
            raise UnknownProcess(process_name)

        # ── Step 2: Input validation ──────────────────────────
        violation = validate_against_schema(
            input_args, manifest.input_schema, "input_args"
        )
        if violation is not None:
            logger.info(
                f"Input rejected for '{process_name}': {violation.field} "
                f"{violation.reason} (trace_id: {trace_id})"
            )
            raise InvalidInput(violation.field, violation.reason, process_name)

        # ── Step 3: Strategy evaluation ───────────────────────
        chosen = self._run_strategy(manifest, caller_context)

        # ── Step 4: Defensive result check ────────────────────
        if chosen is None:
            raise InvalidStrategyResult(process_name, "strategy returned no variant.")
        variant = manifest.get_variant(getattr(chosen, "variant_id", None))
        if variant is None:
            raise InvalidStrategyResult(
                process_name,
                f"strategy returned undeclared variant "
                f"'{getattr(chosen, 'variant_id', chosen)}'.",
            )

        resolution = Resolution(
            process_name=process_name,
            variant_id=variant.variant_id,
            target=variant.target,
            strategy_address=manifest.strategy.address,
            manifest_version=snapshot.version,
            experiment_id=(
                manifest.experiment.experiment_id if manifest.experiment else None
            ),
        )

        # ── Step 5: Decision log ──────────────────────────────
        logger.info(
            f"Routed '{process_name}' → variant '{variant.variant_id}' "
            f"via {manifest.strategy.address} (trace_id: {trace_id})",
            extra={
                "decision": {
                    "process_name": process_name,
                    "strategy": manifest.strategy.address,
                    "variant_id": variant.variant_id,
                    "manifest_version": snapshot.version,
                    "experiment_id": resolution.experiment_id,
                    "trace_id": trace_id,
                }
            },
        )

        # ── Step 6: Target ────────────────────────────────────
        return resolution

    def _run_strategy(
        self, manifest: ProcessManifest, caller_context: Mapping[str, Any]
    ):
        strategy = self._strategies.get(manifest.strategy.address)
        if strategy is None:
            raise UnknownStrategy(manifest.process_name, manifest.strategy.address)

        try:
            return strategy(
                caller_context, manifest.variants, manifest.strategy.static_args
            )
        except StrategyContextError as exc:
            raise InvalidInput(
                f"caller_context.{exc.path}", exc.reason, manifest.process_name
            ) from exc
        except StrategyConfigurationError as exc:
            raise InvalidStrategyResult(manifest.process_name, exc.detail) from exc
