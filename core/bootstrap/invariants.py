"""
Ledgerline Bootstrap — Invariant Checks
=======================================
Each function verifies one startup law.
If any check fails → SystemBootstrapError is raised.

These checks do NOT:
- Auto-fix anything
- Run migrations
- Silence failures
- Register missing strategies or targets

A dispatcher that boots with a dangling manifest is worse than none.
"""

import logging
from datetime import datetime, timezone
from typing import Mapping

from core.bootstrap.errors import SystemBootstrapError
from core.dispatch.targets import TargetRegistry
from core.manifest.store import ManifestSnapshot
from core.strategies.base import StrategyConfigurationError
from core.strategies.registry import (
    STRATEGY_ATTRIBUTE_FILTER,
    STRATEGY_BANDIT,
    STRATEGY_PERCENTAGE_ROLLOUT,
    StrategyRegistry,
)
from core.strategies.rollout import build_bucket_ranges

logger = logging.getLogger("ledgerline.bootstrap")


# ══════════════════════════════════════════════════════════════
# CHECK 1: Every manifest strategy is registered
# ══════════════════════════════════════════════════════════════

def check_strategies_registered(snapshot: ManifestSnapshot, strategies: StrategyRegistry):
    for name in snapshot.process_names():
        address = snapshot.get(name).strategy.address
        if not strategies.is_registered(address):
            raise SystemBootstrapError(
                invariant="STRATEGY_REGISTERED",
                detail=f"Process '{name}' uses strategy '{address}', which is not registered.",
            )
    logger.info("✓ All manifest strategies registered.")


# ══════════════════════════════════════════════════════════════
# CHECK 2: Every variant target is registered
# ══════════════════════════════════════════════════════════════

def check_targets_registered(snapshot: ManifestSnapshot, targets: TargetRegistry):
    for name in snapshot.process_names():
        for variant in snapshot.get(name).variants:
            if not targets.is_registered(variant.target):
                raise SystemBootstrapError(
                    invariant="TARGET_REGISTERED",
                    detail=(
                        f"Process '{name}' variant '{variant.variant_id}' targets "
                        f"'{variant.target}', which is not registered."
                    ),
                )
    logger.info("✓ All variant targets registered.")


# ══════════════════════════════════════════════════════════════
# CHECK 3: Strategy arguments reference declared variants
# ══════════════════════════════════════════════════════════════

def check_strategy_arguments(snapshot: ManifestSnapshot):
    """
    Static args that name variants must name declared ones, and
    rollout weights must partition cleanly into buckets.
    """
    for name in snapshot.process_names():
        manifest = snapshot.get(name)
        address = manifest.strategy.address
        args = manifest.strategy.static_args
        named = []

        if address in (STRATEGY_PERCENTAGE_ROLLOUT, STRATEGY_ATTRIBUTE_FILTER):
            if args.get("default_variant"):
                named.append(("default_variant", args["default_variant"]))
        if address == STRATEGY_ATTRIBUTE_FILTER:
            if not args.get("default_variant"):
                raise SystemBootstrapError(
                    invariant="STRATEGY_ARGUMENTS",
                    detail=f"Process '{name}': attribute_filter requires default_variant.",
                )
            for index, rule in enumerate(args.get("rules", ())):
                if not isinstance(rule, Mapping):
                    raise SystemBootstrapError(
                        invariant="STRATEGY_ARGUMENTS",
                        detail=f"Process '{name}': rules[{index}] must be a mapping.",
                    )
                named.append((f"rules[{index}].variant", rule.get("variant")))
        if address == STRATEGY_PERCENTAGE_ROLLOUT:
            try:
                build_bucket_ranges(manifest.variants)
            except StrategyConfigurationError as exc:
                raise SystemBootstrapError(
                    invariant="STRATEGY_ARGUMENTS",
                    detail=f"Process '{name}': {exc}",
                ) from exc
        if address == STRATEGY_BANDIT and not args.get("namespace"):
            raise SystemBootstrapError(
                invariant="STRATEGY_ARGUMENTS",
                detail=f"Process '{name}': bandit requires a namespace.",
            )

        for arg_name, variant_id in named:
            if variant_id not in manifest.variant_ids:
                raise SystemBootstrapError(
                    invariant="STRATEGY_ARGUMENTS",
                    detail=(
                        f"Process '{name}': {arg_name} names undeclared variant "
                        f"'{variant_id}'."
                    ),
                )
    logger.info("✓ Strategy arguments reference declared variants.")


# ══════════════════════════════════════════════════════════════
# CHECK 4: Ledger tables exist (Django persistence only)
# ══════════════════════════════════════════════════════════════

def check_ledger_tables():
    """No auto-migration: missing tables refuse start."""
    from django.db import connection

    table_names = set(connection.introspection.table_names())
    for table in ("ledgerline_entity", "ledgerline_history_entry"):
        if table not in table_names:
            raise SystemBootstrapError(
                invariant="LEDGER_TABLES",
                detail=(
                    f"Table '{table}' does not exist. Run migrations before starting. "
                    f"Bootstrap will not auto-create tables."
                ),
            )
    logger.info("✓ Ledger tables exist.")


# ══════════════════════════════════════════════════════════════
# CHECK 5: History immutability guards active
# ══════════════════════════════════════════════════════════════

def check_history_guards():
    """
    Verify LedgerHistoryEntry.save() blocks updates and delete()
    raises, using a non-persisted instance.
    """
    from core.ledger.models import LedgerHistoryEntry

    entry = LedgerHistoryEntry(
        entry_id="bootstrap-guard",
        entity_id="bootstrap-guard",
        sequence=1,
        command="BootstrapGuardCheck",
        from_status=None,
        to_status="CHECKED",
        occurred_at=datetime.now(timezone.utc),
        trace_id="bootstrap",
        actor_id="bootstrap",
        event_id="bootstrap-guard",
        event_type="bootstrap.guard.checked",
    )
    # Simulate a loaded record
    entry._state.adding = False

    for operation in (entry.save, entry.delete):
        try:
            operation()
        except PermissionError:
            continue
        raise SystemBootstrapError(
            invariant="HISTORY_IMMUTABLE",
            detail=f"LedgerHistoryEntry.{operation.__name__}() did not raise PermissionError.",
        )
    logger.info("✓ History immutability guards active (save/delete blocked).")
