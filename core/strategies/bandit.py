"""
Ledgerline Strategy Library — Multi-Armed Bandit
================================================
UCB1 selection over externally maintained performance counters.

This is the only strategy with external state. Determinism within a
decision is preserved by reading ONE immutable counter snapshot up
front; nothing read after that point can change the outcome.

Selection:
    1. Any variant never played wins (declaration order).
    2. Otherwise maximise  mean_reward + c * sqrt(ln(total) / pulls)
       where c = static arg 'exploration' (default sqrt(2)).
    3. Ties go to the earlier declared variant.

static_args:
    namespace:   counter namespace (usually the process name)
    exploration: exploration constant c
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from threading import Lock
from typing import Any, Mapping, Optional, Protocol, Sequence

from core.strategies.base import StrategyConfigurationError, VariantLike

logger = logging.getLogger("ledgerline.strategies")

DEFAULT_EXPLORATION = math.sqrt(2)


@dataclass(frozen=True)
class ArmCounters:
    pulls: int = 0
    reward_total: float = 0.0

    @property
    def mean_reward(self) -> float:
        return self.reward_total / self.pulls if self.pulls else 0.0


class BanditCounterStore(Protocol):
    def snapshot(self, namespace: str) -> Mapping[str, ArmCounters]:
        """Immutable copy of all arm counters in a namespace."""
        ...

    def record(self, namespace: str, variant_id: str, reward: float) -> None:
        ...


class InMemoryBanditCounterStore:
    """Thread-safe in-memory counters, used by tests and single-process setups."""

    def __init__(self):
        self._counters: dict[str, dict[str, ArmCounters]] = {}
        self._lock = Lock()

    def snapshot(self, namespace: str) -> Mapping[str, ArmCounters]:
        with self._lock:
            return dict(self._counters.get(namespace, {}))

    def record(self, namespace: str, variant_id: str, reward: float) -> None:
        if not 0.0 <= reward <= 1.0:
            raise ValueError(f"reward must be in [0, 1], got {reward}.")
        with self._lock:
            arms = self._counters.setdefault(namespace, {})
            current = arms.get(variant_id, ArmCounters())
            arms[variant_id] = ArmCounters(
                pulls=current.pulls + 1,
                reward_total=current.reward_total + reward,
            )


class MultiArmedBanditStrategy:
    """
    Strategy callable bound to a counter store.

    Usage:
        store = InMemoryBanditCounterStore()
        bandit = MultiArmedBanditStrategy(store)
        registry.register("strategies.bandit", bandit)
        ...
        bandit.record_outcome("lifecycle_management/x", "v2", reward=1.0)
    """

    def __init__(self, counter_store: BanditCounterStore):
        self._store = counter_store

    def __call__(
        self,
        caller_context: Mapping[str, Any],
        variants: Sequence[VariantLike],
        static_args: Mapping[str, Any],
    ) -> Optional[VariantLike]:
        if not variants:
            return None

        namespace = static_args.get("namespace")
        if not namespace:
            raise StrategyConfigurationError("bandit requires a 'namespace'.")
        exploration = float(static_args.get("exploration", DEFAULT_EXPLORATION))

        counters = self._store.snapshot(namespace)

        for variant in variants:
            if counters.get(variant.variant_id, ArmCounters()).pulls == 0:
                return variant

        total_pulls = sum(
            counters[variant.variant_id].pulls for variant in variants
        )
        best = variants[0]
        best_score = -math.inf
        for variant in variants:
            arm = counters[variant.variant_id]
            score = arm.mean_reward + exploration * math.sqrt(
                math.log(total_pulls) / arm.pulls
            )
            if score > best_score:
                best, best_score = variant, score
        return best

    def record_outcome(self, namespace: str, variant_id: str, reward: float) -> None:
        self._store.record(namespace, variant_id, reward)
        logger.debug(
            f"Bandit outcome recorded: {namespace}/{variant_id} reward={reward}"
        )
