"""
Ledgerline Strategy Library — Strategy Registry
===============================================
Maps stable strategy addresses to decision callables.

Manifests reference strategies by address ('strategies.direct').
Addresses are resolved through this explicit table — no dynamic
imports, no eval, no string-based module loading.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Optional

from core.strategies.attribute import attribute_filter
from core.strategies.bandit import (
    BanditCounterStore,
    InMemoryBanditCounterStore,
    MultiArmedBanditStrategy,
)
from core.strategies.base import StrategyFunction
from core.strategies.direct import direct
from core.strategies.rollout import percentage_rollout

logger = logging.getLogger("ledgerline.strategies")


STRATEGY_DIRECT = "strategies.direct"
STRATEGY_PERCENTAGE_ROLLOUT = "strategies.percentage_rollout"
STRATEGY_ATTRIBUTE_FILTER = "strategies.attribute_filter"
STRATEGY_BANDIT = "strategies.bandit"

# Strategies whose decision depends on variant weights.
WEIGHT_BASED_STRATEGIES = frozenset({STRATEGY_PERCENTAGE_ROLLOUT})


class DuplicateStrategyError(Exception):
    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Strategy already registered at '{address}'.")


class StrategyRegistry:
    """In-memory, thread-safe address → strategy table."""

    def __init__(self):
        self._strategies: dict[str, StrategyFunction] = {}
        self._lock = Lock()

    def register(self, address: str, strategy: StrategyFunction) -> None:
        if not address or not isinstance(address, str):
            raise ValueError("strategy address must be a non-empty string.")
        if not callable(strategy):
            raise TypeError(
                f"Strategy must be callable, got {type(strategy).__name__}."
            )
        with self._lock:
            if address in self._strategies:
                raise DuplicateStrategyError(address)
            self._strategies[address] = strategy
        logger.info(f"Strategy registered: {address}")

    def get(self, address: str) -> Optional[StrategyFunction]:
        with self._lock:
            return self._strategies.get(address)

    def is_registered(self, address: str) -> bool:
        with self._lock:
            return address in self._strategies

    def addresses(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._strategies)


def build_default_registry(
    counter_store: Optional[BanditCounterStore] = None,
) -> StrategyRegistry:
    """Registry holding the four built-in strategies."""
    registry = StrategyRegistry()
    registry.register(STRATEGY_DIRECT, direct)
    registry.register(STRATEGY_PERCENTAGE_ROLLOUT, percentage_rollout)
    registry.register(STRATEGY_ATTRIBUTE_FILTER, attribute_filter)
    registry.register(
        STRATEGY_BANDIT,
        MultiArmedBanditStrategy(counter_store or InMemoryBanditCounterStore()),
    )
    return registry
