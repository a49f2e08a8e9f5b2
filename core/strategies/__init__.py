"""
Ledgerline Strategy Library — Public API
========================================
Pure, deterministic variant selection.
"""

from core.strategies.attribute import attribute_filter
from core.strategies.bandit import (
    ArmCounters,
    BanditCounterStore,
    InMemoryBanditCounterStore,
    MultiArmedBanditStrategy,
)
from core.strategies.base import (
    StrategyConfigurationError,
    StrategyContextError,
    StrategyError,
    StrategyFunction,
    VariantLike,
    lookup_path,
)
from core.strategies.direct import direct
from core.strategies.registry import (
    STRATEGY_ATTRIBUTE_FILTER,
    STRATEGY_BANDIT,
    STRATEGY_DIRECT,
    STRATEGY_PERCENTAGE_ROLLOUT,
    WEIGHT_BASED_STRATEGIES,
    DuplicateStrategyError,
    StrategyRegistry,
    build_default_registry,
)
from core.strategies.rollout import (
    BucketRange,
    bucket_for,
    build_bucket_ranges,
    percentage_rollout,
)

__all__ = [
    "ArmCounters",
    "BanditCounterStore",
    "BucketRange",
    "DuplicateStrategyError",
    "InMemoryBanditCounterStore",
    "MultiArmedBanditStrategy",
    "STRATEGY_ATTRIBUTE_FILTER",
    "STRATEGY_BANDIT",
    "STRATEGY_DIRECT",
    "STRATEGY_PERCENTAGE_ROLLOUT",
    "StrategyConfigurationError",
    "StrategyContextError",
    "StrategyError",
    "StrategyFunction",
    "StrategyRegistry",
    "VariantLike",
    "WEIGHT_BASED_STRATEGIES",
    "attribute_filter",
    "bucket_for",
    "build_bucket_ranges",
    "build_default_registry",
    "direct",
    "lookup_path",
    "percentage_rollout",
]
