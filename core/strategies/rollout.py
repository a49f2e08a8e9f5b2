"""
Ledgerline Strategy Library — Percentage Rollout
================================================
Stable hash bucketing for A/B tests and gradual rollouts.

Algorithm:
    1. Extract the bucketing key from caller context (static arg
       'bucket_by', dotted path, default 'user_id').
    2. bucket = int(sha256(key)) mod 100   →   0..99
       An optional 'salt' (e.g. the experiment id) is prefixed as
       'salt:key' so unrelated experiments do not share buckets.
    3. Cumulative integer ranges from the ordered variant weights:
           weights 0.8, 0.2  →  [0, 79], [80, 99]
    4. The variant whose range contains the bucket wins.

Weights summing to less than 1.0 leave an uncovered tail. A bucket
in that tail routes to static arg 'default_variant' when declared,
otherwise to the first variant.

The same key always lands in the same bucket for an unchanged
manifest. That property is what makes a rollout safe.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from core.strategies.base import (
    StrategyConfigurationError,
    StrategyContextError,
    VariantLike,
    is_missing,
    lookup_path,
    require_variant,
)

BUCKET_COUNT = 100
DEFAULT_BUCKET_BY = "user_id"


@dataclass(frozen=True)
class BucketRange:
    """Inclusive bucket range [low, high] owned by one variant."""

    variant_id: str
    low: int
    high: int

    def contains(self, bucket: int) -> bool:
        return self.low <= bucket <= self.high

    @property
    def size(self) -> int:
        return self.high - self.low + 1


def bucket_for(key: str, salt: str = "") -> int:
    """Stable bucket in [0, 99] for a bucketing key."""
    material = f"{salt}:{key}" if salt else key
    digest = hashlib.sha256(material.encode("utf-8")).hexdigest()
    return int(digest, 16) % BUCKET_COUNT


def build_bucket_ranges(variants: Sequence[VariantLike]) -> tuple[BucketRange, ...]:
    """
    Build cumulative bucket ranges from ordered variant weights.

    Boundaries are computed on rounded cumulative percentages so that
    float noise (0.1 + 0.2) never shifts a boundary. Variants whose
    share rounds to zero buckets get no range.
    """
    ranges: list[BucketRange] = []
    cumulative = 0.0
    low = 0
    for variant in variants:
        if variant.weight is None:
            raise StrategyConfigurationError(
                f"variant '{variant.variant_id}' has no weight; "
                f"percentage rollout needs a weight on every variant."
            )
        cumulative += variant.weight
        boundary = min(int(round(cumulative * BUCKET_COUNT)), BUCKET_COUNT)
        if boundary > low:
            ranges.append(
                BucketRange(variant_id=variant.variant_id, low=low, high=boundary - 1)
            )
            low = boundary
    return tuple(ranges)


def percentage_rollout(
    caller_context: Mapping[str, Any],
    variants: Sequence[VariantLike],
    static_args: Mapping[str, Any],
) -> Optional[VariantLike]:
    if not variants:
        return None

    path = static_args.get("bucket_by", DEFAULT_BUCKET_BY)
    key = lookup_path(caller_context, path)
    if is_missing(key) or key is None:
        raise StrategyContextError(path, "bucketing key is required")
    if not isinstance(key, (str, int)) or isinstance(key, bool):
        raise StrategyContextError(
            path, f"bucketing key must be a string or integer, got {type(key).__name__}"
        )

    bucket = bucket_for(str(key), salt=str(static_args.get("salt", "")))

    for bucket_range in build_bucket_ranges(variants):
        if bucket_range.contains(bucket):
            return require_variant(variants, bucket_range.variant_id, arg_name="range")

    default_id = static_args.get("default_variant")
    if default_id:
        return require_variant(variants, default_id, arg_name="default_variant")
    return variants[0]
