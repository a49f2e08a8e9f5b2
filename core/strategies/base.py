"""
Ledgerline Strategy Library — Base Contract
===========================================
A Strategy is a pure decision function:

    (caller_context, variants, static_args) → chosen variant

Rules:
- Deterministic for identical inputs
- No hidden state, no wall-clock reads
- Never mutates its arguments
- Returns exactly one of the variants it was given

The library has no dependency on the manifest store. Variants are
consumed through the VariantLike protocol (variant_id + weight).
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Protocol, Sequence


class VariantLike(Protocol):
    """Anything carrying a variant id and an optional weight."""

    variant_id: str
    weight: Optional[float]


# A strategy is a callable:
#   (caller_context, variants, static_args) → VariantLike | None
StrategyFunction = Callable[
    [Mapping[str, Any], Sequence[VariantLike], Mapping[str, Any]],
    Optional[VariantLike],
]


# ══════════════════════════════════════════════════════════════
# STRATEGY ERRORS
# ══════════════════════════════════════════════════════════════

class StrategyError(Exception):
    """Base error for strategy evaluation."""
    pass


class StrategyContextError(StrategyError):
    """Caller context lacks an attribute the strategy needs."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"caller_context.{path}: {reason}")


class StrategyConfigurationError(StrategyError):
    """Static arguments are missing or inconsistent with the variants."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


# ══════════════════════════════════════════════════════════════
# SHARED HELPERS
# ══════════════════════════════════════════════════════════════

_MISSING = object()


def lookup_path(context: Mapping[str, Any], path: str) -> Any:
    """
    Resolve a dotted path ('user.region') against nested mappings.

    Returns the module-private _MISSING sentinel when any segment is
    absent, so callers can tell "missing" apart from a None value.
    """
    current: Any = context
    for segment in path.split("."):
        if not isinstance(current, Mapping) or segment not in current:
            return _MISSING
        current = current[segment]
    return current


def is_missing(value: Any) -> bool:
    return value is _MISSING


def find_variant(
    variants: Sequence[VariantLike], variant_id: str
) -> Optional[VariantLike]:
    for variant in variants:
        if variant.variant_id == variant_id:
            return variant
    return None


def require_variant(
    variants: Sequence[VariantLike], variant_id: str, *, arg_name: str
) -> VariantLike:
    variant = find_variant(variants, variant_id)
    if variant is None:
        raise StrategyConfigurationError(
            f"{arg_name} '{variant_id}' is not a declared variant. "
            f"Declared: {[v.variant_id for v in variants]}"
        )
    return variant
