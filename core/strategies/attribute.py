"""
Ledgerline Strategy Library — Attribute Filter
==============================================
Targeting by caller attributes.

static_args:
    rules:           ordered list of {path, equals, variant}
    default_variant: variant id used when no rule matches

Rules are evaluated in declaration order. First match wins.
A path absent from the caller context never matches.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from core.strategies.base import (
    StrategyConfigurationError,
    VariantLike,
    is_missing,
    lookup_path,
    require_variant,
)


def attribute_filter(
    caller_context: Mapping[str, Any],
    variants: Sequence[VariantLike],
    static_args: Mapping[str, Any],
) -> Optional[VariantLike]:
    rules = static_args.get("rules", ())
    for index, rule in enumerate(rules):
        try:
            path = rule["path"]
            expected = rule["equals"]
            variant_id = rule["variant"]
        except (KeyError, TypeError):
            raise StrategyConfigurationError(
                f"rules[{index}] must declare 'path', 'equals' and 'variant'."
            )

        actual = lookup_path(caller_context, path)
        if not is_missing(actual) and actual == expected:
            return require_variant(variants, variant_id, arg_name=f"rules[{index}].variant")

    default_id = static_args.get("default_variant")
    if not default_id:
        raise StrategyConfigurationError(
            "attribute_filter requires a 'default_variant'."
        )
    return require_variant(variants, default_id, arg_name="default_variant")
