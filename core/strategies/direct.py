"""
Ledgerline Strategy Library — Direct
====================================
Default strategy for processes without an experiment.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from core.strategies.base import VariantLike


def direct(
    caller_context: Mapping[str, Any],
    variants: Sequence[VariantLike],
    static_args: Mapping[str, Any],
) -> Optional[VariantLike]:
    """Always the first variant in declaration order."""
    if not variants:
        return None
    return variants[0]
