"""
Ledgerline Dispatch — Public API
================================
Resolve WHERE a named process executes, then hand over.
"""

from core.dispatch.dispatcher import ProcessDispatcher
from core.dispatch.errors import (
    DispatchCancelled,
    DispatchError,
    DuplicateTargetError,
    InvalidInput,
    InvalidStrategyResult,
    UnknownProcess,
    UnknownStrategy,
    UnknownTarget,
)
from core.dispatch.resolver import ManifestSource, Resolution, StrategyResolver
from core.dispatch.targets import ExecutionTarget, TargetRegistry
from core.dispatch.trace import is_valid_trace_id, new_trace_id

__all__ = [
    "DispatchCancelled",
    "DispatchError",
    "DuplicateTargetError",
    "ExecutionTarget",
    "InvalidInput",
    "InvalidStrategyResult",
    "ManifestSource",
    "ProcessDispatcher",
    "Resolution",
    "StrategyResolver",
    "TargetRegistry",
    "UnknownProcess",
    "UnknownStrategy",
    "UnknownTarget",
    "is_valid_trace_id",
    "new_trace_id",
]
