"""
Ledgerline Dispatch — Process Dispatcher
========================================
The single entry point for every orchestrated business process.

    dispatch(process_name, caller_context, input_args, trace_id)

The Dispatcher:
- Resolves the variant through the StrategyResolver
- Looks up the execution target by address
- Invokes it with the ORIGINAL input_args and trace_id
- Returns the target's result unmodified

The Dispatcher does NOT:
- Contain business logic
- Retry, wrap or reinterpret target failures
- Change when variants change (variants are manifest data)

Fail-fast: UnknownProcess, InvalidInput and UnknownTarget are all
raised before any target runs, so they never leave side effects.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Optional

from core.dispatch.errors import DispatchCancelled, InvalidInput
from core.dispatch.resolver import StrategyResolver
from core.dispatch.targets import TargetRegistry
from core.dispatch.trace import is_valid_trace_id

logger = logging.getLogger("ledgerline.dispatch")


class ProcessDispatcher:
    """
    Usage:
        dispatcher = ProcessDispatcher(resolver, targets)
        result = dispatcher.dispatch(
            "lifecycle_management/handle-price-increase",
            caller_context={"user_id": "user-42"},
            input_args={"contract_id": "c-1", "new_monthly_fee": 4200},
            trace_id=new_trace_id(),
        )
    """

    def __init__(self, resolver: StrategyResolver, targets: TargetRegistry):
        self._resolver = resolver
        self._targets = targets

    def dispatch(
        self,
        process_name: str,
        caller_context: Mapping[str, Any],
        input_args: Mapping[str, Any],
        trace_id: str,
        cancellation: Optional[threading.Event] = None,
    ) -> Any:
        if not is_valid_trace_id(trace_id):
            raise InvalidInput("trace_id", "must be a non-empty string", process_name)

        resolution = self._resolver.resolve(
            process_name, caller_context, input_args, trace_id
        )
        target = self._targets.get(resolution.target)

        if cancellation is not None and cancellation.is_set():
            logger.info(
                f"Dispatch of '{process_name}' cancelled before target "
                f"invocation (trace_id: {trace_id})"
            )
            raise DispatchCancelled(process_name, trace_id)

        logger.debug(
            f"Invoking {resolution.target} for '{process_name}' "
            f"(trace_id: {trace_id})"
        )
        return target(input_args, trace_id)
