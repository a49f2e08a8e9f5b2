"""
Ledgerline Dispatch — Execution Target Registry
===============================================
Maps stable target addresses to invokable handlers.

A manifest variant names its implementation by address
('lifecycle_management.handle_price_increase.v2'). The address is
only ever a lookup key into this table; nothing is imported or
evaluated at runtime.

Target contract:
    target(input_args: dict, trace_id: str) -> Any
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Callable, Mapping

from core.dispatch.errors import DuplicateTargetError, UnknownTarget

logger = logging.getLogger("ledgerline.dispatch")

ExecutionTarget = Callable[[Mapping[str, Any], str], Any]


class TargetRegistry:
    def __init__(self):
        self._targets: dict[str, ExecutionTarget] = {}
        self._lock = Lock()

    def register(self, address: str, target: ExecutionTarget) -> None:
        if not address or not isinstance(address, str):
            raise ValueError("target address must be a non-empty string.")
        if not callable(target):
            raise TypeError(
                f"Target must be callable, got {type(target).__name__}."
            )
        with self._lock:
            if address in self._targets:
                raise DuplicateTargetError(address)
            self._targets[address] = target

        target_name = getattr(target, "__qualname__", type(target).__name__)
        logger.info(f"Target registered: {address} → {target_name}")

    def get(self, address: str) -> ExecutionTarget:
        with self._lock:
            target = self._targets.get(address)
        if target is None:
            raise UnknownTarget(address)
        return target

    def is_registered(self, address: str) -> bool:
        with self._lock:
            return address in self._targets

    def addresses(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._targets)
