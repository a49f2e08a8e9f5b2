"""
Ledgerline Dispatch — Errors
============================
Every synchronous dispatch failure carries enough structure to be
actionable without reading internal logs.

Configuration errors (UnknownProcess, UnknownStrategy, UnknownTarget,
InvalidStrategyResult) need a manifest or wiring fix. InvalidInput
needs a caller fix. None of them is retried automatically.

Errors raised by a dispatched target are NOT wrapped here; they
propagate to the caller unchanged.
"""

from __future__ import annotations


class DispatchError(Exception):
    """Base error for dispatcher and resolver failures."""

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "message": str(self)}


class UnknownProcess(DispatchError):
    """No manifest exists for the process name."""

    def __init__(self, process_name: str):
        self.process_name = process_name
        super().__init__(f"No manifest registered for process '{process_name}'.")

    def to_dict(self) -> dict:
        return {"error": "UnknownProcess", "process_name": self.process_name}


class InvalidInput(DispatchError):
    """Caller input does not conform to the manifest's input schema."""

    def __init__(self, field: str, reason: str, process_name: str = ""):
        self.field = field
        self.reason = reason
        self.process_name = process_name
        super().__init__(f"Invalid input for '{process_name}': {field} {reason}")

    def to_dict(self) -> dict:
        return {
            "error": "InvalidInput",
            "process_name": self.process_name,
            "field": self.field,
            "reason": self.reason,
        }


class InvalidStrategyResult(DispatchError):
    """A strategy returned nothing, or a variant the manifest does not declare."""

    def __init__(self, process_name: str, detail: str):
        self.process_name = process_name
        self.detail = detail
        super().__init__(f"Strategy for '{process_name}' misbehaved: {detail}")

    def to_dict(self) -> dict:
        return {
            "error": "InvalidStrategyResult",
            "process_name": self.process_name,
            "detail": self.detail,
        }


class UnknownStrategy(DispatchError):
    def __init__(self, process_name: str, address: str):
        self.process_name = process_name
        self.address = address
        super().__init__(
            f"Manifest '{process_name}' references unregistered strategy '{address}'."
        )


class UnknownTarget(DispatchError):
    def __init__(self, address: str):
        self.address = address
        super().__init__(f"No execution target registered at '{address}'.")


class DuplicateTargetError(DispatchError):
    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Execution target already registered at '{address}'.")


class DispatchCancelled(DispatchError):
    """Caller cancelled before the target was invoked. Nothing ran."""

    def __init__(self, process_name: str, trace_id: str):
        self.process_name = process_name
        self.trace_id = trace_id
        super().__init__(
            f"Dispatch of '{process_name}' cancelled before target invocation "
            f"(trace_id: {trace_id})."
        )
