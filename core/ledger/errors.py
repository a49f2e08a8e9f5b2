"""
Ledgerline Ledger — State Errors
================================
Raised synchronously to the caller of a Command Handler.

A state error always means NOTHING was written: no status change,
no attribute change, no history entry, no event.

Each error names the entity, the command and the offending status
or field, so callers can act without reading internal logs.
"""

from __future__ import annotations

from typing import Iterable, Optional


class LedgerError(Exception):
    """Base error for ledger commands and queries."""

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "message": str(self)}


class EntityNotFound(LedgerError):
    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} '{entity_id}' not found.")

    def to_dict(self) -> dict:
        return {
            "error": "NotFound",
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
        }


class EntityAlreadyExists(LedgerError):
    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} '{entity_id}' already exists.")


class IllegalTransition(LedgerError):
    """Current status is not in the command's allowed source set."""

    def __init__(
        self,
        *,
        entity_type: str,
        entity_id: str,
        command: str,
        current_status: str,
        allowed_from: Iterable[str],
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.command = command
        self.current_status = current_status
        self.allowed_from = tuple(sorted(allowed_from))
        super().__init__(
            f"{command} not allowed on {entity_type} '{entity_id}' in status "
            f"{current_status}. Required: {list(self.allowed_from)}."
        )

    def to_dict(self) -> dict:
        return {
            "error": "IllegalTransition",
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "command": self.command,
            "current_status": self.current_status,
            "allowed_from": list(self.allowed_from),
        }


class LedgerValidationError(LedgerError, ValueError):
    """A payload field breaks a business invariant."""

    def __init__(self, field: str, reason: str, command: Optional[str] = None):
        self.field = field
        self.reason = reason
        self.command = command
        prefix = f"{command}: " if command else ""
        super().__init__(f"{prefix}{field} {reason}")

    def to_dict(self) -> dict:
        return {
            "error": "ValidationError",
            "command": self.command,
            "field": self.field,
            "reason": self.reason,
        }


class ConcurrentModification(LedgerError):
    """Optimistic commit kept losing to concurrent commands."""

    def __init__(self, entity_type: str, entity_id: str, command: str, attempts: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.command = command
        self.attempts = attempts
        super().__init__(
            f"{command} on {entity_type} '{entity_id}' lost {attempts} "
            f"consecutive commit races. Nothing was applied."
        )


class HistoryImmutableError(LedgerError):
    """Something tried to rewrite or drop history."""
    pass
