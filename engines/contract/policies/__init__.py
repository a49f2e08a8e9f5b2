"""
Ledgerline Contract Engine — Policies
=====================================
Business invariants that need the stored contract.
Signature: policy(snapshot, request, now) -> None, raising
LedgerValidationError. They run inside the handler's precondition
step, so a violation writes nothing.
"""

from __future__ import annotations

from datetime import datetime

from core.ledger.errors import LedgerValidationError
from core.ledger.snapshot import EntitySnapshot
from core.time.temporal import to_date
from engines.contract.terms import money, typed_term


def termination_not_before_activation(
    snapshot: EntitySnapshot, request, now: datetime
) -> None:
    activated_on = to_date(snapshot.attribute("activated_on"))
    if activated_on is not None and request.termination_date < activated_on:
        raise LedgerValidationError(
            "termination_date", f"must not precede activation on {activated_on.isoformat()}"
        )


def expiry_not_before_activation(snapshot: EntitySnapshot, request, now: datetime) -> None:
    activated_on = to_date(snapshot.attribute("activated_on"))
    if activated_on is not None and request.expired_on < activated_on:
        raise LedgerValidationError(
            "expired_on", f"must not precede activation on {activated_on.isoformat()}"
        )


def price_must_increase(snapshot: EntitySnapshot, request, now: datetime) -> None:
    current = money(snapshot.attributes, "monthly_fee")
    if current is not None and request.new_monthly_fee <= current:
        raise LedgerValidationError(
            "new_monthly_fee", f"must exceed the current monthly fee {current}"
        )


def pending_price_change_required(snapshot: EntitySnapshot, request, now: datetime) -> None:
    if snapshot.attribute("pending_monthly_fee") is None:
        raise LedgerValidationError("pending_monthly_fee", "no price change is pending")


def correction_must_match_stored_value(
    snapshot: EntitySnapshot, request, now: datetime
) -> None:
    stored = snapshot.attribute(request.attribute)
    try:
        matches = typed_term(request.attribute, request.old_value) == typed_term(
            request.attribute, stored
        )
    except (ValueError, ArithmeticError):
        matches = False
    if not matches:
        raise LedgerValidationError(
            "old_value",
            f"does not match stored {request.attribute} ({stored!r})",
        )
