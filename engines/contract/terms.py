"""
Ledgerline Contract Engine — Written Terms
==========================================
Date arithmetic over a contract's recorded terms. Pure functions:
no clock access, no status checks. `today` is always passed in.

Stored attributes are JSON-normalised (dates as ISO strings, money
as decimal strings), so every accessor parses its input.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Mapping, Optional

from core.ledger.errors import LedgerValidationError
from core.time.temporal import add_months, to_date

TERM_MINIMUMS = {"term_months": 1, "renewal_term_months": 1, "notice_period_days": 0}
DATE_TERMS = frozenset({"start_date", "activated_on"})
MONEY_TERMS = frozenset({"monthly_fee", "pending_monthly_fee", "credit_balance"})


def money(terms: Mapping[str, Any], key: str) -> Optional[Decimal]:
    value = terms.get(key)
    if value is None:
        return None
    return Decimal(str(value))


def flag(terms: Mapping[str, Any], key: str, default: bool = False) -> bool:
    value = terms.get(key, default)
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def term_start(terms: Mapping[str, Any]) -> Optional[date]:
    """Activation date when known, otherwise the agreed start date."""
    return to_date(terms.get("activated_on")) or to_date(terms.get("start_date"))


def first_term_end(terms: Mapping[str, Any]) -> Optional[date]:
    start = term_start(terms)
    if start is None:
        return None
    return add_months(start, int(terms.get("term_months") or 12))


def current_term_end(terms: Mapping[str, Any], today: date) -> Optional[date]:
    """
    End of the term running on `today`. Auto-renewing contracts roll
    forward by renewal_term_months until the end is not in the past.
    """
    end = first_term_end(terms)
    if end is None:
        return None
    if not flag(terms, "auto_renew"):
        return end
    renewal_months = int(terms.get("renewal_term_months") or 12)
    while end < today:
        end = add_months(end, renewal_months)
    return end


def notice_period(terms: Mapping[str, Any], default_days: int) -> timedelta:
    days = terms.get("notice_period_days")
    return timedelta(days=int(days) if days is not None else default_days)


def cancellation_deadline(
    terms: Mapping[str, Any], today: date, default_notice_days: int = 30
) -> Optional[date]:
    """Last day a cancellation still ends the contract at the current term end."""
    end = current_term_end(terms, today)
    if end is None:
        return None
    return end - notice_period(terms, default_notice_days)


def check_term(attribute: str, value: Any, command: Optional[str] = None) -> None:
    """
    Reject a value the date arithmetic above cannot use.

    Integer terms must be real ints at or above their minimum,
    auto_renew a bool, and date terms a date or an ISO date string.
    Other attributes are not checked here.
    """
    if attribute in TERM_MINIMUMS:
        minimum = TERM_MINIMUMS[attribute]
        if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
            raise LedgerValidationError(
                attribute, f"must be an integer >= {minimum}", command=command
            )
    elif attribute == "auto_renew":
        if not isinstance(value, bool):
            raise LedgerValidationError(attribute, "must be a boolean", command=command)
    elif attribute in DATE_TERMS:
        try:
            parsed = to_date(value)
        except ValueError:
            parsed = None
        if parsed is None:
            raise LedgerValidationError(attribute, "must be a date", command=command)


def check_terms(terms: Mapping[str, Any], command: Optional[str] = None) -> None:
    for attribute, value in terms.items():
        check_term(attribute, value, command)


def typed_term(attribute: str, value: Any) -> Any:
    """Stored or requested value in comparable form (dates, Decimals)."""
    if value is None:
        return None
    if attribute in DATE_TERMS:
        return to_date(value)
    if attribute in MONEY_TERMS or isinstance(value, Decimal):
        return Decimal(str(value))
    return value
