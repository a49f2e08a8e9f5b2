"""
Ledgerline Core Time — Calendar Helpers
=======================================
Pure functions for contractual date arithmetic.
All functions take explicit dates — no hidden clock access.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union


DateLike = Union[date, datetime, str]


# ══════════════════════════════════════════════════════════════
# DATE WINDOW — Closed interval [start, end]
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DateWindow:
    """
    A closed date interval [start, end].

    Invariant: start <= end (enforced at construction).
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"DateWindow start ({self.start}) must be <= end ({self.end})."
            )

    def contains(self, day: date) -> bool:
        """Check if a day falls within the window (inclusive)."""
        return self.start <= day <= self.end


# ══════════════════════════════════════════════════════════════
# PURE CALENDAR FUNCTIONS
# ══════════════════════════════════════════════════════════════

def to_date(value: Optional[DateLike]) -> Optional[date]:
    """
    Normalise an ISO string, datetime or date to a date.

    None passes through; anything else raises ValueError.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise ValueError(f"Cannot interpret {value!r} as a date.")


def add_months(day: date, months: int) -> date:
    """
    Shift a date by whole months, clamping to the last day of the
    target month (2026-01-31 + 1 month → 2026-02-28).
    """
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def days_between(start: date, end: date) -> int:
    """Signed number of days from start to end."""
    return (end - start).days
