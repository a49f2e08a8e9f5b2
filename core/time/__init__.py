"""
Ledgerline Core Time — Public API
=================================
Explicit clock protocol and calendar helpers.
"""

from core.time.clock import (
    Clock,
    FixedClock,
    SystemClock,
)
from core.time.temporal import (
    DateWindow,
    add_months,
    days_between,
    to_date,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "DateWindow",
    "add_months",
    "days_between",
    "to_date",
]
