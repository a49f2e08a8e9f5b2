"""
Tests for core.time — Clock protocol and calendar helpers.
"""

import pytest
from datetime import date, datetime, timezone, timedelta

from core.time.clock import Clock, FixedClock, SystemClock
from core.time.temporal import DateWindow, add_months, days_between, to_date


# ── Clock Tests ──────────────────────────────────────────────

class TestSystemClock:
    def test_returns_utc_datetime(self):
        clock = SystemClock()
        dt = clock.now_utc()
        assert dt.tzinfo is not None
        assert dt.tzinfo == timezone.utc

    def test_time_advances(self):
        clock = SystemClock()
        t1 = clock.now_utc()
        t2 = clock.now_utc()
        assert t2 >= t1


class TestFixedClock:
    def test_returns_fixed_time(self):
        fixed = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
        clock = FixedClock(fixed)
        assert clock.now_utc() == fixed
        assert clock.now_utc() == fixed  # Same every time

    def test_rejects_naive_datetime(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            FixedClock(datetime(2025, 6, 15, 12, 0, 0))

    def test_advance(self):
        fixed = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
        clock = FixedClock(fixed)
        clock.advance(90)
        clock.advance(days=2)
        assert clock.now_utc() == fixed + timedelta(days=2, seconds=90)

    def test_satisfies_protocol(self):
        clock: Clock = FixedClock(datetime(2025, 1, 1, tzinfo=timezone.utc))
        assert clock.now_utc().year == 2025


# ── Calendar Tests ───────────────────────────────────────────

class TestToDate:
    def test_none_passes_through(self):
        assert to_date(None) is None

    def test_iso_string(self):
        assert to_date("2026-03-01") == date(2026, 3, 1)

    def test_iso_datetime_string_is_truncated(self):
        assert to_date("2026-03-01T12:00:00+00:00") == date(2026, 3, 1)

    def test_datetime(self):
        assert to_date(datetime(2026, 3, 1, 23, 59, tzinfo=timezone.utc)) == date(2026, 3, 1)

    def test_unsupported(self):
        with pytest.raises(ValueError):
            to_date(20260301)


class TestAddMonths:
    def test_plain(self):
        assert add_months(date(2026, 3, 1), 12) == date(2027, 3, 1)

    def test_clamps_to_month_end(self):
        assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
        assert add_months(date(2027, 1, 31), 13) == date(2028, 2, 29)

    def test_negative(self):
        assert add_months(date(2026, 3, 31), -1) == date(2026, 2, 28)


class TestDaysBetween:
    def test_signed(self):
        assert days_between(date(2026, 3, 1), date(2027, 3, 1)) == 365
        assert days_between(date(2026, 3, 2), date(2026, 3, 1)) == -1


class TestDateWindow:
    def test_inclusive_bounds(self):
        window = DateWindow(date(2026, 12, 31), date(2027, 1, 30))
        assert window.contains(date(2026, 12, 31))
        assert window.contains(date(2027, 1, 30))
        assert not window.contains(date(2027, 1, 31))

    def test_start_after_end_rejected(self):
        with pytest.raises(ValueError):
            DateWindow(date(2027, 1, 2), date(2027, 1, 1))
