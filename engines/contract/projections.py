"""
Ledgerline Contract Engine — Computed Properties and Timeline
=============================================================
Derived, read-only views of a contract. Everything here is a pure
function of the stored terms and the clock's `now`; projections
never invent dates that the written terms do not imply.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Iterator, Mapping, Optional

from core.ledger.queries import PROJECTION, ComputedPropertyRegistry, TimelineEntry, at_start_of_day
from core.ledger.snapshot import EntitySnapshot
from core.time.temporal import DateWindow, add_months, days_between, to_date
from engines.contract.machine import (
    ACTIVE,
    CANCELLATION_PENDING,
    CONTRACT,
    EXPIRED,
    PENDING_ACTIVATION,
    TERMINATED,
)
from engines.contract.terms import (
    cancellation_deadline,
    check_terms,
    current_term_end,
    flag,
    notice_period,
)

_LIVE = frozenset({ACTIVE, CANCELLATION_PENDING})


def register_contract_properties(
    registry: ComputedPropertyRegistry,
    *,
    cancellation_window_days: int = 30,
    default_notice_days: int = 30,
) -> None:
    """
    cancellation_window_days: how long before the cancellation
    deadline a contract counts as "within its cancellation window".
    """

    def deadline(snapshot: EntitySnapshot, now: datetime) -> Optional[str]:
        if snapshot.status not in _LIVE:
            return None
        day = cancellation_deadline(snapshot.attributes, now.date(), default_notice_days)
        return day.isoformat() if day else None

    def within_window(snapshot: EntitySnapshot, now: datetime) -> bool:
        if snapshot.status != ACTIVE:
            return False
        day = cancellation_deadline(snapshot.attributes, now.date(), default_notice_days)
        if day is None:
            return False
        opens = day - timedelta(days=cancellation_window_days)
        return DateWindow(opens, day).contains(now.date())

    def until_renewal(snapshot: EntitySnapshot, now: datetime) -> Optional[int]:
        if snapshot.status != ACTIVE or not flag(snapshot.attributes, "auto_renew"):
            return None
        end = current_term_end(snapshot.attributes, now.date())
        return days_between(now.date(), end) if end else None

    def active_days(snapshot: EntitySnapshot, now: datetime) -> Optional[int]:
        activated_on = to_date(snapshot.attribute("activated_on"))
        if activated_on is None:
            return None
        ended = (
            to_date(snapshot.attribute("terminated_on"))
            or to_date(snapshot.attribute("expired_on"))
            or now.date()
        )
        return max(0, days_between(activated_on, ended))

    registry.register(CONTRACT, "cancellation_deadline", deadline)
    registry.register(CONTRACT, "is_within_cancellation_window", within_window)
    registry.register(CONTRACT, "days_until_renewal", until_renewal)
    registry.register(CONTRACT, "days_active", active_days)


class ContractTimelineProjector:
    """
    Future dates implied by the written terms:
        CancellationDeadline  — last day to give notice for a term end
        AutoRenewal           — term rolls over (at most renewal_horizon)
        EndOfTerm             — non-renewing contract expires
        ScheduledTermination  — cancellation pending, ends at term end
        PriceChange           — pending fee takes effect

    Terms that break the date arithmetic (hypothetical or stored)
    raise LedgerValidationError before anything is projected.
    """

    def __init__(self, *, renewal_horizon: int = 2, default_notice_days: int = 30):
        if renewal_horizon < 0:
            raise ValueError("renewal_horizon must be >= 0.")
        self._horizon = renewal_horizon
        self._default_notice_days = default_notice_days

    def project(
        self, snapshot: EntitySnapshot, terms: Mapping[str, Any], now: datetime
    ) -> Iterator[TimelineEntry]:
        check_terms(terms)
        if snapshot.status not in _LIVE | {PENDING_ACTIVATION}:
            return
        today = now.date()

        effective_on = to_date(terms.get("price_change_effective_on"))
        if terms.get("pending_monthly_fee") is not None and effective_on and effective_on >= today:
            yield TimelineEntry(
                kind=PROJECTION,
                at=at_start_of_day(effective_on),
                status=None,
                label="PriceChange",
                detail={"monthly_fee": str(terms["pending_monthly_fee"])},
            )

        term_end = current_term_end(terms, today)
        if term_end is None:
            return
        notice = notice_period(terms, self._default_notice_days)
        renewal_months = int(terms.get("renewal_term_months") or 12)

        if snapshot.status == CANCELLATION_PENDING:
            end = to_date(terms.get("expected_end_date")) or term_end
            yield TimelineEntry(
                kind=PROJECTION, at=at_start_of_day(end), status=TERMINATED,
                label="ScheduledTermination", detail={"term_end": end.isoformat()},
            )
            return

        renewals = 0
        while True:
            deadline = term_end - notice
            if deadline >= today:
                yield TimelineEntry(
                    kind=PROJECTION, at=at_start_of_day(deadline), status=None,
                    label="CancellationDeadline", detail={"term_end": term_end.isoformat()},
                )
            if not flag(terms, "auto_renew"):
                yield TimelineEntry(
                    kind=PROJECTION, at=at_start_of_day(term_end), status=EXPIRED,
                    label="EndOfTerm", detail={"term_end": term_end.isoformat()},
                )
                return
            if renewals == self._horizon:
                return
            next_end = add_months(term_end, renewal_months)
            yield TimelineEntry(
                kind=PROJECTION, at=at_start_of_day(term_end), status=ACTIVE,
                label="AutoRenewal",
                detail={"term_start": term_end.isoformat(), "term_end": next_end.isoformat()},
            )
            renewals += 1
            term_end = next_end
