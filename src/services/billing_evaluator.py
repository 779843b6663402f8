"""Overdue evaluation of a tenant's active billing schedules.

The evaluator is a pure function of the schedules and the evaluation instant.
Day counts round up: a schedule that is one second late is one day overdue.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Protocol, Sequence

ONE_DAY = timedelta(days=1)


class ScheduleLike(Protocol):
    """Fields of a billing schedule the evaluator reads."""

    id: Any
    label: str
    amount: Decimal
    next_due_date: datetime


@dataclass(frozen=True)
class OverdueScheduleView:
    """One schedule whose due date has passed."""

    id: Any
    label: str
    amount: Decimal
    next_due_date: datetime
    days_overdue: int


@dataclass(frozen=True)
class BillingStatus:
    """Overdue summary of one tenant."""

    is_overdue: bool = False
    days_overdue: int = 0
    overdue_schedules: tuple[OverdueScheduleView, ...] = field(default_factory=tuple)
    total_overdue_amount: Decimal = Decimal("0")


def _as_utc(moment: datetime) -> datetime:
    # SQLite drops tzinfo on read; stored values are UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def days_overdue(next_due_date: datetime, now: datetime) -> int:
    """Whole days past due, rounded up. Zero when not yet due."""
    elapsed = _as_utc(now) - _as_utc(next_due_date)
    if elapsed <= timedelta(0):
        return 0
    days, remainder = divmod(elapsed, ONE_DAY)
    return days + 1 if remainder else days


def evaluate(schedules: Sequence[ScheduleLike], now: datetime) -> BillingStatus:
    """Compute the billing status of a tenant.

    Args:
        schedules: ACTIVE schedules of a single tenant, ordered by next_due_date
            ascending. The order is kept as given.
        now: Evaluation instant

    Returns:
        BillingStatus; the all-zero status when nothing is overdue
    """
    overdue = tuple(
        OverdueScheduleView(
            id=schedule.id,
            label=schedule.label,
            amount=schedule.amount,
            next_due_date=schedule.next_due_date,
            days_overdue=days_overdue(schedule.next_due_date, now),
        )
        for schedule in schedules
        if _as_utc(schedule.next_due_date) < _as_utc(now)
    )

    if not overdue:
        return BillingStatus()

    return BillingStatus(
        is_overdue=True,
        days_overdue=max(view.days_overdue for view in overdue),
        overdue_schedules=overdue,
        total_overdue_amount=sum((view.amount for view in overdue), Decimal("0")),
    )
