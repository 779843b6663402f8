"""Due-date rollover for billing schedules after a payment."""

from datetime import datetime, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta

from src.models.billing_schedule import BillingFrequency


def next_due_date(frequency: BillingFrequency, settled_at: datetime) -> Optional[datetime]:
    """Return the next due date for a schedule settled at settled_at.

    Recurring schedules move by calendar months, so Jan 31 + 1 month is
    Feb 28 (Feb 29 in a leap year). ONE_TIME schedules have no next date;
    the caller deactivates them.
    """
    if frequency == BillingFrequency.MONTHLY:
        return settled_at + relativedelta(months=1)
    if frequency == BillingFrequency.YEARLY:
        return settled_at + relativedelta(years=1)
    return None


def to_utc(moment: datetime) -> datetime:
    """Normalize to UTC; naive values are taken to be UTC already."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
