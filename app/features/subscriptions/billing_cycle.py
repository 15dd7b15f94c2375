"""Billing cycle date derivation"""
import calendar
from datetime import datetime, timedelta
from typing import Dict, Optional

from app.features.subscriptions.domain import BillingCycle, BillingDates
from app.features.subscriptions.exceptions import SubscriptionValidationError


# Calendar months per billing cycle
CYCLE_MONTHS: Dict[BillingCycle, int] = {
    BillingCycle.MONTHLY: 1,
    BillingCycle.QUARTERLY: 3,
    BillingCycle.ANNUALLY: 12,
}


def add_months(value: datetime, months: int) -> datetime:
    """
    Advance a datetime by whole calendar months.

    When the target month is shorter than the source day
    (e.g. Jan 31 + 1 month) the day is clamped to the last day of
    the target month: 2024-01-31 -> 2024-02-29, 2024-02-29 + 12 -> 2025-02-28.
    Time of day and tzinfo are preserved.
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def advance_by_cycle(start_date: datetime, billing_cycle: BillingCycle) -> datetime:
    """End of the billing period that begins at start_date"""
    months = CYCLE_MONTHS.get(BillingCycle(billing_cycle))
    if months is None:
        raise ValueError(f"Unhandled billing cycle: {billing_cycle}")
    return add_months(start_date, months)


def derive_billing_dates(
    start_date: datetime,
    billing_cycle: BillingCycle,
    trial_days: Optional[int] = None,
) -> BillingDates:
    """
    Derive period dates for a subscription.

    Args:
        start_date: First day of the billing period
        billing_cycle: monthly (+1 month), quarterly (+3), annually (+1 year)
        trial_days: Optional trial length; a positive value sets
            trial_end_date = start_date + trial_days and does not move end_date

    Returns:
        BillingDates with next_billing_date equal to end_date

    Raises:
        SubscriptionValidationError: negative trial_days
    """
    if trial_days is not None and trial_days < 0:
        raise SubscriptionValidationError(f"trial_days must not be negative, got {trial_days}")

    end_date = advance_by_cycle(start_date, billing_cycle)
    trial_end_date = start_date + timedelta(days=trial_days) if trial_days else None

    return BillingDates(
        end_date=end_date,
        next_billing_date=end_date,
        trial_end_date=trial_end_date,
    )
