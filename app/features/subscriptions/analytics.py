"""Recurring revenue aggregation over subscription snapshots"""

import logging
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from app.config import RENEWAL_WINDOW_DAYS
from app.features.subscriptions.billing_cycle import CYCLE_MONTHS
from app.features.subscriptions.domain import (
    BillingCycle,
    Subscription,
    SubscriptionStatus,
    SubscriptionTier,
)
from app.features.subscriptions.pricing import round_money
from app.features.subscriptions.schemas import (
    OrganizationRevenue,
    RevenueGroupBy,
    RevenuePeriod,
    RevenueReport,
    RevenueStats,
    RevenueTrendPoint,
    TierRevenue,
    TierStats,
)
from app.utils.datetime_helper import ensure_utc

logger = logging.getLogger(__name__)

PERIOD_LENGTHS: Dict[RevenuePeriod, Optional[timedelta]] = {
    RevenuePeriod.LAST_7_DAYS: timedelta(days=7),
    RevenuePeriod.LAST_30_DAYS: timedelta(days=30),
    RevenuePeriod.LAST_90_DAYS: timedelta(days=90),
    RevenuePeriod.LAST_YEAR: timedelta(days=365),
    RevenuePeriod.ALL: None,
}

TOP_ORGANIZATIONS = 10

SubscriptionRecord = Subscription | Mapping[str, Any]


def coerce_subscriptions(
    records: Iterable[SubscriptionRecord],
) -> Tuple[List[Subscription], List[str]]:
    """
    Validate raw records into Subscriptions.

    Records that fail validation are skipped; their ids are returned
    so callers can report them instead of failing the whole aggregate.
    """
    valid: List[Subscription] = []
    skipped: List[str] = []

    for record in records:
        if isinstance(record, Subscription):
            valid.append(record)
            continue
        try:
            valid.append(Subscription.model_validate(record))
        except ValidationError as e:
            record_id = str(record.get("id", "<unknown>")) if isinstance(record, Mapping) else "<unknown>"
            logger.warning(
                f"Skipping malformed subscription record {record_id}: "
                f"{e.error_count()} validation error(s)"
            )
            skipped.append(record_id)

    return valid, skipped


def monthly_amount(subscription: Subscription) -> Decimal:
    """Price normalized to one month of the subscription's cycle"""
    return Decimal(str(subscription.price)) / CYCLE_MONTHS[subscription.billing_cycle]


def _in_window(value: Optional[datetime], start: datetime, end: datetime) -> bool:
    value = ensure_utc(value)
    return value is not None and start <= value <= end


def aggregate_revenue(
    subscriptions: Iterable[SubscriptionRecord],
    now: datetime,
    window_days: int = RENEWAL_WINDOW_DAYS,
) -> RevenueStats:
    """
    Compute MRR/ARR and distributions over a full snapshot.

    - MRR sums live (active/trial) prices normalized to a month
      (quarterly / 3, annually / 12), rounded half-up to an integer
    - ARR is MRR * 12
    - Tier counts include every record; tier revenue only live ones
    - Upcoming renewals only count live, auto-renewing subscriptions
    - Renewal/expiry windows are [now, now + window_days], inclusive
    """
    records, skipped = coerce_subscriptions(subscriptions)
    now = ensure_utc(now)
    window_end = now + timedelta(days=window_days)

    live = [s for s in records if s.is_live]
    status_counts = Counter(s.status for s in records)
    cycle_counts = Counter(s.billing_cycle for s in records)
    tier_counts = Counter(s.tier for s in records)
    tier_revenue: Dict[SubscriptionTier, Decimal] = defaultdict(Decimal)
    for s in live:
        tier_revenue[s.tier] += Decimal(str(s.price))

    mrr_total = sum((monthly_amount(s) for s in live), Decimal(0))
    mrr = int(mrr_total.quantize(Decimal(1), rounding=ROUND_HALF_UP))

    return RevenueStats(
        total=len(records),
        active=status_counts[SubscriptionStatus.ACTIVE],
        trial=status_counts[SubscriptionStatus.TRIAL],
        expired=status_counts[SubscriptionStatus.EXPIRED],
        cancelled=status_counts[SubscriptionStatus.CANCELLED],
        suspended=status_counts[SubscriptionStatus.SUSPENDED],
        mrr=mrr,
        arr=mrr * 12,
        tier_distribution={
            tier: TierStats(count=tier_counts[tier], revenue=round_money(tier_revenue[tier]))
            for tier in SubscriptionTier
        },
        billing_cycle_distribution={cycle: cycle_counts[cycle] for cycle in BillingCycle},
        upcoming_renewals=sum(
            1 for s in live
            if s.auto_renew and _in_window(s.next_billing_date, now, window_end)
        ),
        expiring_soon=sum(1 for s in records if _in_window(s.end_date, now, window_end)),
        skipped_records=skipped,
    )


def _trend_bucket(created_at: datetime, group_by: RevenueGroupBy) -> Tuple[Hashable, str]:
    """Sort key and display label for a trend bucket"""
    if group_by == RevenueGroupBy.DAY:
        return created_at.date(), f"{created_at:%b} {created_at.day}"
    if group_by == RevenueGroupBy.WEEK:
        # Sunday-based week of year, 0-53
        week = int(created_at.strftime("%U"))
        return (created_at.year, week), f"Week {week}, {created_at.year}"
    if group_by == RevenueGroupBy.MONTH:
        return (created_at.year, created_at.month), f"{created_at:%b %Y}"
    raise ValueError(f"Unhandled group_by: {group_by}")


def _revenue_totals(subscriptions: List[Subscription]) -> Tuple[float, int, float]:
    total = sum((Decimal(str(s.price)) for s in subscriptions), Decimal(0))
    count = len(subscriptions)
    return round_money(total), count, round_money(total / count)


def build_revenue_report(
    subscriptions: Iterable[SubscriptionRecord],
    now: datetime,
    period: RevenuePeriod = RevenuePeriod.LAST_30_DAYS,
    group_by: RevenueGroupBy = RevenueGroupBy.DAY,
) -> RevenueReport:
    """
    Revenue analytics over live subscriptions created within `period`.

    Returns the top organizations by revenue, revenue per tier
    (both sorted by revenue, highest first) and a revenue trend
    bucketed by creation day, week or month.
    """
    records, skipped = coerce_subscriptions(subscriptions)
    now = ensure_utc(now)
    length = PERIOD_LENGTHS[period]
    since = now - length if length is not None else None

    in_period = [
        s for s in records
        if s.is_live and (since is None or ensure_utc(s.created_at) >= since)
    ]

    by_org: Dict[str, List[Subscription]] = defaultdict(list)
    by_tier: Dict[SubscriptionTier, List[Subscription]] = defaultdict(list)
    buckets: Dict[Hashable, Tuple[str, List[Subscription]]] = {}
    for s in in_period:
        by_org[s.organization_id].append(s)
        by_tier[s.tier].append(s)
        key, label = _trend_bucket(ensure_utc(s.created_at), group_by)
        buckets.setdefault(key, (label, []))[1].append(s)

    organizations = []
    for organization_id, subs in by_org.items():
        total, count, avg = _revenue_totals(subs)
        organizations.append(OrganizationRevenue(
            organization_id=organization_id,
            total_revenue=total,
            subscription_count=count,
            avg_price=avg,
        ))
    organizations.sort(key=lambda o: o.total_revenue, reverse=True)

    tiers = []
    for tier, subs in by_tier.items():
        total, count, avg = _revenue_totals(subs)
        tiers.append(TierRevenue(tier=tier, total_revenue=total, subscription_count=count, avg_price=avg))
    tiers.sort(key=lambda t: t.total_revenue, reverse=True)

    trends = []
    for key in sorted(buckets):
        label, subs = buckets[key]
        total, count, _ = _revenue_totals(subs)
        trends.append(RevenueTrendPoint(date=label, revenue=total, count=count))

    return RevenueReport(
        by_organization=organizations[:TOP_ORGANIZATIONS],
        by_tier=tiers,
        trends=trends,
        period=period,
        group_by=group_by,
        skipped_records=skipped,
    )
