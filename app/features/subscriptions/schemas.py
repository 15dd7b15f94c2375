"""Request and response schemas for the Subscriptions feature"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from app.features.subscriptions.domain import (
    BillingCycle,
    CamelModel,
    DiscountType,
    Subscription,
    SubscriptionStatus,
    SubscriptionTier,
)


class CreateSubscriptionInput(CamelModel):
    """Assign a plan to an organization"""
    organization_id: str = Field(..., min_length=1)
    tier: SubscriptionTier
    billing_cycle: BillingCycle
    base_price: Optional[float] = None  # Defaults to the catalog list price
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = None
    price: Optional[float] = None  # Overrides base price + discount when set
    start_date: Optional[datetime] = None
    trial_days: Optional[int] = None
    auto_renew: bool = True
    max_buildings: Optional[int] = None
    max_units: Optional[int] = None
    max_users: Optional[int] = None
    features: Optional[List[str]] = None  # Defaults to the tier's features


class UpdateSubscriptionInput(CamelModel):
    """
    Partial update. Only fields present in the payload are applied;
    an explicit null clears a nullable field.
    """
    tier: Optional[SubscriptionTier] = None
    status: Optional[SubscriptionStatus] = None
    billing_cycle: Optional[BillingCycle] = None
    base_price: Optional[float] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = None
    price: Optional[float] = None
    auto_renew: Optional[bool] = None
    max_buildings: Optional[int] = None
    max_units: Optional[int] = None
    max_users: Optional[int] = None
    features: Optional[List[str]] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    cancellation_date: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    notes: Optional[str] = None

    def provided(self, name: str) -> bool:
        """True when the field was present in the payload (even as null)"""
        return name in self.model_fields_set


class CancelSubscriptionRequest(CamelModel):
    reason: Optional[str] = None


class QuoteRequest(CamelModel):
    """Price preview; base price defaults to the catalog list price"""
    tier: Optional[SubscriptionTier] = None
    billing_cycle: Optional[BillingCycle] = None
    base_price: Optional[float] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = None


class SubscriptionFilters(CamelModel):
    status: Optional[SubscriptionStatus] = None
    tier: Optional[SubscriptionTier] = None
    billing_cycle: Optional[BillingCycle] = None

    def as_dict(self) -> Dict[str, str]:
        return {key: value.value for key, value in self if value is not None}


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class SubscriptionPage(CamelModel):
    subscriptions: List[Subscription]
    pagination: Pagination


class TierStats(CamelModel):
    count: int = 0
    revenue: float = 0.0


class RevenueStats(CamelModel):
    """Recurring revenue and distribution snapshot"""
    total: int = 0
    active: int = 0
    trial: int = 0
    expired: int = 0
    cancelled: int = 0
    suspended: int = 0
    mrr: int = 0
    arr: int = 0
    tier_distribution: Dict[SubscriptionTier, TierStats] = Field(default_factory=dict)
    billing_cycle_distribution: Dict[BillingCycle, int] = Field(default_factory=dict)
    upcoming_renewals: int = 0
    expiring_soon: int = 0
    skipped_records: List[str] = Field(default_factory=list)


class RevenuePeriod(str, Enum):
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    LAST_YEAR = "1y"
    ALL = "all"


class RevenueGroupBy(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class OrganizationRevenue(CamelModel):
    organization_id: str
    total_revenue: float
    subscription_count: int
    avg_price: float


class TierRevenue(CamelModel):
    tier: SubscriptionTier
    total_revenue: float
    subscription_count: int
    avg_price: float


class RevenueTrendPoint(CamelModel):
    date: str
    revenue: float
    count: int


class RevenueReport(CamelModel):
    by_organization: List[OrganizationRevenue]
    by_tier: List[TierRevenue]
    trends: List[RevenueTrendPoint]
    period: RevenuePeriod
    group_by: RevenueGroupBy
    skipped_records: List[str] = Field(default_factory=list)
