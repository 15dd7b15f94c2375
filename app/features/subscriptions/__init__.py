"""Subscriptions feature module"""

from app.features.subscriptions.domain import (
    BillingCycle,
    BillingDates,
    Discount,
    DiscountType,
    PriceResult,
    Subscription,
    SubscriptionCreate,
    SubscriptionStatus,
    SubscriptionTier,
    SubscriptionUpdate,
)
from app.features.subscriptions.exceptions import (
    DuplicateSubscriptionError,
    InvalidPricingError,
    PricingConfigurationError,
    SubscriptionError,
    SubscriptionValidationError,
)
from app.features.subscriptions.catalog import DEFAULT_PLAN_CATALOG, PlanCatalog
from app.features.subscriptions.pricing import compute_price
from app.features.subscriptions.billing_cycle import derive_billing_dates
from app.features.subscriptions.analytics import aggregate_revenue, build_revenue_report
from app.features.subscriptions.schemas import (
    CreateSubscriptionInput,
    RevenueReport,
    RevenueStats,
    UpdateSubscriptionInput,
)
from app.features.subscriptions.repository import SubscriptionRepository
from app.features.subscriptions.service import SubscriptionService
from app.features.subscriptions.api import router, analytics_router

__all__ = [
    "router",
    "analytics_router",
    "SubscriptionService",
    "SubscriptionRepository",
    "PlanCatalog",
    "DEFAULT_PLAN_CATALOG",
    "compute_price",
    "derive_billing_dates",
    "aggregate_revenue",
    "build_revenue_report",
    "BillingCycle",
    "BillingDates",
    "Discount",
    "DiscountType",
    "PriceResult",
    "Subscription",
    "SubscriptionCreate",
    "SubscriptionUpdate",
    "SubscriptionStatus",
    "SubscriptionTier",
    "CreateSubscriptionInput",
    "UpdateSubscriptionInput",
    "RevenueStats",
    "RevenueReport",
    "SubscriptionError",
    "SubscriptionValidationError",
    "InvalidPricingError",
    "PricingConfigurationError",
    "DuplicateSubscriptionError",
]
