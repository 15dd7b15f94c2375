"""Domain models for the Subscriptions feature"""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.config import DEFAULT_CURRENCY
from app.features.subscriptions.exceptions import InvalidPricingError


class SubscriptionTier(str, Enum):
    """Subscription plan tier"""
    STARTER = "starter"
    GROWTH = "growth"
    ENTERPRISE = "enterprise"


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status"""
    TRIAL = "trial"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    SUSPENDED = "suspended"

    @property
    def is_live(self) -> bool:
        """Counts towards recurring revenue"""
        return self in LIVE_STATUSES


LIVE_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL})


class BillingCycle(str, Enum):
    """Recurrence period for charges"""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"


class DiscountType(str, Enum):
    """How a discount value is applied to the base price"""
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def validate_amount(value: float, field: str) -> float:
    """Reject non-numeric, non-finite, and negative money amounts"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidPricingError(f"{field} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidPricingError(f"{field} must be finite, got {value!r}")
    if value < 0:
        raise InvalidPricingError(f"{field} must not be negative, got {value!r}")
    return value


@dataclass(frozen=True)
class Discount:
    """
    A validated discount.

    Percentages are bounded to [0, 100]; fixed amounts must be
    non-negative. Use `Discount.from_fields` to normalize the raw
    (type, value) pair stored on a subscription.
    """
    type: DiscountType
    value: float

    def __post_init__(self):
        validate_amount(self.value, "discount_value")
        if self.type == DiscountType.PERCENTAGE and self.value > 100:
            raise InvalidPricingError(
                f"Percentage discount must be between 0 and 100, got {self.value}"
            )

    @classmethod
    def from_fields(
        cls,
        discount_type: Optional[DiscountType | str],
        discount_value: Optional[float],
    ) -> Optional["Discount"]:
        """
        Build a discount from stored fields.

        A missing type, or a missing/zero value, means no discount.
        """
        if not discount_type or discount_value is None or discount_value == 0:
            return None
        try:
            kind = DiscountType(discount_type)
        except ValueError:
            raise InvalidPricingError(f"Unknown discount type: {discount_type!r}")
        return cls(type=kind, value=discount_value)


class CamelModel(BaseModel):
    """Snake_case in Python and storage, camelCase on the wire"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PriceResult(CamelModel):
    """Outcome of applying a discount to a base price"""
    base_price: float
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = None
    final_price: float


class BillingDates(CamelModel):
    """Dates derived from a start date and billing cycle"""
    end_date: datetime
    next_billing_date: datetime
    trial_end_date: Optional[datetime] = None


class SubscriptionBase(CamelModel):
    """Base subscription fields"""
    organization_id: str
    tier: SubscriptionTier
    status: SubscriptionStatus
    billing_cycle: BillingCycle
    base_price: float = Field(ge=0, allow_inf_nan=False)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    price: float = Field(ge=0, allow_inf_nan=False)
    currency: str = DEFAULT_CURRENCY
    start_date: datetime
    end_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    last_payment_date: Optional[datetime] = None
    auto_renew: bool = True
    max_buildings: Optional[int] = None
    max_units: Optional[int] = None
    max_users: Optional[int] = None
    features: List[str] = Field(default_factory=list)
    cancellation_date: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    notes: Optional[str] = None


class SubscriptionCreate(SubscriptionBase):
    """Subscription insert model"""
    created_at: datetime
    updated_at: datetime


class SubscriptionUpdate(CamelModel):
    """Subscription update model - only fields explicitly set are written"""
    tier: Optional[SubscriptionTier] = None
    status: Optional[SubscriptionStatus] = None
    billing_cycle: Optional[BillingCycle] = None
    base_price: Optional[float] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = None
    price: Optional[float] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    auto_renew: Optional[bool] = None
    max_buildings: Optional[int] = None
    max_units: Optional[int] = None
    max_users: Optional[int] = None
    features: Optional[List[str]] = None
    cancellation_date: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None


class Subscription(SubscriptionBase):
    """Complete subscription record from the document store"""
    id: str
    created_at: datetime
    updated_at: datetime

    @property
    def is_live(self) -> bool:
        return self.status.is_live
