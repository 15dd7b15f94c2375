"""Plan catalog: list prices and default features per tier"""
from dataclasses import dataclass, field
from typing import Dict, List

from app.features.subscriptions.domain import BillingCycle, SubscriptionTier
from app.features.subscriptions.exceptions import PricingConfigurationError


@dataclass(frozen=True)
class PlanCatalog:
    """
    Static pricing/feature configuration injected into the service.

    A tier/cycle with no entry in `prices` has no list price
    (e.g. negotiated enterprise deals): callers must then supply a
    base price or an explicit price.
    """
    prices: Dict[SubscriptionTier, Dict[BillingCycle, float]] = field(default_factory=dict)
    features: Dict[SubscriptionTier, List[str]] = field(default_factory=dict)

    def base_price(self, tier: SubscriptionTier, billing_cycle: BillingCycle) -> float:
        """
        List price for a tier and billing cycle

        Raises:
            PricingConfigurationError: no price configured
        """
        tier, billing_cycle = SubscriptionTier(tier), BillingCycle(billing_cycle)
        price = self.prices.get(tier, {}).get(billing_cycle)
        if price is None:
            raise PricingConfigurationError(
                f"No list price configured for tier '{tier.value}' "
                f"with '{billing_cycle.value}' billing"
            )
        return price

    def default_features(self, tier: SubscriptionTier) -> List[str]:
        """
        Default feature list for a tier (a copy, safe to mutate)

        Raises:
            PricingConfigurationError: tier has no feature list
        """
        tier = SubscriptionTier(tier)
        features = self.features.get(tier)
        if features is None:
            raise PricingConfigurationError(f"No feature list configured for tier '{tier.value}'")
        return list(features)


# Product list prices in ETB. Enterprise is quoted per deal.
DEFAULT_PLAN_CATALOG = PlanCatalog(
    prices={
        SubscriptionTier.STARTER: {
            BillingCycle.MONTHLY: 2500,
            BillingCycle.QUARTERLY: 7000,
            BillingCycle.ANNUALLY: 25000,
        },
        SubscriptionTier.GROWTH: {
            BillingCycle.MONTHLY: 5000,
            BillingCycle.QUARTERLY: 14000,
            BillingCycle.ANNUALLY: 50000,
        },
    },
    features={
        SubscriptionTier.STARTER: [
            "Core modules (Tenants, Leases, Billing)",
            "Basic Maintenance",
            "Up to 5 buildings",
            "Email support",
            "Basic reporting",
        ],
        SubscriptionTier.GROWTH: [
            "All Starter features",
            "Advanced Maintenance",
            "Utilities Management",
            "Parking & Vehicle Management",
            "Up to 20 buildings",
            "Priority support",
            "Advanced analytics",
            "Exportable reports",
        ],
        SubscriptionTier.ENTERPRISE: [
            "All Growth features",
            "Unlimited buildings",
            "IoT Integration",
            "ERCA Integration",
            "Advanced Analytics",
            "Dedicated support & SLA",
            "Custom integrations",
        ],
    },
)
