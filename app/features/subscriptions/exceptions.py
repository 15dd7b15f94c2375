"""Errors raised by the subscription billing core"""


class SubscriptionError(Exception):
    """Base class for subscription billing errors"""


class SubscriptionValidationError(SubscriptionError, ValueError):
    """Input that can never produce a valid subscription record"""


class InvalidPricingError(SubscriptionValidationError):
    """Base price, discount, or price override out of range"""


class PricingConfigurationError(SubscriptionError):
    """The plan catalog has no list price (or features) for a tier/cycle"""


class DuplicateSubscriptionError(SubscriptionError):
    """The organization already has a live (active or trial) subscription"""

    def __init__(self, organization_id: str, subscription_id: str):
        self.organization_id = organization_id
        self.subscription_id = subscription_id
        super().__init__(
            f"Organization {organization_id} already has an active subscription "
            f"({subscription_id})"
        )
