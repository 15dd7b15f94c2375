"""Business logic for subscription lifecycle management"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.features.subscriptions.analytics import aggregate_revenue, build_revenue_report
from app.features.subscriptions.billing_cycle import (
    CYCLE_MONTHS,
    add_months,
    advance_by_cycle,
    derive_billing_dates,
)
from app.features.subscriptions.catalog import DEFAULT_PLAN_CATALOG, PlanCatalog
from app.features.subscriptions.domain import (
    Discount,
    PriceResult,
    Subscription,
    SubscriptionCreate,
    SubscriptionStatus,
    SubscriptionUpdate,
    validate_amount,
)
from app.features.subscriptions.exceptions import (
    DuplicateSubscriptionError,
    PricingConfigurationError,
    SubscriptionValidationError,
)
from app.features.subscriptions.pricing import compute_price
from app.features.subscriptions.repository import SubscriptionRepository
from app.features.subscriptions.schemas import (
    CreateSubscriptionInput,
    Pagination,
    RevenueGroupBy,
    RevenuePeriod,
    RevenueReport,
    RevenueStats,
    SubscriptionFilters,
    SubscriptionPage,
    UpdateSubscriptionInput,
)
from app.utils.datetime_helper import Clock, ensure_utc, utc_now

logger = logging.getLogger(__name__)

# Fields that may be omitted from a patch but never set to null
NON_NULLABLE_FIELDS = frozenset({
    "tier",
    "status",
    "billing_cycle",
    "base_price",
    "start_date",
    "auto_renew",
    "features",
})

# Fields copied verbatim from a patch
PASSTHROUGH_FIELDS = (
    "status",
    "auto_renew",
    "max_buildings",
    "max_units",
    "max_users",
    "features",
    "end_date",
    "trial_end_date",
    "next_billing_date",
    "cancellation_date",
    "cancellation_reason",
    "notes",
)

PRICING_FIELDS = ("base_price", "discount_type", "discount_value")


class SubscriptionService:
    """
    Owns creation, update, cancellation and renewal of subscriptions.

    The plan catalog, repository and clock are injected so tests can
    substitute fixtures without touching process-wide state.
    """

    def __init__(
        self,
        repository: SubscriptionRepository,
        catalog: PlanCatalog = DEFAULT_PLAN_CATALOG,
        clock: Clock = utc_now,
    ):
        self.repository = repository
        self.catalog = catalog
        self.clock = clock

    def now(self) -> datetime:
        return ensure_utc(self.clock())

    # ============================================================================
    # LOOKUP
    # ============================================================================

    async def get_subscription(self, subscription_id: str) -> Optional[Subscription]:
        return await self.repository.find_by_id(subscription_id)

    async def get_organization_subscriptions(self, organization_id: str) -> List[Subscription]:
        """Every subscription the organization has had, newest first"""
        return await self.repository.find_by_organization(organization_id)

    async def get_current_subscription(self, organization_id: str) -> Optional[Subscription]:
        """
        The organization's live subscription.

        If several live records exist (legacy data written before
        uniqueness was enforced) the most recently created one wins.
        """
        live = await self.repository.find_live_by_organization(organization_id)
        if not live:
            return None
        current = max(live, key=lambda s: ensure_utc(s.created_at))
        if len(live) > 1:
            logger.warning(
                f"Organization {organization_id} has {len(live)} live subscriptions; "
                f"using most recent {current.id}"
            )
        return current

    async def list_subscriptions(
        self,
        filters: SubscriptionFilters,
        page: int = 1,
        limit: int = 50,
    ) -> SubscriptionPage:
        if page < 1 or limit < 1:
            raise SubscriptionValidationError("page and limit must be positive")

        subscriptions, total = await self.repository.find_page(
            filters.as_dict(),
            limit=limit,
            offset=(page - 1) * limit,
        )
        return SubscriptionPage(
            subscriptions=subscriptions,
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=math.ceil(total / limit),
            ),
        )

    # ============================================================================
    # CREATE
    # ============================================================================

    async def create_subscription(self, data: CreateSubscriptionInput) -> Subscription:
        """
        Assign a plan to an organization.

        Business rules:
        - Base price defaults to the catalog list price for tier/cycle
        - An explicit price is stored verbatim; otherwise the discount is applied
        - Features default to the tier's catalog features
        - A positive trial length starts the subscription in `trial`
        - At most one live (active/trial) subscription per organization

        Raises:
            DuplicateSubscriptionError: organization already has a live subscription
            PricingConfigurationError: no list price and no base price/price given
            SubscriptionValidationError: out-of-range price, discount or trial length
        """
        now = self.now()
        start_date = ensure_utc(data.start_date) or now

        existing = await self.repository.find_live_by_organization(data.organization_id)
        if existing:
            logger.warning(
                f"Rejected new subscription for organization {data.organization_id}: "
                f"live subscription {existing[0].id} exists"
            )
            raise DuplicateSubscriptionError(data.organization_id, existing[0].id)

        pricing = self._price_for_create(data)
        dates = derive_billing_dates(start_date, data.billing_cycle, data.trial_days)
        features = (
            data.features
            if data.features is not None
            else self.catalog.default_features(data.tier)
        )
        is_trial = bool(data.trial_days and data.trial_days > 0)

        record = SubscriptionCreate(
            organization_id=data.organization_id,
            tier=data.tier,
            status=SubscriptionStatus.TRIAL if is_trial else SubscriptionStatus.ACTIVE,
            billing_cycle=data.billing_cycle,
            base_price=pricing.base_price,
            discount_type=pricing.discount_type,
            discount_value=pricing.discount_value,
            price=pricing.final_price,
            start_date=start_date,
            end_date=dates.end_date,
            trial_end_date=dates.trial_end_date,
            next_billing_date=dates.next_billing_date,
            auto_renew=data.auto_renew,
            max_buildings=data.max_buildings,
            max_units=data.max_units,
            max_users=data.max_users,
            features=features,
            created_at=now,
            updated_at=now,
        )

        subscription = await self.repository.create(record)
        logger.info(
            f"Created {subscription.tier.value}/{subscription.billing_cycle.value} subscription "
            f"{subscription.id} for organization {subscription.organization_id} "
            f"(status={subscription.status.value}, price={subscription.price})"
        )
        return subscription

    def _price_for_create(self, data: CreateSubscriptionInput) -> PriceResult:
        if data.price is None:
            base_price = (
                data.base_price
                if data.base_price is not None
                else self.catalog.base_price(data.tier, data.billing_cycle)
            )
            return compute_price(base_price, data.discount_type, data.discount_value)

        # Explicit price: authoritative, a no-op discount is stored as none
        validate_amount(data.price, "price")
        discount = Discount.from_fields(data.discount_type, data.discount_value)
        if data.base_price is not None:
            base_price = validate_amount(data.base_price, "base_price")
        else:
            try:
                base_price = self.catalog.base_price(data.tier, data.billing_cycle)
            except PricingConfigurationError:
                base_price = data.price
        return PriceResult(
            base_price=base_price,
            discount_type=discount.type if discount else None,
            discount_value=discount.value if discount else None,
            final_price=data.price,
        )

    # ============================================================================
    # UPDATE / CANCEL
    # ============================================================================

    async def update_subscription(
        self,
        subscription_id: str,
        data: UpdateSubscriptionInput,
    ) -> Optional[Subscription]:
        """
        Apply a partial update.

        Returns None when the id does not resolve to a subscription.
        A patch with no recognized fields returns the stored record
        without writing.

        Raises:
            PricingConfigurationError: tier/cycle change with no list price
            SubscriptionValidationError: invalid field values
        """
        current = await self.repository.find_by_id(subscription_id)
        if current is None:
            logger.warning(f"Subscription not found: {subscription_id}")
            return None

        updates = self._build_updates(current, data)
        if not updates:
            logger.debug(f"Empty update for subscription {subscription_id}")
            return current

        updates["updated_at"] = self.now()
        updated = await self.repository.update(subscription_id, SubscriptionUpdate(**updates))
        if updated is None:
            logger.warning(f"Subscription {subscription_id} disappeared during update")
            return None

        logger.info(
            f"Updated subscription {subscription_id}: "
            f"{', '.join(sorted(k for k in updates if k != 'updated_at'))}"
        )
        return updated

    def _build_updates(
        self,
        current: Subscription,
        data: UpdateSubscriptionInput,
    ) -> Dict[str, Any]:
        for name in data.model_fields_set & NON_NULLABLE_FIELDS:
            if getattr(data, name) is None:
                raise SubscriptionValidationError(f"{name} cannot be null")

        updates: Dict[str, Any] = {}

        if data.provided("tier"):
            updates["tier"] = data.tier
            updates["features"] = (
                data.features
                if data.features is not None
                else self.catalog.default_features(data.tier)
            )

        if data.provided("billing_cycle"):
            updates["billing_cycle"] = data.billing_cycle

        if data.provided("start_date"):
            updates["start_date"] = ensure_utc(data.start_date)

        if data.provided("billing_cycle") or data.provided("start_date"):
            # No proration: the new period simply starts at start_date
            end_date = advance_by_cycle(
                updates.get("start_date", current.start_date),
                updates.get("billing_cycle", current.billing_cycle),
            )
            updates["end_date"] = end_date
            updates["next_billing_date"] = end_date

        updates.update(self._pricing_updates(current, data))

        for name in PASSTHROUGH_FIELDS:
            if data.provided(name):
                value = getattr(data, name)
                updates[name] = ensure_utc(value) if isinstance(value, datetime) else value

        if "start_date" in updates or "end_date" in updates:
            start_date = ensure_utc(updates.get("start_date", current.start_date))
            end_date = ensure_utc(updates.get("end_date", current.end_date))
            if end_date is not None and end_date < start_date:
                raise SubscriptionValidationError("end_date must not be before start_date")

        return updates

    def _pricing_updates(
        self,
        current: Subscription,
        data: UpdateSubscriptionInput,
    ) -> Dict[str, Any]:
        def merged(name: str):
            return getattr(data, name) if data.provided(name) else getattr(current, name)

        if data.price is not None:
            # Explicit price override: stored verbatim
            validate_amount(data.price, "price")
            discount = Discount.from_fields(merged("discount_type"), merged("discount_value"))
            updates: Dict[str, Any] = {"price": data.price}
            if data.provided("base_price"):
                updates["base_price"] = validate_amount(data.base_price, "base_price")
            if data.provided("discount_type") or data.provided("discount_value"):
                updates["discount_type"] = discount.type if discount else None
                updates["discount_value"] = discount.value if discount else None
            return updates

        if any(data.provided(name) for name in PRICING_FIELDS):
            result = compute_price(
                merged("base_price"),
                merged("discount_type"),
                merged("discount_value"),
            )
        elif data.provided("tier") or data.provided("billing_cycle"):
            # Re-price from the catalog, keeping the existing discount
            base_price = self.catalog.base_price(
                data.tier if data.provided("tier") else current.tier,
                data.billing_cycle if data.provided("billing_cycle") else current.billing_cycle,
            )
            result = compute_price(base_price, current.discount_type, current.discount_value)
        else:
            return {}

        return {
            "base_price": result.base_price,
            "discount_type": result.discount_type,
            "discount_value": result.discount_value,
            "price": result.final_price,
        }

    async def cancel_subscription(
        self,
        subscription_id: str,
        reason: Optional[str] = None,
    ) -> Optional[Subscription]:
        """
        Cancel a subscription and stop auto-renewal.

        Cancelling an already-cancelled subscription is a no-op: the
        original cancellation date and reason are kept.
        """
        current = await self.repository.find_by_id(subscription_id)
        if current is None:
            logger.warning(f"Subscription not found: {subscription_id}")
            return None

        if current.status == SubscriptionStatus.CANCELLED:
            logger.info(f"Subscription {subscription_id} is already cancelled")
            return current

        return await self.update_subscription(
            subscription_id,
            UpdateSubscriptionInput(
                status=SubscriptionStatus.CANCELLED,
                cancellation_date=self.now(),
                cancellation_reason=reason or None,
                auto_renew=False,
            ),
        )

    # ============================================================================
    # SCHEDULED RENEWAL
    # ============================================================================

    async def process_due_subscriptions(self) -> List[Subscription]:
        """
        Advance live subscriptions whose trial or billing period has ended.

        - trial past trial_end_date becomes active
        - ended period with auto_renew rolls forward to the period containing now
        - ended period without auto_renew expires

        Returns:
            The subscriptions that were changed
        """
        now = self.now()
        due = await self.repository.find_due(now)
        changed: List[Subscription] = []

        for subscription in due:
            updates = self._due_updates(subscription, now)
            if not updates:
                continue

            updates["updated_at"] = now
            updated = await self.repository.update(subscription.id, SubscriptionUpdate(**updates))
            if updated is None:
                logger.warning(f"Subscription {subscription.id} disappeared during renewal")
                continue

            logger.info(
                f"Processed due subscription {subscription.id}: "
                f"{subscription.status.value} -> {updated.status.value}, "
                f"period ends {updated.end_date}"
            )
            changed.append(updated)

        logger.info(f"Renewal sweep at {now.isoformat()}: {len(changed)}/{len(due)} updated")
        return changed

    def _due_updates(self, subscription: Subscription, now: datetime) -> Dict[str, Any]:
        if not subscription.is_live:
            return {}

        updates: Dict[str, Any] = {}
        trial_end = ensure_utc(subscription.trial_end_date)
        if subscription.status == SubscriptionStatus.TRIAL and trial_end and trial_end <= now:
            updates["status"] = SubscriptionStatus.ACTIVE

        period_end = ensure_utc(subscription.end_date)
        if period_end is None or period_end > now:
            return updates

        if not subscription.auto_renew:
            updates["status"] = SubscriptionStatus.EXPIRED
            return updates

        # Step whole cycles from the old period end, anchored to avoid day drift
        months = CYCLE_MONTHS[subscription.billing_cycle]
        periods = 1
        while add_months(period_end, periods * months) <= now:
            periods += 1
        new_end = add_months(period_end, periods * months)
        updates["start_date"] = add_months(period_end, (periods - 1) * months)
        updates["end_date"] = new_end
        updates["next_billing_date"] = new_end
        return updates

    # ============================================================================
    # ANALYTICS
    # ============================================================================

    async def get_revenue_stats(self) -> RevenueStats:
        records = await self.repository.find_all_records()
        return aggregate_revenue(records, now=self.now())

    async def get_revenue_report(
        self,
        period: RevenuePeriod = RevenuePeriod.LAST_30_DAYS,
        group_by: RevenueGroupBy = RevenueGroupBy.DAY,
    ) -> RevenueReport:
        records = await self.repository.find_all_records()
        return build_revenue_report(records, now=self.now(), period=period, group_by=group_by)
