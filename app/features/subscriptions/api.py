"""Subscription management and revenue analytics API endpoints"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.features.subscriptions.catalog import DEFAULT_PLAN_CATALOG
from app.features.subscriptions.domain import (
    BillingCycle,
    PriceResult,
    Subscription,
    SubscriptionStatus,
    SubscriptionTier,
)
from app.features.subscriptions.exceptions import (
    DuplicateSubscriptionError,
    PricingConfigurationError,
    SubscriptionValidationError,
)
from app.features.subscriptions.pricing import compute_price
from app.features.subscriptions.repository import SubscriptionRepository
from app.features.subscriptions.schemas import (
    CancelSubscriptionRequest,
    CreateSubscriptionInput,
    QuoteRequest,
    RevenueGroupBy,
    RevenuePeriod,
    RevenueReport,
    RevenueStats,
    SubscriptionFilters,
    SubscriptionPage,
    UpdateSubscriptionInput,
)
from app.features.subscriptions.service import SubscriptionService
from app.infra.supabase.client import get_supabase_client
from app.middleware.auth import require_super_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])
analytics_router = APIRouter(prefix="/api/analytics", tags=["analytics"])


def get_subscription_service() -> SubscriptionService:
    """Dependency wiring the service to the Supabase-backed repository"""
    repository = SubscriptionRepository(get_supabase_client())
    return SubscriptionService(repository, catalog=DEFAULT_PLAN_CATALOG)


def _raise_http(e: Exception, action: str):
    """Translate service errors into HTTP responses"""
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, (SubscriptionValidationError, DuplicateSubscriptionError)):
        logger.warning(f"Rejected request to {action}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    if isinstance(e, PricingConfigurationError):
        logger.error(f"Pricing configuration error while trying to {action}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    logger.error(f"Failed to {action}: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail=f"Failed to {action}")


def _not_found(subscription: Optional[Subscription]) -> Subscription:
    if subscription is None:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return subscription


@router.get("", response_model=SubscriptionPage)
async def list_subscriptions(
    status: Optional[SubscriptionStatus] = Query(None),
    tier: Optional[SubscriptionTier] = Query(None),
    billing_cycle: Optional[BillingCycle] = Query(None, alias="billingCycle"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user_id: str = Depends(require_super_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """List subscriptions, newest first, with optional status/tier/cycle filters."""
    try:
        filters = SubscriptionFilters(status=status, tier=tier, billing_cycle=billing_cycle)
        return await service.list_subscriptions(filters, page=page, limit=limit)
    except Exception as e:
        _raise_http(e, "fetch subscriptions")


@router.post("", response_model=Subscription, status_code=201)
async def create_subscription(
    request: CreateSubscriptionInput,
    user_id: str = Depends(require_super_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Assign a plan to an organization.

    Raises:
        400: Invalid pricing input or the organization already has a live subscription
        500: The plan catalog has no list price for the requested tier/cycle
    """
    try:
        subscription = await service.create_subscription(request)
        logger.info(f"User {user_id} created subscription {subscription.id}")
        return subscription
    except Exception as e:
        _raise_http(e, "create subscription")


@router.post("/quote", response_model=PriceResult)
async def quote_price(
    request: QuoteRequest,
    user_id: str = Depends(require_super_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Preview the final price for a base price (or catalog tier/cycle) and discount."""
    try:
        base_price = request.base_price
        if base_price is None:
            if request.tier is None or request.billing_cycle is None:
                raise SubscriptionValidationError("basePrice or tier and billingCycle are required")
            base_price = service.catalog.base_price(request.tier, request.billing_cycle)
        return compute_price(base_price, request.discount_type, request.discount_value)
    except Exception as e:
        _raise_http(e, "quote price")


@router.get("/stats", response_model=RevenueStats)
async def get_subscription_stats(
    user_id: str = Depends(require_super_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """MRR/ARR, status, tier and billing-cycle distributions, renewal windows."""
    try:
        return await service.get_revenue_stats()
    except Exception as e:
        _raise_http(e, "fetch subscription stats")


@router.get("/organization/{organization_id}", response_model=Subscription)
async def get_organization_subscription(
    organization_id: str,
    user_id: str = Depends(require_super_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """The organization's current (active or trial) subscription."""
    try:
        subscription = await service.get_current_subscription(organization_id)
    except Exception as e:
        _raise_http(e, "fetch organization subscription")
    return _not_found(subscription)


@router.get("/organization/{organization_id}/history", response_model=List[Subscription])
async def get_organization_subscription_history(
    organization_id: str,
    user_id: str = Depends(require_super_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """All subscriptions of the organization, newest first."""
    try:
        return await service.get_organization_subscriptions(organization_id)
    except Exception as e:
        _raise_http(e, "fetch organization subscriptions")


@router.get("/{subscription_id}", response_model=Subscription)
async def get_subscription(
    subscription_id: str,
    user_id: str = Depends(require_super_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    try:
        subscription = await service.get_subscription(subscription_id)
    except Exception as e:
        _raise_http(e, "fetch subscription")
    return _not_found(subscription)


@router.patch("/{subscription_id}", response_model=Subscription)
async def update_subscription(
    subscription_id: str,
    request: UpdateSubscriptionInput,
    user_id: str = Depends(require_super_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Partially update a subscription.

    Price, features and billing dates are re-derived from tier,
    cycle, start date and discount changes unless overridden.
    """
    try:
        subscription = await service.update_subscription(subscription_id, request)
    except Exception as e:
        _raise_http(e, "update subscription")
    return _not_found(subscription)


@router.post("/{subscription_id}/cancel", response_model=Subscription)
async def cancel_subscription(
    subscription_id: str,
    request: Optional[CancelSubscriptionRequest] = None,
    user_id: str = Depends(require_super_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Cancel a subscription. Cancelling twice keeps the first cancellation date."""
    reason = request.reason if request else None
    try:
        subscription = await service.cancel_subscription(subscription_id, reason)
    except Exception as e:
        _raise_http(e, "cancel subscription")
    if subscription is not None:
        logger.info(f"User {user_id} cancelled subscription {subscription_id}")
    return _not_found(subscription)


@analytics_router.get("/revenue", response_model=RevenueReport)
async def get_revenue_analytics(
    period: RevenuePeriod = Query(RevenuePeriod.LAST_30_DAYS),
    group_by: RevenueGroupBy = Query(RevenueGroupBy.DAY, alias="groupBy"),
    user_id: str = Depends(require_super_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Revenue by organization (top 10), by tier, and over time."""
    try:
        return await service.get_revenue_report(period=period, group_by=group_by)
    except Exception as e:
        _raise_http(e, "fetch revenue analytics")
