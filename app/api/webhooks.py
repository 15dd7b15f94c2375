"""Scheduled job endpoints, triggered by an external cron"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from app.config import CRON_SECRET
from app.features.subscriptions.api import get_subscription_service
from app.features.subscriptions.service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


async def verify_cron_secret(x_cron_secret: Optional[str] = Header(None)) -> None:
    """Require the shared cron secret when one is configured"""
    if CRON_SECRET and x_cron_secret != CRON_SECRET:
        logger.warning("Rejected cron request with missing or invalid secret")
        raise HTTPException(status_code=401, detail="Invalid cron secret")


@router.post("/process-due-subscriptions", dependencies=[Depends(verify_cron_secret)])
async def process_due_subscriptions(
    service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Daily renewal sweep.

    - Trials past their end date become active
    - Auto-renewing subscriptions past their period end roll into the next period
    - Other subscriptions past their period end expire
    """
    logger.info("CRON: Starting process-due-subscriptions")
    try:
        changed = await service.process_due_subscriptions()
    except Exception as e:
        logger.error(f"CRON process-due-subscriptions failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process due subscriptions")

    logger.info(f"CRON completed: {len(changed)} subscriptions updated")
    return {
        "status": "ok",
        "subscriptions_updated": len(changed),
        "subscription_ids": [s.id for s in changed],
    }
