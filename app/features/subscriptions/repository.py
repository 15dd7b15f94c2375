"""Supabase repository for subscription records"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from supabase import Client  # type: ignore

from app.config import SUBSCRIPTIONS_TABLE
from app.features.subscriptions.domain import (
    LIVE_STATUSES,
    Subscription,
    SubscriptionCreate,
    SubscriptionUpdate,
)
from app.infra.supabase.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


def is_valid_subscription_id(subscription_id: Any) -> bool:
    """Subscription ids are UUID strings"""
    try:
        UUID(str(subscription_id))
    except ValueError:
        return False
    return True


class SubscriptionRepository(BaseRepository[Subscription, SubscriptionCreate, SubscriptionUpdate]):
    """
    Repository for subscription records.

    Malformed ids resolve to "not found" (None) instead of
    reaching the database.
    """

    def __init__(self, client: Client, table_name: str = SUBSCRIPTIONS_TABLE):
        super().__init__(client, table_name, Subscription)

    async def find_by_id(self, id: str) -> Optional[Subscription]:
        if not is_valid_subscription_id(id):
            logger.warning(f"Malformed subscription id: {id!r}")
            return None
        return await super().find_by_id(id)

    async def update(self, id: str, data: SubscriptionUpdate) -> Optional[Subscription]:
        if not is_valid_subscription_id(id):
            logger.warning(f"Malformed subscription id: {id!r}")
            return None
        return await super().update(id, data)

    async def find_by_organization(self, organization_id: str) -> List[Subscription]:
        """All subscriptions of an organization, newest first"""
        return await self.find_by_filters(
            {"organization_id": organization_id},
            order_by="created_at",
            desc=True,
        )

    async def find_live_by_organization(self, organization_id: str) -> List[Subscription]:
        """Active/trial subscriptions of an organization, newest first"""
        return await self.find_by_filters(
            {
                "organization_id": organization_id,
                "status": [status.value for status in LIVE_STATUSES],
            },
            order_by="created_at",
            desc=True,
        )

    async def find_page(
        self,
        filters: Dict[str, Any],
        limit: int,
        offset: int,
    ) -> Tuple[List[Subscription], int]:
        """One page of subscriptions (newest first) and the total match count"""
        query = self._apply_filters(self._client.table(self._table_name).select("*"), filters)
        response = (
            query.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        total = await self.count(filters)
        return self._to_models(response.data), total

    async def find_due(self, now: datetime) -> List[Subscription]:
        """Live subscriptions whose trial or billing period has ended by `now`"""
        cutoff = now.isoformat()
        response = (
            self._client.table(self._table_name)
            .select("*")
            .in_("status", [status.value for status in LIVE_STATUSES])
            .or_(f"end_date.lte.{cutoff},trial_end_date.lte.{cutoff}")
            .execute()
        )
        return self._to_models(response.data)

    async def find_all_records(self) -> List[Dict[str, Any]]:
        """Raw rows for analytics; validation is left to the caller"""
        response = self._client.table(self._table_name).select("*").execute()
        return response.data or []
