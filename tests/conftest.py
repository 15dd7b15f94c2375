"""Shared fixtures: in-memory repository, fixed clock and service"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

from app.features.subscriptions.domain import (
    LIVE_STATUSES,
    Subscription,
    SubscriptionCreate,
    SubscriptionUpdate,
)
from app.features.subscriptions.repository import is_valid_subscription_id
from app.features.subscriptions.service import SubscriptionService
from app.utils.datetime_helper import ensure_utc

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock that only moves when told to"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class InMemorySubscriptionRepository:
    """Dict-backed stand-in for SubscriptionRepository"""

    def __init__(self):
        self.records: Dict[str, Subscription] = {}
        self.raw_records: List[Dict[str, Any]] = []
        self.writes = 0

    def add(self, subscription: Subscription) -> Subscription:
        self.records[subscription.id] = subscription
        return subscription

    async def find_by_id(self, id: str) -> Optional[Subscription]:
        if not is_valid_subscription_id(id):
            return None
        return self.records.get(id)

    async def create(self, data: SubscriptionCreate) -> Subscription:
        self.writes += 1
        subscription = Subscription(id=str(uuid.uuid4()), **data.model_dump())
        return self.add(subscription)

    async def update(self, id: str, data: SubscriptionUpdate) -> Optional[Subscription]:
        current = await self.find_by_id(id)
        if current is None:
            return None
        self.writes += 1
        updated = current.model_copy(update=data.model_dump(exclude_unset=True))
        # Round-trip through validation like the real store does
        updated = Subscription.model_validate(updated.model_dump())
        return self.add(updated)

    def _newest_first(self, subscriptions: List[Subscription]) -> List[Subscription]:
        return sorted(subscriptions, key=lambda s: s.created_at, reverse=True)

    async def find_by_organization(self, organization_id: str) -> List[Subscription]:
        return self._newest_first(
            [s for s in self.records.values() if s.organization_id == organization_id]
        )

    async def find_live_by_organization(self, organization_id: str) -> List[Subscription]:
        return [s for s in await self.find_by_organization(organization_id) if s.status in LIVE_STATUSES]

    async def find_page(
        self, filters: Dict[str, Any], limit: int, offset: int
    ) -> Tuple[List[Subscription], int]:
        matches = [
            s for s in self.records.values()
            if all(s.model_dump(mode="json")[key] == value for key, value in filters.items())
        ]
        matches = self._newest_first(matches)
        return matches[offset:offset + limit], len(matches)

    async def find_due(self, now: datetime) -> List[Subscription]:
        def ended(value: Optional[datetime]) -> bool:
            value = ensure_utc(value)
            return value is not None and value <= now

        return [
            s for s in self.records.values()
            if s.status in LIVE_STATUSES and (ended(s.end_date) or ended(s.trial_end_date))
        ]

    async def find_all_records(self) -> List[Dict[str, Any]]:
        return [s.model_dump(mode="json") for s in self.records.values()] + self.raw_records


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def repository() -> InMemorySubscriptionRepository:
    return InMemorySubscriptionRepository()


@pytest.fixture
def service(repository, clock) -> SubscriptionService:
    return SubscriptionService(repository, clock=clock)


@pytest.fixture
def make_subscription():
    """Build a stored-looking Subscription with sensible defaults"""

    def _make(**overrides) -> Subscription:
        fields = dict(
            id=str(uuid.uuid4()),
            organization_id="org-1",
            tier="starter",
            status="active",
            billing_cycle="monthly",
            base_price=2500,
            price=2500,
            start_date=NOW,
            end_date=datetime(2024, 2, 15, 12, 0, tzinfo=timezone.utc),
            next_billing_date=datetime(2024, 2, 15, 12, 0, tzinfo=timezone.utc),
            features=["Basic reporting"],
            created_at=NOW,
            updated_at=NOW,
        )
        fields.update(overrides)
        return Subscription(**fields)

    return _make
