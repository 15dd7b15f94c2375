from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from app.api import webhooks
from app.features.subscriptions.api import get_subscription_service
from app.main import app
from app.middleware.auth import get_current_claims, require_super_admin

from tests.conftest import NOW

UNKNOWN_ID = "0f8fad5b-d9cb-469f-a165-70867728950e"


@pytest.fixture
def client(service):
    app.dependency_overrides[require_super_admin] = lambda: "admin-1"
    app.dependency_overrides[get_subscription_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def stored(repository, make_subscription):
    return repository.add(make_subscription())


# ============================================================================
# AUTH
# ============================================================================


def test_missing_token_is_rejected(service):
    app.dependency_overrides[get_subscription_service] = lambda: service
    try:
        response = TestClient(app).get("/api/subscriptions")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401


def test_non_admin_is_forbidden(service):
    app.dependency_overrides[get_subscription_service] = lambda: service
    app.dependency_overrides[get_current_claims] = lambda: {
        "sub": "user-1",
        "app_metadata": {"role": "ORG_ADMIN"},
    }
    try:
        response = TestClient(app).get("/api/subscriptions")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 403


def test_super_admin_claims_pass(service):
    app.dependency_overrides[get_subscription_service] = lambda: service
    app.dependency_overrides[get_current_claims] = lambda: {
        "sub": "admin-1",
        "app_metadata": {"role": "SUPER_ADMIN"},
    }
    try:
        response = TestClient(app).get("/api/subscriptions")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200


# ============================================================================
# SUBSCRIPTIONS
# ============================================================================


def test_create_subscription(client):
    response = client.post("/api/subscriptions", json={
        "organizationId": "org-1",
        "tier": "growth",
        "billingCycle": "quarterly",
        "discountType": "percentage",
        "discountValue": 10,
        "trialDays": 14,
    })

    assert response.status_code == 201
    body = response.json()
    assert body["organizationId"] == "org-1"
    assert body["status"] == "trial"
    assert body["basePrice"] == 14000
    assert body["price"] == 12600
    assert body["endDate"].startswith("2024-04-15")


def test_create_duplicate_is_bad_request(client, stored):
    response = client.post("/api/subscriptions", json={
        "organizationId": stored.organization_id,
        "tier": "starter",
        "billingCycle": "monthly",
    })

    assert response.status_code == 400
    assert stored.id in response.json()["detail"]


def test_create_with_invalid_discount_is_bad_request(client):
    response = client.post("/api/subscriptions", json={
        "organizationId": "org-1",
        "tier": "starter",
        "billingCycle": "monthly",
        "discountType": "percentage",
        "discountValue": 101,
    })

    assert response.status_code == 400


def test_create_unpriced_tier_is_server_error(client):
    response = client.post("/api/subscriptions", json={
        "organizationId": "org-1",
        "tier": "enterprise",
        "billingCycle": "monthly",
    })

    assert response.status_code == 500
    assert "enterprise" in response.json()["detail"]


def test_create_unknown_tier_fails_validation(client):
    response = client.post("/api/subscriptions", json={
        "organizationId": "org-1",
        "tier": "platinum",
        "billingCycle": "monthly",
    })

    assert response.status_code == 422


def test_get_subscription(client, stored):
    response = client.get(f"/api/subscriptions/{stored.id}")

    assert response.status_code == 200
    assert response.json()["id"] == stored.id


@pytest.mark.parametrize("subscription_id", [UNKNOWN_ID, "not-a-uuid"])
def test_get_unknown_subscription_is_not_found(client, subscription_id):
    assert client.get(f"/api/subscriptions/{subscription_id}").status_code == 404


def test_list_subscriptions(client, repository, make_subscription):
    repository.add(make_subscription(organization_id="org-1"))
    repository.add(make_subscription(organization_id="org-2"))
    repository.add(make_subscription(organization_id="org-3", status="expired"))

    response = client.get("/api/subscriptions", params={"status": "active", "limit": 1})

    assert response.status_code == 200
    body = response.json()
    assert len(body["subscriptions"]) == 1
    assert body["pagination"] == {"page": 1, "limit": 1, "total": 2, "totalPages": 2}


def test_list_rejects_oversized_page(client):
    assert client.get("/api/subscriptions", params={"limit": 500}).status_code == 422


def test_update_subscription(client, stored):
    response = client.patch(f"/api/subscriptions/{stored.id}", json={"tier": "growth"})

    assert response.status_code == 200
    body = response.json()
    assert body["tier"] == "growth"
    assert body["price"] == 5000


def test_update_with_null_tier_is_bad_request(client, stored):
    response = client.patch(f"/api/subscriptions/{stored.id}", json={"tier": None})

    assert response.status_code == 400


def test_update_unknown_subscription(client):
    response = client.patch(f"/api/subscriptions/{UNKNOWN_ID}", json={"notes": "x"})

    assert response.status_code == 404


def test_cancel_subscription(client, stored):
    response = client.post(f"/api/subscriptions/{stored.id}/cancel", json={"reason": "Closing down"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "cancelled"
    assert body["cancellationReason"] == "Closing down"
    assert body["autoRenew"] is False


def test_cancel_without_body(client, stored):
    response = client.post(f"/api/subscriptions/{stored.id}/cancel")

    assert response.status_code == 200
    assert response.json()["cancellationReason"] is None


def test_organization_current_and_history(client, repository, make_subscription):
    repository.add(make_subscription(organization_id="org-9", status="cancelled"))
    live = repository.add(make_subscription(organization_id="org-9"))

    current = client.get("/api/subscriptions/organization/org-9")
    history = client.get("/api/subscriptions/organization/org-9/history")

    assert current.json()["id"] == live.id
    assert len(history.json()) == 2
    assert client.get("/api/subscriptions/organization/org-404").status_code == 404


def test_quote_from_catalog(client):
    response = client.post("/api/subscriptions/quote", json={
        "tier": "starter",
        "billingCycle": "monthly",
        "discountType": "percentage",
        "discountValue": 10,
    })

    assert response.status_code == 200
    assert response.json() == {
        "basePrice": 2500,
        "discountType": "percentage",
        "discountValue": 10,
        "finalPrice": 2250,
    }


def test_quote_needs_base_price_or_plan(client):
    assert client.post("/api/subscriptions/quote", json={"tier": "starter"}).status_code == 400


# ============================================================================
# ANALYTICS
# ============================================================================


def test_stats(client, repository, make_subscription):
    repository.add(make_subscription(price=1000))
    repository.add(make_subscription(price=3000, billing_cycle="quarterly"))

    response = client.get("/api/subscriptions/stats")

    assert response.status_code == 200
    body = response.json()
    assert body["mrr"] == 2000
    assert body["arr"] == 24000
    assert body["tierDistribution"]["starter"]["count"] == 2
    assert body["billingCycleDistribution"]["quarterly"] == 1


def test_stats_skip_corrupt_rows(client, repository, make_subscription):
    good = repository.add(make_subscription(price=1000))
    repository.raw_records.append(dict(good.model_dump(mode="json"), id="corrupt", price="NaN"))

    response = client.get("/api/subscriptions/stats")

    assert response.status_code == 200
    assert response.json()["mrr"] == 1000
    assert response.json()["skippedRecords"] == ["corrupt"]


def test_revenue_report(client, repository, make_subscription):
    repository.add(make_subscription(price=1000))

    response = client.get("/api/analytics/revenue", params={"period": "all", "groupBy": "month"})

    assert response.status_code == 200
    body = response.json()
    assert body["groupBy"] == "month"
    assert body["trends"] == [{"date": "Jan 2024", "revenue": 1000, "count": 1}]


def test_revenue_report_rejects_unknown_period(client):
    assert client.get("/api/analytics/revenue", params={"period": "2w"}).status_code == 422


# ============================================================================
# CRON + HEALTH
# ============================================================================


def test_cron_requires_secret(client, monkeypatch):
    monkeypatch.setattr(webhooks, "CRON_SECRET", "s3cret")

    assert client.post("/api/webhooks/process-due-subscriptions").status_code == 401


def test_cron_processes_due_subscriptions(client, monkeypatch, repository, make_subscription):
    monkeypatch.setattr(webhooks, "CRON_SECRET", "s3cret")
    due = repository.add(make_subscription(auto_renew=False, end_date=NOW - timedelta(days=1)))

    response = client.post(
        "/api/webhooks/process-due-subscriptions",
        headers={"X-Cron-Secret": "s3cret"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "subscriptions_updated": 1,
        "subscription_ids": [due.id],
    }
    assert repository.records[due.id].status.value == "expired"


def test_health(client):
    response = client.get("/api/health/")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
