"""
Tests for the HTTP routes.

Tests cover:
- GET /api/access/{user_id}: subscription, trial, paywall, 404, 503
- POST /api/webhooks/store-receipt: 200, 400, 404, 500
- GET /health
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from agenda_access.api.routes import access, health, webhooks_store
from agenda_access.database.session import get_db_session
from agenda_access.entitlements.errors import EntitlementFetchError


@pytest.fixture
def app(db_session):
    """Create a test FastAPI app bound to the test session."""
    app = FastAPI()
    app.include_router(health.router)
    app.include_router(access.router)
    app.include_router(webhooks_store.router)
    app.dependency_overrides[get_db_session] = lambda: db_session
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def _now():
    return datetime.now(timezone.utc)


class TestGetAccess:

    def test_active_subscription(self, client, make_profile, make_subscription):
        owner = make_profile(created_at=_now() - timedelta(days=90))
        make_subscription(owner.id, plan_id="com.app.premium",
                          next_billing_date=_now() + timedelta(days=10))

        response = client.get(f"/api/access/{owner.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == owner.id
        assert data["has_access"] is True
        assert data["has_active_subscription"] is True
        assert data["plan_tier"] == "premium"
        assert data["plan_name"] == "Premium"
        assert data["source"] == "backend"
        assert data["show_paywall"] is False
        assert data["expiration_date"] is not None

    def test_trial(self, client, make_profile):
        owner = make_profile(created_at=_now() - timedelta(days=1))

        data = client.get(f"/api/access/{owner.id}").json()

        assert data["is_in_trial"] is True
        assert data["plan_tier"] == "trial"
        assert data["show_paywall"] is False

    def test_paywall(self, client, make_profile):
        owner = make_profile(created_at=_now() - timedelta(days=30))

        data = client.get(f"/api/access/{owner.id}").json()

        assert data["has_access"] is False
        assert data["plan_tier"] == "none"
        assert data["source"] == "none"
        assert data["expiration_date"] is None
        assert data["show_paywall"] is True

    def test_inactive_staff(self, client, make_profile, make_subscription):
        owner = make_profile()
        make_subscription(owner.id)
        staff = make_profile(role="staff", clinic_id=owner.id, is_active=False)

        data = client.get(f"/api/access/{staff.id}").json()

        assert data["has_access"] is False

    def test_unknown_user(self, client):
        response = client.get("/api/access/does-not-exist")
        assert response.status_code == 404

    def test_fetch_error_returns_503(self, app, client):
        manager = MagicMock()
        manager.refresh.side_effect = EntitlementFetchError("owner-1", "Subscription query failed")
        app.dependency_overrides[access.get_manager] = lambda: manager

        response = client.get("/api/access/owner-1")

        assert response.status_code == 503
        assert response.json()["detail"] == {
            "error": "ENTITLEMENT_FETCH_FAILED",
            "message": "Subscription query failed",
            "owner_id": "owner-1",
        }


class TestStoreReceiptWebhook:

    def test_valid_receipt(self, client, make_profile):
        profile = make_profile()

        response = client.post("/api/webhooks/store-receipt", json={
            "user_id": profile.id,
            "product_id": "com.agendahof.premium",
            "transaction_id": "txn-500",
        })

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Purchase validated successfully",
            "is_premium": True,
        }

        access_data = client.get(f"/api/access/{profile.id}").json()
        assert access_data["source"] == "store"

    def test_invalid_product(self, client, make_profile):
        profile = make_profile()

        response = client.post("/api/webhooks/store-receipt", json={
            "user_id": profile.id,
            "product_id": "com.unknown",
            "transaction_id": "txn-501",
        })

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "Invalid product_id"

    def test_unknown_user(self, client):
        response = client.post("/api/webhooks/store-receipt", json={
            "user_id": "missing",
            "product_id": "com.agendahof.basic",
            "transaction_id": "txn-502",
        })
        assert response.status_code == 404

    def test_missing_fields(self, client):
        response = client.post("/api/webhooks/store-receipt", json={"user_id": "u1"})
        assert response.status_code == 422

    def test_processing_failure_returns_500(self, app, client):
        service = MagicMock()
        service.process_receipt.side_effect = OperationalError(
            "UPDATE", {}, Exception("connection lost")
        )
        app.dependency_overrides[webhooks_store.get_store_receipt_service] = lambda: service

        response = client.post("/api/webhooks/store-receipt", json={
            "user_id": "u1",
            "product_id": "com.agendahof.basic",
            "transaction_id": "txn-503",
        })

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "Receipt validation failed"
        service.db.rollback.assert_called_once()


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_main_app_registers_routes(self):
        from main import app as main_app

        paths = main_app.openapi()["paths"]
        assert "/health" in paths
        assert "/api/access/{user_id}" in paths
        assert "/api/webhooks/store-receipt" in paths


class TestDatabaseDependency:

    def test_unconfigured_database_returns_503(self, monkeypatch):
        from agenda_access.database import session as db_session_module

        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setattr(db_session_module, "_engine", None)
        monkeypatch.setattr(db_session_module, "_SessionLocal", None)
        app = FastAPI()
        app.include_router(access.router)

        response = TestClient(app).get("/api/access/owner-1")

        assert response.status_code == 503
        assert response.json()["detail"] == "Database not configured"
