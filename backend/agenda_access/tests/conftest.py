"""
Root test configuration and fixtures.

Provides:
- db_engine / db_session: SQLite in-memory database with rollback isolation
- make_profile / make_subscription / make_receipt: row factories
- fake collaborators for the evaluation service
- temp_config_dir / make_yaml_config: YAML policy files
"""

import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Generator, List, Optional

import pytest
import yaml
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from agenda_access.entitlements.loader import reset_access_policy_loader
from agenda_access.entitlements.models import (
    AccountInfo,
    EntitlementRecord,
    StoreReceipt as StoreReceiptRecord,
    SubscriptionStatus,
)

# Set test environment
os.environ.setdefault("ENV", "test")

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def db_engine():
    """SQLite in-memory engine shared by the test session."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    from agenda_access.db_base import Base
    from agenda_access.models import store_receipt, subscription, user_profile  # noqa: F401

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Create database session with transaction rollback for test isolation.

    Each test gets a fresh session that rolls back after the test completes.
    """
    connection = db_engine.connect()
    transaction = connection.begin()

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=connection)
    session = SessionLocal()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(autouse=True)
def _reset_policy_loader():
    reset_access_policy_loader()
    yield
    reset_access_policy_loader()


# =============================================================================
# Row factories
# =============================================================================

@pytest.fixture
def make_profile(db_session):
    from agenda_access.models.user_profile import UserProfile

    def _make(
        role: str = "owner",
        clinic_id: Optional[str] = None,
        is_active: bool = True,
        is_premium: bool = False,
        trial_end_date: Optional[str] = None,
        created_at: datetime = NOW,
    ) -> UserProfile:
        profile = UserProfile(
            id=str(uuid.uuid4()),
            role=role,
            clinic_id=clinic_id,
            is_active=is_active,
            is_premium=is_premium,
            trial_end_date=trial_end_date,
            created_at=created_at,
            updated_at=created_at,
        )
        db_session.add(profile)
        db_session.flush()
        return profile
    return _make


@pytest.fixture
def make_subscription(db_session):
    from agenda_access.models.subscription import UserSubscription

    def _make(
        user_id: str,
        status: str = SubscriptionStatus.ACTIVE.value,
        plan_id: Optional[str] = "premium_monthly",
        discount_percentage: Optional[int] = None,
        next_billing_date: Optional[datetime] = None,
        created_at: datetime = NOW - timedelta(days=30),
    ) -> UserSubscription:
        row = UserSubscription(
            id=str(uuid.uuid4()),
            user_id=user_id,
            status=status,
            plan_id=plan_id,
            discount_percentage=discount_percentage,
            next_billing_date=next_billing_date,
            created_at=created_at,
            updated_at=created_at,
        )
        db_session.add(row)
        db_session.flush()
        return row
    return _make


@pytest.fixture
def make_receipt(db_session):
    from agenda_access.models.store_receipt import StoreReceipt

    def _make(
        user_id: str,
        product_id: str = "com.agendahof.premium",
        expiration_date: Optional[datetime] = None,
        status: str = "active",
        purchase_date: datetime = NOW - timedelta(days=1),
    ) -> StoreReceipt:
        row = StoreReceipt(
            id=str(uuid.uuid4()),
            user_id=user_id,
            transaction_id=f"txn-{uuid.uuid4().hex[:12]}",
            product_id=product_id,
            purchase_date=purchase_date,
            expiration_date=expiration_date,
            status=status,
        )
        db_session.add(row)
        db_session.flush()
        return row
    return _make


# =============================================================================
# In-memory collaborators
# =============================================================================

class FakeSubscriptions:
    """SubscriptionFetcher backed by a list, recording every call."""

    def __init__(self, records: Optional[List[EntitlementRecord]] = None):
        self.records = list(records or [])
        self.calls: List[str] = []

    def fetch_subscriptions(self, owner_id: str) -> List[EntitlementRecord]:
        self.calls.append(f"subscriptions:{owner_id}")
        return [
            r for r in self.records
            if r.user_id == owner_id and r.status in (
                SubscriptionStatus.ACTIVE, SubscriptionStatus.PENDING_CANCELLATION,
            )
        ]

    def fetch_cancelled_subscriptions(self, owner_id: str) -> List[EntitlementRecord]:
        self.calls.append(f"cancelled:{owner_id}")
        return [
            r for r in self.records
            if r.user_id == owner_id and r.status == SubscriptionStatus.CANCELLED
        ]


class FakeAccounts:
    def __init__(self, accounts: Optional[Dict[str, AccountInfo]] = None):
        self.accounts = dict(accounts or {})
        self.calls: List[str] = []

    def get_account(self, user_id: str) -> Optional[AccountInfo]:
        self.calls.append(user_id)
        return self.accounts.get(user_id)


class FakeReceipts:
    def __init__(self, receipts: Optional[Dict[str, List[StoreReceiptRecord]]] = None):
        self.receipts = dict(receipts or {})
        self.calls: List[str] = []

    def fetch_active_receipts(self, user_id: str) -> List[StoreReceiptRecord]:
        self.calls.append(user_id)
        return list(self.receipts.get(user_id, []))


def make_record(
    user_id: str = "owner-1",
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    plan_id: Optional[str] = "com.app.premium",
    discount_percentage: Optional[int] = None,
    next_billing_date: Optional[datetime] = None,
    created_at: datetime = NOW - timedelta(days=30),
    record_id: Optional[str] = None,
) -> EntitlementRecord:
    return EntitlementRecord(
        id=record_id or str(uuid.uuid4()),
        user_id=user_id,
        status=status,
        created_at=created_at,
        plan_id=plan_id,
        discount_percentage=discount_percentage,
        next_billing_date=next_billing_date,
    )


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow-running")


# =============================================================================
# Shared config fixtures
# =============================================================================

@pytest.fixture
def temp_config_dir():
    """Create a temporary directory for YAML config files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_yaml_config(temp_config_dir):
    """
    Factory fixture that writes a YAML config file and returns its path.

    Usage:
        config_path = make_yaml_config("access_policy.yml", {"trial": {...}})
    """
    def _make(filename: str, config: dict) -> Path:
        config_path = temp_config_dir / filename
        with open(config_path, "w") as f:
            yaml.dump(config, f)
        return config_path
    return _make
