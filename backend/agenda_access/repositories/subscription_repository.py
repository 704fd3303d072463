"""
Subscription repository for data access operations.

Encapsulates all database reads the access engine needs:
- Candidate subscriptions (active / pending cancellation) for an owner
- Cancelled subscriptions for the anti-abuse check

Database errors surface as EntitlementFetchError, never as empty results.
"""

import logging
from typing import Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda_access.entitlements.errors import EntitlementFetchError
from agenda_access.entitlements.models import EntitlementRecord, SubscriptionStatus
from agenda_access.models.subscription import UserSubscription

logger = logging.getLogger(__name__)

CANDIDATE_STATUSES = (
    SubscriptionStatus.ACTIVE.value,
    SubscriptionStatus.PENDING_CANCELLATION.value,
)


def _to_records(owner_id: str, rows: Iterable[UserSubscription]) -> List[EntitlementRecord]:
    """Convert rows, skipping any whose stored values violate record invariants."""
    records = []
    for row in rows:
        try:
            records.append(row.to_domain())
        except ValueError as exc:
            logger.warning("Skipping malformed subscription row", extra={
                "owner_id": owner_id,
                "subscription_id": row.id,
                "error": str(exc),
            })
    return records


class SubscriptionRepository:
    """
    Repository for subscription data access.

    Implements the SubscriptionFetcher contract of AccessEvaluationService.
    """

    def __init__(self, db_session: Session):
        """
        Initialize repository with database session.

        Args:
            db_session: SQLAlchemy database session
        """
        self.db = db_session

    def fetch_subscriptions(self, owner_id: str) -> List[EntitlementRecord]:
        """
        Get subscriptions that may currently grant access.

        Args:
            owner_id: Owning account id

        Returns:
            Records in ACTIVE or PENDING_CANCELLATION status
        """
        try:
            rows = self.db.query(UserSubscription).filter(
                UserSubscription.user_id == owner_id,
                UserSubscription.status.in_(CANDIDATE_STATUSES),
            ).all()
        except SQLAlchemyError as exc:
            logger.error("Subscription query failed", extra={
                "owner_id": owner_id, "error": str(exc),
            })
            raise EntitlementFetchError(owner_id, "Subscription query failed", cause=exc)

        return _to_records(owner_id, rows)

    def fetch_cancelled_subscriptions(self, owner_id: str) -> List[EntitlementRecord]:
        """
        Get cancelled subscriptions for the anti-abuse check.

        Args:
            owner_id: Owning account id

        Returns:
            Records in CANCELLED status, newest first
        """
        try:
            rows = self.db.query(UserSubscription).filter(
                UserSubscription.user_id == owner_id,
                UserSubscription.status == SubscriptionStatus.CANCELLED.value,
            ).order_by(UserSubscription.created_at.desc()).all()
        except SQLAlchemyError as exc:
            logger.error("Cancelled subscription query failed", extra={
                "owner_id": owner_id, "error": str(exc),
            })
            raise EntitlementFetchError(
                owner_id, "Cancelled subscription query failed", cause=exc
            )

        return _to_records(owner_id, rows)
