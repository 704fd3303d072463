"""
Subscription model for backend-billed (web checkout) subscriptions.

CRITICAL: Rows are written by the billing webhook only.
The access engine reads them and never updates status locally.
"""

from sqlalchemy import Column, DateTime, Enum, Index, Integer, String

from agenda_access.db_base import Base
from agenda_access.entitlements.models import (
    EntitlementRecord,
    SubscriptionStatus,
    ensure_utc,
)
from agenda_access.models.base import TimestampMixin, generate_uuid


class UserSubscription(Base, TimestampMixin):
    """
    One subscription row in ``user_subscriptions``.

    A user can accumulate several rows over time (upgrades, comped grants,
    re-subscriptions); the resolver picks the best one.
    """

    __tablename__ = "user_subscriptions"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )

    user_id = Column(
        String(36),
        nullable=False,
        index=True,
        comment="Owning account (clinic owner)"
    )

    plan_id = Column(
        String(255),
        nullable=True,
        comment="Free-form plan identifier from the billing system"
    )

    status = Column(
        Enum(
            *[s.value for s in SubscriptionStatus],
            name="user_subscription_status"
        ),
        default=SubscriptionStatus.ACTIVE.value,
        nullable=False,
        index=True,
        comment="Current subscription status"
    )

    discount_percentage = Column(
        Integer,
        nullable=True,
        comment="0-100; 100 marks a courtesy grant"
    )

    # Billing dates
    current_period_start = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Start of current billing period"
    )
    current_period_end = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="End of current billing period"
    )
    next_billing_date = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Next charge; access boundary for pending cancellations"
    )

    __table_args__ = (
        Index("ix_user_subscriptions_user_status", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<UserSubscription(id={self.id}, user_id={self.user_id}, status={self.status})>"

    def to_domain(self) -> EntitlementRecord:
        """Convert to the immutable record the access engine evaluates."""
        return EntitlementRecord(
            id=self.id,
            user_id=self.user_id,
            plan_id=self.plan_id,
            status=SubscriptionStatus(self.status),
            discount_percentage=self.discount_percentage,
            current_period_start=ensure_utc(self.current_period_start),
            current_period_end=ensure_utc(self.current_period_end),
            next_billing_date=ensure_utc(self.next_billing_date),
            created_at=ensure_utc(self.created_at),
        )
