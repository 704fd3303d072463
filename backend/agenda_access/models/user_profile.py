"""
User profile model.

A profile is either a clinic owner or a staff member. Staff members point at
their owner through ``clinic_id`` and inherit the owner's subscription.

``is_premium`` is set out-of-band by the store receipt webhook.
``trial_end_date`` holds the raw trial-end metadata string written by the
signup flow; its format has changed over time, so it is kept as text.
"""

from sqlalchemy import Boolean, Column, Enum, String, Text

from agenda_access.db_base import Base
from agenda_access.entitlements.models import (
    AccountInfo,
    Principal,
    PrincipalRole,
    ensure_utc,
)
from agenda_access.models.base import TimestampMixin, generate_uuid


class UserProfile(Base, TimestampMixin):
    """Row in ``user_profiles``."""

    __tablename__ = "user_profiles"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )

    role = Column(
        Enum(*[r.value for r in PrincipalRole], name="user_role"),
        nullable=False,
        default=PrincipalRole.OWNER.value,
        comment="owner or staff"
    )

    clinic_id = Column(
        String(36),
        nullable=True,
        index=True,
        comment="Owner profile id for staff members"
    )

    full_name = Column(String(255), nullable=True)

    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="Inactive staff members lose access immediately"
    )

    is_premium = Column(
        Boolean,
        nullable=False,
        default=False,
        comment="Set by the store receipt webhook"
    )

    trial_end_date = Column(
        Text,
        nullable=True,
        comment="Raw trial-end metadata (RFC3339 string)"
    )

    def __repr__(self) -> str:
        return f"<UserProfile(id={self.id}, role={self.role}, is_active={self.is_active})>"

    def to_principal(self) -> Principal:
        return Principal(
            id=self.id,
            role=PrincipalRole(self.role),
            is_active=bool(self.is_active),
            clinic_id=self.clinic_id,
        )

    def to_account(self) -> AccountInfo:
        return AccountInfo(
            user_id=self.id,
            created_at=ensure_utc(self.created_at),
            trial_end_metadata=self.trial_end_date,
            is_premium=bool(self.is_premium),
        )
