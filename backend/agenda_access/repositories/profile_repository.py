"""
Profile repository — principals and account facts.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda_access.entitlements.errors import EntitlementFetchError
from agenda_access.entitlements.models import AccountInfo, Principal
from agenda_access.models.user_profile import UserProfile

logger = logging.getLogger(__name__)


class ProfileRepository:
    """Implements the AccountFetcher contract of AccessEvaluationService."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def get_by_id(self, user_id: str) -> Optional[UserProfile]:
        try:
            return self.db.query(UserProfile).filter(
                UserProfile.id == user_id
            ).first()
        except SQLAlchemyError as exc:
            logger.error("Profile query failed", extra={
                "user_id": user_id, "error": str(exc),
            })
            raise EntitlementFetchError(user_id, "Profile query failed", cause=exc)

    def get_principal(self, user_id: str) -> Optional[Principal]:
        profile = self.get_by_id(user_id)
        return profile.to_principal() if profile else None

    def get_account(self, user_id: str) -> Optional[AccountInfo]:
        profile = self.get_by_id(user_id)
        return profile.to_account() if profile else None

    def set_premium(self, user_id: str, is_premium: bool) -> bool:
        """Update the out-of-band premium flag. Returns False if no profile."""
        profile = self.get_by_id(user_id)
        if profile is None:
            return False
        profile.is_premium = is_premium
        self.db.flush()
        return True
