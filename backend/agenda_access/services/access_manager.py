"""
Access manager - stateful holder of the last access decision.

The evaluation engine is stateless; UI-facing callers need "the current
state" plus a refresh trigger. AccessManager keeps that state and replaces it
wholesale on every successful refresh. A failed refresh leaves the previous
state untouched and re-raises, so callers never see a fetch failure as a
paywall.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from agenda_access.entitlements.errors import (
    EntitlementFetchError,
    PrincipalNotFoundError,
)
from agenda_access.entitlements.loader import get_access_policy
from agenda_access.entitlements.models import AccessState
from agenda_access.entitlements.policy import AccessPolicy
from agenda_access.entitlements.service import AccessEvaluationService
from agenda_access.repositories.profile_repository import ProfileRepository
from agenda_access.repositories.store_receipt_repository import StoreReceiptRepository
from agenda_access.repositories.subscription_repository import SubscriptionRepository

logger = logging.getLogger(__name__)


class AccessManager:
    """
    Holds the current AccessState for one principal.

    Starts with no access until the first refresh succeeds.
    """

    def __init__(self, service: AccessEvaluationService, profiles: ProfileRepository):
        self.service = service
        self.profiles = profiles
        self.current_state: AccessState = AccessState.no_access()

    @property
    def should_show_paywall(self) -> bool:
        return not self.current_state.has_access

    def refresh(self, principal_id: str, now: Optional[datetime] = None) -> AccessState:
        """
        Re-evaluate access for a principal.

        Args:
            principal_id: Profile id of the requesting user
            now: Evaluation instant (defaults to the current UTC time)

        Returns:
            The new current AccessState

        Raises:
            PrincipalNotFoundError: If no profile exists
            EntitlementFetchError: If any collaborator fetch failed
        """
        if now is None:
            now = datetime.now(timezone.utc)

        principal = self.profiles.get_principal(principal_id)
        if principal is None:
            raise PrincipalNotFoundError(principal_id)

        try:
            state = self.service.evaluate_access(principal, now)
        except EntitlementFetchError:
            logger.warning("Access refresh failed, keeping previous state", extra={
                "principal_id": principal_id,
                "previous_has_access": self.current_state.has_access,
            })
            raise

        self.current_state = state
        return state


def get_access_manager(
    db_session: Session,
    policy: Optional[AccessPolicy] = None,
) -> AccessManager:
    """
    Build an AccessManager wired to the SQLAlchemy repositories.

    Args:
        db_session: SQLAlchemy database session
        policy: Access policy (defaults to config/access_policy.yml)
    """
    profiles = ProfileRepository(db_session)
    service = AccessEvaluationService(
        subscriptions=SubscriptionRepository(db_session),
        accounts=profiles,
        receipts=StoreReceiptRepository(db_session),
        policy=policy or get_access_policy(),
    )
    return AccessManager(service, profiles)
