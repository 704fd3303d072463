"""
Access API routes.

GET /api/access/{user_id} evaluates access for one principal.

Fetch failures are reported as 503 with a machine-readable body. They are
never reported as "no access".
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from agenda_access.database.session import get_db_session
from agenda_access.entitlements.errors import (
    EntitlementFetchError,
    PrincipalNotFoundError,
)
from agenda_access.entitlements.loader import get_access_policy
from agenda_access.entitlements.models import AccessState
from agenda_access.services.access_manager import AccessManager, get_access_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/access", tags=["access"])


class AccessStateResponse(BaseModel):
    """Access decision for a principal."""
    user_id: str
    has_access: bool
    has_active_subscription: bool
    is_in_trial: bool
    is_courtesy: bool
    plan_tier: str
    plan_name: str
    expiration_date: Optional[str]
    source: str
    show_paywall: bool

    @classmethod
    def from_state(cls, user_id: str, state: AccessState) -> "AccessStateResponse":
        return cls(
            user_id=user_id,
            show_paywall=not state.has_access,
            **state.to_dict(),
        )


def get_manager(db: Session = Depends(get_db_session)) -> AccessManager:
    """Per-request AccessManager bound to the request's session."""
    return get_access_manager(db, get_access_policy())


@router.get("/{user_id}", response_model=AccessStateResponse)
async def get_access(
    user_id: str,
    manager: AccessManager = Depends(get_manager),
) -> AccessStateResponse:
    """Evaluate access for ``user_id`` at the current time."""
    try:
        state = manager.refresh(user_id)
    except PrincipalNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found"
        )
    except EntitlementFetchError as e:
        logger.error("Access evaluation failed", extra={
            "user_id": user_id,
            "error_code": e.error_code,
            "detail": e.detail,
        })
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=e.to_dict()
        )

    return AccessStateResponse.from_state(user_id, state)
