"""
Store receipt service - records in-app purchases and maintains is_premium.

Flow for one purchase notification:
1. Reject products that are not in the store product table
2. Upsert the receipt row keyed by transaction_id (renewals are idempotent)
3. Recompute the profile's is_premium flag from current receipts

The flag is derived state. It is always recomputed from the receipts, never
set blindly, so revoked or expired purchases clear it on the next receipt.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from agenda_access.entitlements.errors import (
    InvalidProductError,
    PrincipalNotFoundError,
)
from agenda_access.entitlements.loader import get_access_policy
from agenda_access.entitlements.models import ensure_utc
from agenda_access.entitlements.policy import AccessPolicy
from agenda_access.entitlements.resolver import resolve_store_entitlement
from agenda_access.models.store_receipt import ReceiptStatus
from agenda_access.repositories.profile_repository import ProfileRepository
from agenda_access.repositories.store_receipt_repository import StoreReceiptRepository

logger = logging.getLogger(__name__)


@dataclass
class ReceiptPayload:
    """One purchase notification from the app."""
    user_id: str
    product_id: str
    transaction_id: str
    original_transaction_id: Optional[str] = None
    purchase_date: Optional[datetime] = None
    expiration_date: Optional[datetime] = None
    environment: str = "Production"
    jws_token: Optional[str] = None


@dataclass
class ReceiptResult:
    """Result of processing a receipt."""
    success: bool
    message: str
    is_premium: bool = False
    receipt_id: Optional[str] = None


class StoreReceiptService:
    """Processes store receipts for a single database session."""

    def __init__(self, db_session: Session, policy: Optional[AccessPolicy] = None):
        self.db = db_session
        self.policy = policy or get_access_policy()
        self.receipts = StoreReceiptRepository(db_session)
        self.profiles = ProfileRepository(db_session)

    def process_receipt(
        self,
        payload: ReceiptPayload,
        now: Optional[datetime] = None,
    ) -> ReceiptResult:
        """
        Validate and store a purchase, then refresh the premium flag.

        Raises:
            InvalidProductError: Product is not sold
            PrincipalNotFoundError: No profile for payload.user_id
        """
        now = ensure_utc(now) if now else datetime.now(timezone.utc)

        if not self.policy.is_known_product(payload.product_id):
            logger.error("Invalid store product", extra={
                "user_id": payload.user_id,
                "product_id": payload.product_id,
                "transaction_id": payload.transaction_id,
            })
            raise InvalidProductError(payload.product_id)

        if self.profiles.get_by_id(payload.user_id) is None:
            raise PrincipalNotFoundError(payload.user_id)

        receipt = self.receipts.upsert(
            payload.user_id,
            transaction_id=payload.transaction_id,
            original_transaction_id=payload.original_transaction_id,
            product_id=payload.product_id,
            purchase_date=payload.purchase_date or now,
            expiration_date=payload.expiration_date,
            environment=payload.environment,
            jws_token=payload.jws_token,
            status=ReceiptStatus.ACTIVE,
        )

        is_premium = self.recompute_premium_flag(payload.user_id, now)
        self.db.commit()

        logger.info("Store receipt processed", extra={
            "user_id": payload.user_id,
            "product_id": payload.product_id,
            "transaction_id": payload.transaction_id,
            "is_premium": is_premium,
        })

        return ReceiptResult(
            success=True,
            message="Purchase validated successfully",
            is_premium=is_premium,
            receipt_id=receipt.id,
        )

    def recompute_premium_flag(self, user_id: str, now: datetime) -> bool:
        """
        Set is_premium from the user's current receipts.

        Returns:
            The new flag value
        """
        receipts = self.receipts.fetch_active_receipts(user_id)
        entitlement = resolve_store_entitlement(receipts, ensure_utc(now), self.policy)
        is_premium = entitlement is not None

        if not self.profiles.set_premium(user_id, is_premium):
            raise PrincipalNotFoundError(user_id)
        return is_premium
