"""
Store receipt repository.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda_access.entitlements.errors import EntitlementFetchError
from agenda_access.entitlements.models import StoreReceipt as StoreReceiptRecord
from agenda_access.models.store_receipt import ReceiptStatus, StoreReceipt

logger = logging.getLogger(__name__)


class StoreReceiptRepository:
    """Implements the ReceiptFetcher contract of AccessEvaluationService."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def get_by_transaction_id(self, transaction_id: str) -> Optional[StoreReceipt]:
        return self.db.query(StoreReceipt).filter(
            StoreReceipt.transaction_id == transaction_id
        ).first()

    def fetch_active_receipts(self, user_id: str) -> List[StoreReceiptRecord]:
        """
        Receipts in ACTIVE status for a user.

        Expiry is left to the resolver so it can be evaluated against the
        caller's ``now``.
        """
        try:
            rows = self.db.query(StoreReceipt).filter(
                StoreReceipt.user_id == user_id,
                StoreReceipt.status == ReceiptStatus.ACTIVE,
            ).order_by(StoreReceipt.purchase_date.desc()).all()
        except SQLAlchemyError as exc:
            logger.error("Store receipt query failed", extra={
                "user_id": user_id, "error": str(exc),
            })
            raise EntitlementFetchError(user_id, "Store receipt query failed", cause=exc)

        return [row.to_domain() for row in rows]

    def upsert(self, user_id: str, **fields) -> StoreReceipt:
        """Insert or update a receipt keyed by transaction_id."""
        transaction_id = fields["transaction_id"]
        receipt = self.get_by_transaction_id(transaction_id)
        if receipt is None:
            receipt = StoreReceipt(user_id=user_id, **fields)
            self.db.add(receipt)
        else:
            for key, value in fields.items():
                setattr(receipt, key, value)
            receipt.user_id = user_id
        self.db.flush()
        return receipt
