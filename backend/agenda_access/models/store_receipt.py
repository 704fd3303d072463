"""
Store receipt model — audit trail of in-app purchase transactions.

One row per store transaction. Renewals arrive as new transactions sharing
the same ``original_transaction_id``.
"""

from sqlalchemy import Column, DateTime, String, Text, UniqueConstraint

from agenda_access.db_base import Base
from agenda_access.entitlements.models import StoreReceipt as StoreReceiptRecord
from agenda_access.entitlements.models import ensure_utc
from agenda_access.models.base import TimestampMixin, generate_uuid


class ReceiptStatus:
    """Receipt status values."""
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"


class StoreReceipt(Base, TimestampMixin):
    """Row in ``store_receipts``."""

    __tablename__ = "store_receipts"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )

    user_id = Column(
        String(36),
        nullable=False,
        index=True,
    )

    transaction_id = Column(
        String(100),
        nullable=False,
        comment="Store transaction id"
    )
    original_transaction_id = Column(
        String(100),
        nullable=True,
        index=True,
        comment="First transaction of the subscription chain"
    )
    product_id = Column(String(255), nullable=False)

    purchase_date = Column(DateTime(timezone=True), nullable=False)
    expiration_date = Column(DateTime(timezone=True), nullable=True)

    jws_token = Column(Text, nullable=True, comment="Signed transaction payload")
    environment = Column(String(32), nullable=False, default="Production")
    status = Column(String(32), nullable=False, default=ReceiptStatus.ACTIVE, index=True)

    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_store_receipts_transaction"),
    )

    def __repr__(self) -> str:
        return (
            f"<StoreReceipt(transaction_id={self.transaction_id}, "
            f"product_id={self.product_id}, status={self.status})>"
        )

    def to_domain(self) -> StoreReceiptRecord:
        return StoreReceiptRecord(
            transaction_id=self.transaction_id,
            original_transaction_id=self.original_transaction_id,
            product_id=self.product_id,
            purchase_date=ensure_utc(self.purchase_date),
            expiration_date=ensure_utc(self.expiration_date),
            status=self.status,
        )
