"""
Database models for profiles, subscriptions and store receipts.
"""

from agenda_access.models.base import TimestampMixin
from agenda_access.models.user_profile import UserProfile
from agenda_access.models.subscription import UserSubscription
from agenda_access.models.store_receipt import StoreReceipt, ReceiptStatus

__all__ = [
    "TimestampMixin",
    "UserProfile",
    "UserSubscription",
    "StoreReceipt",
    "ReceiptStatus",
]
