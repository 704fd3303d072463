"""
Repositories for access-engine data.

Each repository implements one collaborator contract of
AccessEvaluationService on top of a SQLAlchemy session.
"""

from agenda_access.repositories.subscription_repository import SubscriptionRepository
from agenda_access.repositories.profile_repository import ProfileRepository
from agenda_access.repositories.store_receipt_repository import StoreReceiptRepository

__all__ = [
    "SubscriptionRepository",
    "ProfileRepository",
    "StoreReceiptRepository",
]
