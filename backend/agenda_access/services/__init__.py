"""Application services built on the access evaluation engine."""

from agenda_access.services.access_manager import AccessManager, get_access_manager
from agenda_access.services.store_receipt_service import (
    ReceiptPayload,
    ReceiptResult,
    StoreReceiptService,
)

__all__ = [
    "AccessManager",
    "get_access_manager",
    "ReceiptPayload",
    "ReceiptResult",
    "StoreReceiptService",
]
