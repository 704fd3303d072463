"""
Store receipt webhook.

Called by the app after a successful in-app purchase. Records the receipt
and recomputes the user's premium flag.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda_access.database.session import get_db_session
from agenda_access.entitlements.errors import (
    EntitlementFetchError,
    InvalidProductError,
    PrincipalNotFoundError,
)
from agenda_access.entitlements.loader import get_access_policy
from agenda_access.services.store_receipt_service import (
    ReceiptPayload,
    StoreReceiptService,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


class StoreReceiptRequest(BaseModel):
    """Purchase notification body."""
    user_id: str = Field(..., description="Profile id of the purchaser")
    product_id: str = Field(..., description="Store product identifier")
    transaction_id: str = Field(..., description="Store transaction id")
    original_transaction_id: Optional[str] = None
    purchase_date: Optional[datetime] = None
    expiration_date: Optional[datetime] = None
    environment: str = "Production"
    jws_token: Optional[str] = None


class StoreReceiptResponse(BaseModel):
    success: bool
    message: str
    is_premium: bool = False


def get_store_receipt_service(db: Session = Depends(get_db_session)) -> StoreReceiptService:
    return StoreReceiptService(db, get_access_policy())


@router.post("/store-receipt", response_model=StoreReceiptResponse)
async def store_receipt_webhook(
    body: StoreReceiptRequest,
    service: StoreReceiptService = Depends(get_store_receipt_service),
) -> StoreReceiptResponse:
    """Validate a purchase and update the premium flag."""
    payload = ReceiptPayload(
        user_id=body.user_id,
        product_id=body.product_id,
        transaction_id=body.transaction_id,
        original_transaction_id=body.original_transaction_id,
        purchase_date=body.purchase_date,
        expiration_date=body.expiration_date,
        environment=body.environment,
        jws_token=body.jws_token,
    )

    try:
        result = service.process_receipt(payload)
    except InvalidProductError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid product_id", "product_id": e.product_id}
        )
    except PrincipalNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {body.user_id} not found"
        )
    except (EntitlementFetchError, SQLAlchemyError) as e:
        service.db.rollback()
        logger.error("Store receipt processing failed", extra={
            "user_id": body.user_id,
            "transaction_id": body.transaction_id,
            "error": str(e),
        })
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Receipt validation failed", "message": str(e)}
        )

    return StoreReceiptResponse(
        success=result.success,
        message=result.message,
        is_premium=result.is_premium,
    )
