"""
Transactions API Endpoints

Status polling for gift purchase transactions (e.g. while a PIX QR code
is waiting to be paid).
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any
import logging

from ..db.init_db import get_db
from ..exceptions import TransactionNotFoundError
from ..services.transaction_service import get_transaction_by_id

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{internal_id}")
async def get_transaction_endpoint(
    internal_id: str,
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """
    Get transaction details.

    Path Parameters:
        internal_id: Transaction identifier (TXN-...)

    Example:
        GET /api/transactions/TXN-8F3K2L9QZ0A1B2C3
    """
    logger.debug(f"Retrieving transaction: {internal_id}")

    transaction = await get_transaction_by_id(db, internal_id)
    if not transaction:
        raise TransactionNotFoundError(internal_id)

    return {
        "transaction_id": transaction.internal_id,
        "gift_item_id": transaction.gift_item_id,
        "status": transaction.status,
        "payment_method": transaction.payment_method,
        "fee_modality": transaction.fee_modality.value,
        "original_unit_price": transaction.original_unit_price,
        "gross_amount": transaction.gross_amount,
        "fee_amount": transaction.fee_amount,
        "net_amount_couple": transaction.net_amount_couple,
        "platform_amount": transaction.platform_amount,
        "error_message": transaction.error_message,
        "confirmed_at": transaction.confirmed_at.isoformat() if transaction.confirmed_at else None,
        "created_at": transaction.created_at.isoformat(),
    }
