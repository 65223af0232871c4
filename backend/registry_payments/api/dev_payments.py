"""
Development Payment Endpoints

Lets a developer confirm a pending transaction without a real gateway
callback. Only active when demo_mode is on; answers 404 otherwise.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any
import logging

from ..config import settings
from ..db.init_db import get_db
from ..services.transaction_service import get_transaction_by_id
from ..services.webhook_service import confirm_transaction

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/payments/{internal_id}/confirm")
async def dev_confirm_payment_endpoint(
    internal_id: str,
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """Confirm a pending transaction as if the gateway had reported it paid."""
    if not settings.demo_mode:
        raise HTTPException(status_code=404, detail="Not Found")

    outcome = await confirm_transaction(db, internal_id)
    transaction = await get_transaction_by_id(db, internal_id)

    logger.info(f"Dev confirmation for {internal_id}: {outcome.value}")

    return {
        "success": outcome.value in ("confirmed", "duplicate"),
        "outcome": outcome.value,
        "transaction_id": internal_id,
        "status": transaction.status,
    }
