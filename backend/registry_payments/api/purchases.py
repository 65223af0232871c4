"""
Gift Purchase API Endpoints

Entry point for guests buying a gift from a couple's registry.

Error mapping:
- 404 unknown gift
- 422 gift unavailable, registry not configured, invalid request
- 400 payment declined / gateway error (transaction marked failed)
- 500 gateway timeout or unexpected error (guest should try again)
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any
import logging

from ..db.init_db import get_db
from ..exceptions import GatewayError, GatewayTimeoutError, PaymentDeclinedError
from ..mocks.payment_gateway import get_gateway
from ..models.purchases import PurchaseRequest
from ..models.transactions import Transaction
from ..services.gateway_client import GatewayClient
from ..services.payment_service import create_charge, find_existing_charge, load_fee_config

logger = logging.getLogger(__name__)

router = APIRouter()


def build_purchase_response(transaction: Transaction) -> Dict[str, Any]:
    """Summary returned to the guest; PIX adds the QR code to pay with."""
    data = {
        "transaction_id": transaction.internal_id,
        "status": transaction.status,
        "payment_method": transaction.payment_method,
        "amount": transaction.gross_amount,
    }
    if transaction.payment_method == "pix":
        gateway_response = transaction.gateway_response or {}
        data.update({
            "qr_code": gateway_response.get("qr_code"),
            "qr_code_text": gateway_response.get("qr_code_text"),
            "expires_at": gateway_response.get("expires_at"),
        })
    return data


def _purchase_result(transaction: Transaction) -> Dict[str, Any]:
    message = (
        "PIX QR code generated. Waiting for payment."
        if transaction.payment_method == "pix"
        else "Payment submitted. Waiting for confirmation."
    )
    return {"data": build_purchase_response(transaction), "message": message}


@router.post("/events/{tenant_id}/gifts/{gift_id}/purchase", status_code=201)
async def purchase_gift_endpoint(
    tenant_id: str,
    gift_id: str,
    request: PurchaseRequest,
    db: AsyncSession = Depends(get_db),
    gateway: GatewayClient = Depends(get_gateway)
) -> Dict[str, Any]:
    """
    Initiate a gift purchase.

    Path Parameters:
        tenant_id: Wedding (tenant) identifier
        gift_id: Gift item identifier

    Request Body:
        {
            "payment_method": "credit_card" | "pix",
            "idempotency_key": str,  # 16-100 chars, reused on retries
            "payer": {"name", "email", "document", "phone"?},
            "card_token": str,  # credit card only
            "installments": int,  # 1-12, credit card only
            "billing": {...}  # optional
        }

    Returns:
        {"data": {...transaction summary...}, "message": str}

    Reusing an idempotency key returns the original transaction without
    charging again.
    """
    logger.info(f"Purchase requested: tenant={tenant_id}, gift={gift_id}, method={request.payment_method}")

    existing = await find_existing_charge(db, request.idempotency_key)
    if existing is not None:
        logger.info(f"Replaying purchase for idempotency key: {existing.internal_id}")
        return _purchase_result(existing)

    fee_config = await load_fee_config(db, tenant_id)

    try:
        transaction = await create_charge(
            db,
            gateway,
            gift_item_id=gift_id,
            payment_method=request.payment_method,
            payer_data=request.billing_data(),
            idempotency_key=request.idempotency_key,
            fee_config=fee_config,
            card_token=request.card_token,
            tenant_id=tenant_id,
        )
    except PaymentDeclinedError as e:
        logger.warning(f"Payment declined for gift {gift_id}: {e.message}")
        raise HTTPException(
            status_code=400,
            detail={"error_code": e.error_code, "message": f"Payment declined: {e.message}"}
        )
    except GatewayTimeoutError as e:
        raise HTTPException(
            status_code=500,
            detail={
                "error_code": e.error_code,
                "message": "Unexpected error while processing the payment. Please try again."
            }
        )
    except GatewayError as e:
        raise HTTPException(
            status_code=400,
            detail={"error_code": e.error_code, "message": f"Payment error: {e.message}"}
        )

    return _purchase_result(transaction)
