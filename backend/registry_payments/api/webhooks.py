"""
Payment Gateway Webhook Endpoint

POST /webhooks/payment-gateway

- 204 No Content: processed, duplicate, or not ours (test pings)
- 400 {"error": str}: invalid signature or malformed payload
- 500 {"error": str}: unexpected failure; nothing committed, the gateway
  redelivers
"""
from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from ..config import settings
from ..db.init_db import get_db
from ..exceptions import InvalidPayloadError, InvalidSignatureError
from ..services.webhook_service import handle_webhook

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/payment-gateway", status_code=204)
async def payment_gateway_webhook(
    request: Request,
    x_gateway_signature: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db)
) -> Response:
    """
    Receive a payment status notification from the gateway.

    Headers:
        X-Gateway-Signature: hex HMAC-SHA256 of the raw body

    Body:
        {"event_type": str, "data": {"id": str, "status": str, "error_message"?: str, "amount"?: int}}
    """
    raw_body = await request.body()
    source_ip = request.client.host if request.client else None

    try:
        outcome = await handle_webhook(
            db,
            raw_body,
            x_gateway_signature,
            settings.payment_webhook_secret,
            source_ip=source_ip,
        )
    except (InvalidSignatureError, InvalidPayloadError) as e:
        logger.warning(f"Webhook rejected from {source_ip}: {e.error_code}")
        return JSONResponse(status_code=400, content={"error": e.message})
    except Exception:
        logger.error("Webhook processing error", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Error processing webhook"})

    logger.debug(f"Webhook from {source_ip} handled: {outcome.value}")
    return Response(status_code=204)
