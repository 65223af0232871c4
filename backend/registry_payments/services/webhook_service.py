"""
Webhook Service

Reconciles payment gateway notifications with local transactions.

Guarantees:
- Invalid signature / payload is rejected before any transaction lookup
- Unknown gateway ids (e.g. gateway test pings) are logged and ignored
- The transaction row is locked before its status is read, so concurrent
  deliveries of the same notification serialize; only the first one sees
  a pending transaction
- Confirmation, inventory decrement and audit update commit together; on
  any failure everything rolls back and a redelivery takes the same path
"""
import json
import logging
from enum import Enum
from typing import Any, Dict, Literal, Optional, Union

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.models import TransactionModel
from ..db.repository import get_transaction, get_transaction_by_gateway_id
from ..exceptions import InvalidPayloadError, InvalidSignatureError, InventoryExhaustedError, TransactionNotFoundError
from ..models.transactions import TERMINAL_STATUSES
from ..models.webhooks import WebhookPayload
from . import inventory_service
from .signature_service import verify_webhook_signature
from .transaction_service import mark_confirmed, mark_failed, merge_gateway_response

logger = logging.getLogger(__name__)

DEFAULT_DECLINE_MESSAGE = "Payment declined by the gateway"

CONFIRM_STATUSES = frozenset({"PAID", "AUTHORIZED"})
FAIL_STATUSES = frozenset({"DECLINED", "CANCELED", "CANCELLED", "ERROR"})

WebhookAction = Literal["confirm", "fail"]


class WebhookOutcome(str, Enum):
    """What a webhook delivery did. Every outcome is answered with 204."""
    CONFIRMED = "confirmed"
    FAILED = "failed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    UNKNOWN_TRANSACTION = "unknown_transaction"
    INVENTORY_EXHAUSTED = "inventory_exhausted"


# ============================================================================
# Parsing
# ============================================================================

def parse_webhook_payload(raw_body: Union[bytes, str]) -> WebhookPayload:
    """
    Decode and validate the webhook body.

    Raises:
        InvalidPayloadError: not JSON, not an object, or missing
            event_type / data.id / data.status
    """
    try:
        decoded = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError):
        raise InvalidPayloadError("Webhook body is not valid JSON") from None

    if not isinstance(decoded, dict):
        raise InvalidPayloadError("Webhook body must be a JSON object")

    try:
        return WebhookPayload.model_validate(decoded)
    except ValidationError as e:
        fields = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise InvalidPayloadError("Webhook payload is missing required fields", {"fields": fields}) from None


def resolve_action(payload: WebhookPayload) -> Optional[WebhookAction]:
    """
    Map gateway status vocabulary to a local action.

    data.status wins; the CHARGE.<STATUS> event type is the fallback.
    None means the notification does not settle the payment.
    """
    candidates = [payload.data.status]
    if "." in payload.event_type:
        candidates.append(payload.event_type.rsplit(".", 1)[1])

    for candidate in candidates:
        status = candidate.strip().upper()
        if status in CONFIRM_STATUSES:
            return "confirm"
        if status in FAIL_STATUSES:
            return "fail"
    return None


# ============================================================================
# State changes (inside the caller's DB transaction)
# ============================================================================

async def _apply_confirmation(
    db: AsyncSession,
    db_transaction: TransactionModel,
    audit: Dict[str, Any]
) -> WebhookOutcome:
    try:
        gift = await inventory_service.decrement_gift_quantity(db, db_transaction.gift_item_id)
    except InventoryExhaustedError:
        logger.error(
            f"Payment confirmed for sold-out gift {db_transaction.gift_item_id}; "
            f"transaction {db_transaction.internal_id} left pending for manual review"
        )
        merge_gateway_response(db_transaction, {"unapplied_confirmation": audit})
        return WebhookOutcome.INVENTORY_EXHAUSTED

    mark_confirmed(db_transaction)
    merge_gateway_response(db_transaction, {"webhook_data": audit})

    logger.info(
        f"Payment confirmed: {db_transaction.internal_id}, gift={gift.id}, "
        f"available={gift.quantity_available}, sold={gift.quantity_sold}"
    )
    return WebhookOutcome.CONFIRMED


def _apply_failure(db_transaction: TransactionModel, error_message: Optional[str], audit: Dict[str, Any]) -> WebhookOutcome:
    message = error_message or DEFAULT_DECLINE_MESSAGE
    mark_failed(db_transaction, message)
    merge_gateway_response(db_transaction, {"webhook_data": audit})
    logger.info(f"Payment failed via webhook: {db_transaction.internal_id}, error={message}")
    return WebhookOutcome.FAILED


# ============================================================================
# Entry points
# ============================================================================

async def reconcile(db: AsyncSession, payload: WebhookPayload) -> WebhookOutcome:
    """
    Apply a verified, parsed notification to the matching transaction.

    Args:
        db: Database session (no open transaction)
        payload: Parsed webhook body

    Returns:
        WebhookOutcome describing what happened
    """
    gateway_id = payload.data.id
    action = resolve_action(payload)

    try:
        db_transaction = await get_transaction_by_gateway_id(db, gateway_id, lock=True)

        if db_transaction is None:
            await db.rollback()
            logger.warning(f"Transaction not found for webhook: gateway_id={gateway_id}")
            return WebhookOutcome.UNKNOWN_TRANSACTION

        # Rollback expires the row, so read what the log lines need first
        internal_id = db_transaction.internal_id
        current_status = db_transaction.status

        if current_status in TERMINAL_STATUSES:
            await db.rollback()
            logger.info(
                f"Webhook already processed (idempotent): {internal_id}, status={current_status}"
            )
            return WebhookOutcome.DUPLICATE

        if action is None:
            await db.rollback()
            logger.info(
                f"Webhook status not actionable: {internal_id}, "
                f"event_type={payload.event_type}, status={payload.data.status}"
            )
            return WebhookOutcome.IGNORED

        audit = payload.data.model_dump()
        if action == "confirm":
            outcome = await _apply_confirmation(db, db_transaction, audit)
        else:
            outcome = _apply_failure(db_transaction, payload.data.error_message, audit)

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return outcome


async def handle_webhook(
    db: AsyncSession,
    raw_body: bytes,
    signature: Optional[str],
    shared_secret: Optional[str],
    source_ip: Optional[str] = None
) -> WebhookOutcome:
    """
    Verify, parse and reconcile one gateway notification.

    Raises:
        InvalidSignatureError: signature missing or wrong (nothing read or written)
        InvalidPayloadError: body malformed (nothing read or written)
    """
    if not verify_webhook_signature(raw_body, signature, shared_secret, source_ip):
        raise InvalidSignatureError()

    payload = parse_webhook_payload(raw_body)

    logger.info(
        f"Webhook received: event_type={payload.event_type}, "
        f"charge_id={payload.data.id}, status={payload.data.status}"
    )

    return await reconcile(db, payload)


async def confirm_transaction(db: AsyncSession, internal_id: str) -> WebhookOutcome:
    """
    Confirm a pending transaction by internal id (development shortcut).

    Takes the same locks and writes as a confirming webhook.
    """
    try:
        db_transaction = await get_transaction(db, internal_id, lock=True)
        if db_transaction is None:
            raise TransactionNotFoundError(internal_id)

        if db_transaction.status in TERMINAL_STATUSES:
            await db.rollback()
            return WebhookOutcome.DUPLICATE

        outcome = await _apply_confirmation(db, db_transaction, {"source": "dev_confirm"})
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return outcome
