"""
Payment Service

Creates gift purchase charges with the payment gateway, at most once per
idempotency key.

Flow for create_charge():
1. Key already reserved -> return that transaction untouched
2. Lock the gift row, check it is purchasable
3. Compute fees, insert a pending transaction with the fee snapshot
4. Reserve the idempotency key in the same DB transaction, then commit
5. Call the gateway (outside any DB transaction); store the gateway id and
   payload, status stays pending until the webhook
6. Gateway error -> mark failed and re-raise; timeout -> leave pending and
   re-raise
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..db.models import TransactionModel
from ..db.repository import get_gift_item, get_registry_config, get_transaction
from ..exceptions import (
    GatewayError,
    GatewayTimeoutError,
    GiftNotFoundError,
    GiftUnavailableError,
    InvalidPaymentRequestError,
    RegistryNotConfiguredError,
)
from ..models.fees import FeeConfig
from ..models.transactions import Transaction
from . import fee_calculator, idempotency_service
from .gateway_client import CreditCardCharge, GatewayClient, PixCharge
from .transaction_service import (
    build_pending_transaction,
    mark_failed,
    merge_gateway_response,
    to_transaction,
)

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("credit_card", "pix")


async def load_fee_config(
    db: AsyncSession,
    tenant_id: str,
    fee_percentage: Optional[float] = None
) -> FeeConfig:
    """
    Fee settings for a tenant right now.

    Combines the platform fee percentage with the tenant's fee modality.
    A tenant without registry config is an error, never a silent default.
    """
    config = await get_registry_config(db, tenant_id)
    if config is None:
        raise RegistryNotConfiguredError(tenant_id)

    return FeeConfig(
        fee_percentage=settings.platform_fee_percentage if fee_percentage is None else fee_percentage,
        modality=config.fee_modality,
    )


async def find_existing_charge(db: AsyncSession, idempotency_key: str) -> Optional[Transaction]:
    """Transaction already created under this (live) idempotency key, if any."""
    transaction_id = await idempotency_service.find_transaction_id(db, idempotency_key)
    if transaction_id is None:
        return None
    db_transaction = await get_transaction(db, transaction_id)
    return to_transaction(db_transaction) if db_transaction else None


def _validate_request(payment_method: str, idempotency_key: str, card_token: Optional[str]) -> None:
    if not idempotency_service.is_valid_key_format(idempotency_key):
        raise InvalidPaymentRequestError("Invalid idempotency key", {"max_length": idempotency_service.MAX_KEY_LENGTH})
    if payment_method not in PAYMENT_METHODS:
        raise InvalidPaymentRequestError(
            f"Invalid payment method: {payment_method}",
            {"allowed": list(PAYMENT_METHODS)}
        )
    if payment_method == "credit_card" and not card_token:
        raise InvalidPaymentRequestError("card_token is required for credit card payments")


async def _reserve_pending_transaction(
    db: AsyncSession,
    gift_item_id: str,
    payment_method: str,
    idempotency_key: str,
    fee_config: FeeConfig,
    tenant_id: Optional[str]
) -> tuple[TransactionModel, bool]:
    """
    Steps 1-4 in a single DB transaction.

    Returns:
        (transaction row, created) where created is False when the key was
        already taken and the row is the one it points at
    """
    try:
        existing_id = await idempotency_service.find_transaction_id(db, idempotency_key)
        if existing_id:
            existing = await get_transaction(db, existing_id)
            await db.commit()
            logger.info(
                f"Returning existing transaction for idempotency key: {existing_id}"
            )
            return existing, False

        gift = await get_gift_item(db, gift_item_id, tenant_id=tenant_id, lock=True)
        if gift is None:
            raise GiftNotFoundError(gift_item_id)
        if not gift.is_available():
            raise GiftUnavailableError(gift_item_id)

        amounts = fee_calculator.calculate(gift.price, fee_config.fee_percentage, fee_config.modality)

        db_transaction = build_pending_transaction(
            tenant_id=gift.tenant_id,
            gift_item_id=gift.id,
            unit_price=gift.price,
            fee_config=fee_config,
            amounts=amounts,
            payment_method=payment_method,
        )
        db.add(db_transaction)
        await db.flush()

        reservation = await idempotency_service.reserve(
            db,
            idempotency_key,
            db_transaction.internal_id,
            {"transaction_id": db_transaction.internal_id, "status": "pending"},
        )
        if not reservation.created:
            # Lost the race: discard our row, hand back the winner's
            await db.rollback()
            winner = await get_transaction(db, reservation.transaction_id)
            await db.commit()
            return winner, False

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"Transaction created: {db_transaction.internal_id}, gift={gift_item_id}, "
        f"method={payment_method}, gross={amounts.gross_amount}, modality={fee_config.modality.value}"
    )
    return db_transaction, True


async def _call_gateway(
    gateway: GatewayClient,
    db_transaction: TransactionModel,
    payment_method: str,
    payer_data: Dict[str, Any],
    card_token: Optional[str]
) -> Union[CreditCardCharge, PixCharge]:
    if payment_method == "credit_card":
        return await gateway.create_credit_card_charge(
            amount_cents=db_transaction.gross_amount,
            card_token=card_token,
            billing_data=payer_data,
            reference_id=db_transaction.internal_id,
        )
    return await gateway.create_pix_charge(
        amount_cents=db_transaction.gross_amount,
        payer_data=payer_data,
        reference_id=db_transaction.internal_id,
    )


async def _record_gateway_acceptance(
    db: AsyncSession,
    internal_id: str,
    charge: Union[CreditCardCharge, PixCharge]
) -> TransactionModel:
    """Store gateway id and payload. Status is left as it is."""
    try:
        db_transaction = await get_transaction(db, internal_id, lock=True)
        db_transaction.gateway_transaction_id = charge.gateway_transaction_id
        extra: Dict[str, Any] = {"charge": charge.raw}
        if isinstance(charge, PixCharge):
            extra.update({
                "qr_code": charge.qr_code_image,
                "qr_code_text": charge.qr_code_text,
                "expires_at": charge.expires_at,
            })
        merge_gateway_response(db_transaction, extra)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return db_transaction


async def _record_gateway_failure(db: AsyncSession, internal_id: str, error: GatewayError) -> None:
    try:
        db_transaction = await get_transaction(db, internal_id, lock=True)
        if db_transaction.status == "pending":
            mark_failed(db_transaction, error.message)
            merge_gateway_response(db_transaction, {"error": error.to_dict()})
        await db.commit()
    except Exception:
        await db.rollback()
        raise


async def create_charge(
    db: AsyncSession,
    gateway: GatewayClient,
    gift_item_id: str,
    payment_method: str,
    payer_data: Dict[str, Any],
    idempotency_key: str,
    fee_config: FeeConfig,
    card_token: Optional[str] = None,
    tenant_id: Optional[str] = None
) -> Transaction:
    """
    Create a charge for one gift, at most once per idempotency key.

    Args:
        db: Database session
        gateway: Gateway client
        gift_item_id: Gift being purchased
        payment_method: "credit_card" or "pix"
        payer_data: Payer / billing data forwarded to the gateway
        idempotency_key: Client-generated key (1-100 chars)
        fee_config: Fee percentage and modality in force for this call
        card_token: Gateway card token, required for credit card
        tenant_id: When given, the gift must belong to this tenant

    Returns:
        The transaction (pending, or the existing one for a reused key)

    Raises:
        InvalidPaymentRequestError: bad method, key or missing card token
        GiftNotFoundError / GiftUnavailableError: before any gateway call
        GatewayError: charge failed, transaction marked failed
        GatewayTimeoutError: outcome unknown, transaction left pending
    """
    _validate_request(payment_method, idempotency_key, card_token)

    db_transaction, created = await _reserve_pending_transaction(
        db, gift_item_id, payment_method, idempotency_key, fee_config, tenant_id
    )
    if not created:
        return to_transaction(db_transaction)

    internal_id = db_transaction.internal_id
    try:
        charge = await asyncio.wait_for(
            _call_gateway(gateway, db_transaction, payment_method, payer_data, card_token),
            timeout=settings.gateway_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.error(f"Gateway timed out for transaction {internal_id}, leaving pending")
        raise GatewayTimeoutError(
            "Payment gateway did not respond in time",
            {"internal_id": internal_id}
        ) from None
    except GatewayTimeoutError:
        logger.error(f"Gateway reported timeout for transaction {internal_id}, leaving pending")
        raise
    except GatewayError as e:
        logger.error(f"Gateway charge failed for transaction {internal_id}: {e.error_code} - {e.message}")
        await _record_gateway_failure(db, internal_id, e)
        raise

    db_transaction = await _record_gateway_acceptance(db, internal_id, charge)
    logger.info(
        f"Gateway accepted charge: {internal_id}, gateway_id={charge.gateway_transaction_id}, "
        f"method={payment_method}"
    )
    return to_transaction(db_transaction)
