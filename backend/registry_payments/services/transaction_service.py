"""
Transaction Service

Creates, transitions and retrieves gift purchase transactions.

State machine:
    pending --(gateway confirms)--> confirmed   [terminal]
    pending --(gateway declines | gateway call error)--> failed   [terminal]
Nothing re-enters pending.
"""
import json
import secrets
import string
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..db.models import TransactionModel, utcnow
from ..db.repository import get_transaction
from ..exceptions import IllegalTransitionError
from ..models.fees import FeeConfig, PaymentAmounts
from ..models.transactions import Transaction, TERMINAL_STATUSES

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_uppercase + string.digits


def generate_internal_id() -> str:
    """Caller-facing id, e.g. TXN-8F3K2L9QZ0A1B2C3."""
    return "TXN-" + "".join(secrets.choice(_ID_ALPHABET) for _ in range(16))


def to_transaction(db_transaction: TransactionModel) -> Transaction:
    """Convert ORM row to the pydantic read model."""
    return Transaction.model_validate(db_transaction)


# ============================================================================
# Creation
# ============================================================================

def build_pending_transaction(
    tenant_id: str,
    gift_item_id: str,
    unit_price: int,
    fee_config: FeeConfig,
    amounts: PaymentAmounts,
    payment_method: str
) -> TransactionModel:
    """
    New pending row carrying the fee snapshot.

    The fee percentage and modality are copied here and never re-derived.
    """
    return TransactionModel(
        internal_id=generate_internal_id(),
        tenant_id=tenant_id,
        gift_item_id=gift_item_id,
        original_unit_price=unit_price,
        fee_percentage=fee_config.fee_percentage,
        fee_modality=fee_config.modality.value,
        fee_amount=amounts.fee_amount,
        gross_amount=amounts.gross_amount,
        net_amount_couple=amounts.net_amount_couple,
        platform_amount=amounts.platform_amount,
        payment_method=payment_method,
        status="pending",
        created_at=utcnow(),
    )


# ============================================================================
# Transitions (caller commits)
# ============================================================================

def _ensure_pending(db_transaction: TransactionModel, target_status: str) -> None:
    if db_transaction.status in TERMINAL_STATUSES:
        raise IllegalTransitionError(db_transaction.internal_id, db_transaction.status, target_status)


def mark_confirmed(db_transaction: TransactionModel) -> None:
    _ensure_pending(db_transaction, "confirmed")
    db_transaction.status = "confirmed"
    db_transaction.confirmed_at = utcnow()


def mark_failed(db_transaction: TransactionModel, error_message: str) -> None:
    _ensure_pending(db_transaction, "failed")
    db_transaction.status = "failed"
    db_transaction.error_message = error_message


def merge_gateway_response(db_transaction: TransactionModel, extra: Dict[str, Any]) -> None:
    """Add keys to the stored gateway response (audit trail)."""
    current = json.loads(db_transaction.gateway_response) if db_transaction.gateway_response else {}
    current.update(extra)
    db_transaction.gateway_response = json.dumps(current)


# ============================================================================
# Retrieval
# ============================================================================

async def get_transaction_by_id(
    db: AsyncSession,
    internal_id: str
) -> Optional[Transaction]:
    """
    Retrieve transaction by internal ID.

    Returns:
        Transaction or None if not found
    """
    db_transaction = await get_transaction(db, internal_id)
    if not db_transaction:
        return None
    return to_transaction(db_transaction)
