"""
Idempotency Service

Maps a client-supplied idempotency key to the transaction it produced so a
retried purchase request never creates a second charge.

Atomicity comes from the unique index on idempotency_keys.key: reserve()
inserts inside a SAVEPOINT, and a concurrent writer that loses the race gets
an IntegrityError and reads back the winner's transaction id instead.
Keys expire after settings.idempotency_ttl_hours; expired keys are invisible
to lookups and are purged by cleanup_expired() (scheduled in scheduler.py).
"""
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..db.models import IdempotencyKeyModel, utcnow

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 100


@dataclass(frozen=True)
class Reservation:
    """
    Outcome of reserve().

    created=True: this caller owns the key.
    created=False: the key already points at transaction_id.
    """

    created: bool
    transaction_id: str


def is_valid_key_format(key: Optional[str]) -> bool:
    """Key must be a non-empty string of at most 100 characters."""
    return isinstance(key, str) and bool(key.strip()) and len(key) <= MAX_KEY_LENGTH


async def find_by_key(db: AsyncSession, key: str) -> Optional[IdempotencyKeyModel]:
    """Return the live (non-expired) record for key, if any."""
    result = await db.execute(
        select(IdempotencyKeyModel).where(
            IdempotencyKeyModel.key == key,
            IdempotencyKeyModel.expires_at > utcnow()
        )
    )
    return result.scalar_one_or_none()


async def find_transaction_id(db: AsyncSession, key: str) -> Optional[str]:
    record = await find_by_key(db, key)
    return record.transaction_id if record else None


async def reserve(
    db: AsyncSession,
    key: str,
    transaction_id: str,
    response: Optional[Dict[str, Any]] = None,
    ttl_hours: Optional[int] = None
) -> Reservation:
    """
    Claim key for transaction_id inside the caller's DB transaction.

    Does not commit: the caller commits the key together with the
    transaction row it points at. On created=False the caller must roll back
    its own pending writes.
    """
    existing = await find_by_key(db, key)
    if existing:
        return Reservation(created=False, transaction_id=existing.transaction_id)

    # An expired row still holds the unique key until housekeeping runs
    await db.execute(
        delete(IdempotencyKeyModel).where(
            IdempotencyKeyModel.key == key,
            IdempotencyKeyModel.expires_at <= utcnow()
        )
    )

    ttl = ttl_hours if ttl_hours is not None else settings.idempotency_ttl_hours
    record = IdempotencyKeyModel(
        id=uuid.uuid4().hex,
        key=key,
        transaction_id=transaction_id,
        response=json.dumps(response) if response is not None else None,
        expires_at=utcnow() + timedelta(hours=ttl),
    )

    try:
        async with db.begin_nested():
            db.add(record)
    except IntegrityError:
        winner = await find_transaction_id(db, key)
        if winner is None:
            raise
        logger.info(f"Idempotency key already reserved by transaction {winner}")
        return Reservation(created=False, transaction_id=winner)

    return Reservation(created=True, transaction_id=transaction_id)


async def cleanup_expired(db: AsyncSession) -> int:
    """
    Delete expired idempotency keys.

    Returns:
        Number of deleted keys
    """
    result = await db.execute(
        delete(IdempotencyKeyModel).where(IdempotencyKeyModel.expires_at <= utcnow())
    )
    await db.commit()
    deleted = result.rowcount or 0
    if deleted:
        logger.info(f"Purged {deleted} expired idempotency keys")
    return deleted
