"""
Storage access for registry payments.

Lookups return Optional instead of raising, so "not found" is an ordinary
branch at the call site. Locking reads go through with_row_lock, which is
the only place SELECT ... FOR UPDATE is requested.
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from .models import GiftItemModel, GiftRegistryConfigModel, TransactionModel


def with_row_lock(stmt: Select) -> Select:
    """
    Mark a SELECT as row-locking for the rest of the current DB transaction.

    Emits FOR UPDATE where the backend supports it (on SQLite the whole
    transaction already holds the write lock, see init_db). populate_existing
    makes the locked read overwrite any stale copy in the session.
    """
    return stmt.with_for_update().execution_options(populate_existing=True)


async def get_gift_item(
    db: AsyncSession,
    gift_item_id: str,
    tenant_id: Optional[str] = None,
    lock: bool = False
) -> Optional[GiftItemModel]:
    stmt = select(GiftItemModel).where(GiftItemModel.id == gift_item_id)
    if tenant_id is not None:
        stmt = stmt.where(GiftItemModel.tenant_id == tenant_id)
    if lock:
        stmt = with_row_lock(stmt)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_registry_config(db: AsyncSession, tenant_id: str) -> Optional[GiftRegistryConfigModel]:
    result = await db.execute(
        select(GiftRegistryConfigModel).where(GiftRegistryConfigModel.tenant_id == tenant_id)
    )
    return result.scalar_one_or_none()


async def get_transaction(
    db: AsyncSession,
    internal_id: str,
    lock: bool = False
) -> Optional[TransactionModel]:
    stmt = select(TransactionModel).where(TransactionModel.internal_id == internal_id)
    if lock:
        stmt = with_row_lock(stmt)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_transaction_by_gateway_id(
    db: AsyncSession,
    gateway_transaction_id: str,
    lock: bool = False
) -> Optional[TransactionModel]:
    stmt = select(TransactionModel).where(
        TransactionModel.gateway_transaction_id == gateway_transaction_id
    )
    if lock:
        stmt = with_row_lock(stmt)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_available_gifts(
    db: AsyncSession,
    tenant_id: str,
    descending: bool = False
) -> List[GiftItemModel]:
    """Enabled gifts with stock left for one tenant, ordered by price."""
    price_order = GiftItemModel.price.desc() if descending else GiftItemModel.price.asc()
    result = await db.execute(
        select(GiftItemModel)
        .where(
            GiftItemModel.tenant_id == tenant_id,
            GiftItemModel.is_enabled.is_(True),
            GiftItemModel.quantity_available > 0,
        )
        .order_by(price_order, GiftItemModel.name)
    )
    return list(result.scalars().all())
