"""
Inventory Service

Gift inventory ledger (quantity_available / quantity_sold). Counters only
change here, on a confirmed payment, while the gift_items row is locked.
Nothing in this module commits: callers run it inside the same DB
transaction that confirms the payment so both land or neither does.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..db.models import GiftItemModel
from ..db.repository import get_gift_item
from ..exceptions import GiftNotFoundError, InventoryExhaustedError

logger = logging.getLogger(__name__)


async def lock_gift_item(db: AsyncSession, gift_item_id: str) -> GiftItemModel:
    """Fetch a gift with a row lock held until the current DB transaction ends."""
    gift = await get_gift_item(db, gift_item_id, lock=True)
    if gift is None:
        raise GiftNotFoundError(gift_item_id)
    return gift


def record_sale(gift: GiftItemModel) -> None:
    """
    Move one unit from available to sold on a locked gift row.

    Disables the gift when the last unit is sold. Raises
    InventoryExhaustedError instead of going below zero.
    """
    if gift.quantity_available <= 0:
        raise InventoryExhaustedError(gift.id)

    gift.quantity_available -= 1
    gift.quantity_sold += 1
    if gift.quantity_available == 0:
        gift.is_enabled = False
        logger.info(f"Gift {gift.id} sold out, disabled")


async def decrement_gift_quantity(db: AsyncSession, gift_item_id: str) -> GiftItemModel:
    """
    Lock the gift row and record one sale.

    Args:
        db: Database session with an open transaction
        gift_item_id: Gift identifier

    Returns:
        The updated (not yet committed) gift row
    """
    gift = await lock_gift_item(db, gift_item_id)
    record_sale(gift)
    await db.flush()

    logger.debug(
        f"Gift {gift_item_id} inventory: available={gift.quantity_available}, sold={gift.quantity_sold}"
    )
    return gift
