"""
Gift Registry API Endpoints

Public listing of a couple's gifts with the price guests will be charged.

Display price depends on the registry's fee modality: list price for
couple_pays, marked-up price for guest_pays. A registry without config shows
list prices (purchases are still refused until it is configured).
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, Optional
import logging

from ..config import settings
from ..db.init_db import get_db
from ..db.models import GiftItemModel, GiftRegistryConfigModel
from ..db.repository import get_gift_item, get_registry_config, list_available_gifts
from ..exceptions import GiftNotFoundError
from ..services.fee_calculator import calculate_display_price

logger = logging.getLogger(__name__)

router = APIRouter()

SORT_OPTIONS = ("price", "price_asc", "price_desc")


def format_gift(
    gift: GiftItemModel,
    config: Optional[GiftRegistryConfigModel],
    detailed: bool = False
) -> Dict[str, Any]:
    display_price = gift.price
    if config is not None:
        display_price = calculate_display_price(
            gift.price, settings.platform_fee_percentage, config.fee_modality
        )

    data = {
        "id": gift.id,
        "name": gift.name,
        "display_price": display_price,
        "quantity_available": gift.quantity_available,
        "is_available": gift.is_available(),
        "is_sold_out": gift.quantity_available <= 0,
    }
    if detailed:
        data["quantity_sold"] = gift.quantity_sold
        data["created_at"] = gift.created_at.isoformat() if gift.created_at else None
    return data


@router.get("/events/{tenant_id}/gifts")
async def list_gifts_endpoint(
    tenant_id: str,
    sort: str = Query("price", description="price, price_asc or price_desc"),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """
    List purchasable gifts for a wedding.

    Query Parameters:
        sort: price / price_asc (default) or price_desc; anything else falls
            back to price

    Example:
        GET /api/events/wedding_001/gifts?sort=price_desc
    """
    if sort not in SORT_OPTIONS:
        sort = "price"

    gifts = await list_available_gifts(db, tenant_id, descending=(sort == "price_desc"))
    config = await get_registry_config(db, tenant_id)

    logger.debug(f"Listing {len(gifts)} gifts for tenant {tenant_id}")

    return {"data": [format_gift(gift, config) for gift in gifts]}


@router.get("/events/{tenant_id}/gifts/{gift_id}")
async def get_gift_endpoint(
    tenant_id: str,
    gift_id: str,
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """Gift details, including sold-out gifts."""
    gift = await get_gift_item(db, gift_id, tenant_id=tenant_id)
    if gift is None:
        raise GiftNotFoundError(gift_id)

    config = await get_registry_config(db, tenant_id)
    return {"data": format_gift(gift, config, detailed=True)}
