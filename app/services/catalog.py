from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.forecasting.domain import CatalogItem
from app.models.models import Item, StockBalance
from app.services.demand_history import read_with_retries


def list_active_items(db: Session, tenant_id: int, site_id: int | None = None) -> list[Item]:
    """Active items of a tenant; with `site_id`, only items stocked at that site."""

    query = db.query(Item).filter(Item.tenant_id == tenant_id, Item.is_active.is_(True))
    if site_id is not None:
        stocked = (
            db.query(StockBalance.item_id)
            .filter(StockBalance.site_id == site_id)
        )
        query = query.filter(Item.id.in_(stocked))
    return query.order_by(Item.id).all()


def get_item(db: Session, tenant_id: int, item_id: int) -> Item | None:
    return (
        db.query(Item)
        .filter(Item.id == item_id, Item.tenant_id == tenant_id)
        .first()
    )


def to_catalog_item(item: Item) -> CatalogItem:
    return CatalogItem(
        item_id=item.id,
        sku=item.sku,
        name=item.name,
        reorder_point=item.reorder_point,
        safety_stock=item.safety_stock,
        lead_time_days=item.lead_time_days,
        min_order_qty=item.min_order_qty,
        max_order_qty=item.max_order_qty,
        order_multiple=item.order_multiple,
        unit_cost=item.unit_cost,
    )


def read_current_stock(db: Session, item_id: int, site_id: int | None = None) -> float:
    def _read() -> float:
        query = db.query(func.coalesce(func.sum(StockBalance.quantity), 0)).filter(
            StockBalance.item_id == item_id
        )
        if site_id is not None:
            query = query.filter(StockBalance.site_id == site_id)
        return float(query.scalar() or 0)

    return read_with_retries(db, _read, f"stock read for item {item_id}")
