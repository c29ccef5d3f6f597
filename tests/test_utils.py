from __future__ import annotations

from datetime import date, datetime, time, timezone

from sqlalchemy.orm import Session

from app.models.models import (
    ForecastSettings,
    InventoryEvent,
    Item,
    Site,
    StockBalance,
    Tenant,
)


def create_tenant(session: Session, code: str = "T1") -> Tenant:
    tenant = Tenant(code=code, name=code)
    session.add(tenant)
    session.flush()
    return tenant


def create_site(session: Session, tenant: Tenant, code: str = "S1") -> Site:
    site = Site(tenant_id=tenant.id, code=code, name=code)
    session.add(site)
    session.flush()
    return site


def create_item(
    session: Session,
    tenant: Tenant,
    sku: str,
    *,
    reorder_point: float | None = None,
    safety_stock: float | None = None,
    lead_time_days: int | None = None,
    is_active: bool = True,
    **ordering,
) -> Item:
    item = Item(
        tenant_id=tenant.id,
        sku=sku,
        name=sku,
        is_active=is_active,
        reorder_point=reorder_point,
        safety_stock=safety_stock,
        lead_time_days=lead_time_days,
        **ordering,
    )
    session.add(item)
    session.flush()
    return item


def add_consumption(
    session: Session,
    item: Item,
    day: date,
    quantity: float,
    *,
    event_type: str = "ISSUE",
    site: Site | None = None,
) -> InventoryEvent:
    event = InventoryEvent(
        tenant_id=item.tenant_id,
        item_id=item.id,
        site_id=site.id if site is not None else None,
        event_type=event_type,
        quantity=quantity,
        occurred_at=datetime.combine(day, time(12, 0), tzinfo=timezone.utc),
    )
    session.add(event)
    session.flush()
    return event


def add_daily_consumption(
    session: Session,
    item: Item,
    end: date,
    quantities: list[float],
    *,
    site: Site | None = None,
) -> None:
    """Consumption for len(quantities) consecutive days ending at `end`; zeros are skipped."""
    days = len(quantities)
    for offset, qty in enumerate(quantities):
        if qty:
            day = date.fromordinal(end.toordinal() - (days - 1) + offset)
            add_consumption(session, item, day, qty, site=site)


def add_stock(session: Session, item: Item, site: Site, quantity: float) -> StockBalance:
    balance = StockBalance(item_id=item.id, site_id=site.id, quantity=quantity)
    session.add(balance)
    session.flush()
    return balance


def create_forecast_settings(session: Session, tenant: Tenant, **overrides) -> ForecastSettings:
    fs = ForecastSettings(tenant_id=tenant.id, **overrides)
    session.add(fs)
    session.flush()
    return fs
