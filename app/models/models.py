from __future__ import annotations

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Tenant(Base):
    __tablename__ = "tenant"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Site(Base):
    __tablename__ = "site"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenant.id"), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_site_tenant_code"),
    )


class Item(Base):
    __tablename__ = "item"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenant.id"), nullable=False, index=True)
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reorder_point: Mapped[float | None] = mapped_column(Float, nullable=True)
    safety_stock: Mapped[float | None] = mapped_column(Float, nullable=True)
    lead_time_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_order_qty: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_order_qty: Mapped[float | None] = mapped_column(Float, nullable=True)
    order_multiple: Mapped[float | None] = mapped_column(Float, nullable=True)
    unit_cost: Mapped[float | None] = mapped_column(Float, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "sku", name="uq_item_tenant_sku"),
    )


class InventoryEvent(Base):
    __tablename__ = "inventory_event"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenant.id"), nullable=False)
    item_id: Mapped[int] = mapped_column(ForeignKey("item.id"), nullable=False, index=True)
    site_id: Mapped[int | None] = mapped_column(ForeignKey("site.id"), nullable=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    occurred_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class StockBalance(Base):
    __tablename__ = "stock_balance"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("item.id"), nullable=False)
    site_id: Mapped[int] = mapped_column(ForeignKey("site.id"), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    updated_at: Mapped[DateTime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("item_id", "site_id", name="uq_stock_balance_item_site"),
    )

    item: Mapped[Item] = relationship("Item")
    site: Mapped[Site] = relationship("Site")


class ForecastSettings(Base):
    __tablename__ = "forecast_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenant.id"), nullable=False, unique=True)
    default_forecast_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    default_historical_days: Mapped[int] = mapped_column(Integer, nullable=False, default=90)
    default_method: Mapped[str] = mapped_column(String(50), nullable=False, default="auto")
    default_lead_time_days: Mapped[int] = mapped_column(Integer, nullable=False, default=14)
    smoothing_alpha: Mapped[float] = mapped_column(Float, nullable=False, default=0.3)
    confidence_level: Mapped[float] = mapped_column(Float, nullable=False, default=0.9)
    service_level: Mapped[float] = mapped_column(Float, nullable=False, default=0.95)
    moving_average_window: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    min_active_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    auto_generate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class ForecastRun(Base):
    __tablename__ = "forecast_run"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenant.id"), nullable=False, index=True)
    site_id: Mapped[int | None] = mapped_column(ForeignKey("site.id"), nullable=True)
    created_at: Mapped[DateTime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    forecast_days: Mapped[int] = mapped_column(Integer, nullable=False)
    historical_days: Mapped[int] = mapped_column(Integer, nullable=False)
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)

    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    healthy: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    low_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    at_risk: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overstocked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unavailable_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    interrupted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    items: Mapped[list["ForecastRunItem"]] = relationship(
        "ForecastRunItem", back_populates="run", order_by="ForecastRunItem.item_id"
    )


class ForecastRunItem(Base):
    __tablename__ = "forecast_run_item"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    run_id: Mapped[int] = mapped_column(ForeignKey("forecast_run.id"), nullable=False)
    item_id: Mapped[int] = mapped_column(ForeignKey("item.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    risk_level: Mapped[str] = mapped_column(String(50), nullable=False)
    current_stock: Mapped[float | None] = mapped_column(Float, nullable=True)
    average_demand: Mapped[float | None] = mapped_column(Float, nullable=True)
    forecasted_demand: Mapped[float | None] = mapped_column(Float, nullable=True)
    days_of_supply: Mapped[float | None] = mapped_column(Float, nullable=True)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    suggested_reorder_qty: Mapped[int | None] = mapped_column(Integer, nullable=True)
    suggested_reorder_date: Mapped[Date | None] = mapped_column(Date, nullable=True)
    recommendation: Mapped[str | None] = mapped_column(Text, nullable=True)
    using_defaults: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    run: Mapped[ForecastRun] = relationship("ForecastRun", back_populates="items")

    __table_args__ = (
        UniqueConstraint("run_id", "item_id", name="uq_forecast_run_item_run_item"),
    )
