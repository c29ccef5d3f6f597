"""add forecasting models

Revision ID: 0001
Revises: None
Create Date: 2026-10-19 00:00:00.000000

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tenant",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=50), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
    )

    op.create_table(
        "site",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenant.id"), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.UniqueConstraint("tenant_id", "code", name="uq_site_tenant_code"),
    )

    op.create_table(
        "item",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenant.id"), nullable=False),
        sa.Column("sku", sa.String(length=100), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("reorder_point", sa.Float(), nullable=True),
        sa.Column("safety_stock", sa.Float(), nullable=True),
        sa.Column("lead_time_days", sa.Integer(), nullable=True),
        sa.Column("min_order_qty", sa.Float(), nullable=True),
        sa.Column("max_order_qty", sa.Float(), nullable=True),
        sa.Column("order_multiple", sa.Float(), nullable=True),
        sa.Column("unit_cost", sa.Float(), nullable=True),
        sa.UniqueConstraint("tenant_id", "sku", name="uq_item_tenant_sku"),
    )
    op.create_index("ix_item_tenant_id", "item", ["tenant_id"])

    op.create_table(
        "inventory_event",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenant.id"), nullable=False),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("item.id"), nullable=False),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("site.id"), nullable=True),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_inventory_event_item_id", "inventory_event", ["item_id"])
    op.create_index("ix_inventory_event_occurred_at", "inventory_event", ["occurred_at"])

    op.create_table(
        "stock_balance",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("item.id"), nullable=False),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("site.id"), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("item_id", "site_id", name="uq_stock_balance_item_site"),
    )

    op.create_table(
        "forecast_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenant.id"), nullable=False, unique=True),
        sa.Column("default_forecast_days", sa.Integer(), nullable=False, server_default=sa.text("30")),
        sa.Column("default_historical_days", sa.Integer(), nullable=False, server_default=sa.text("90")),
        sa.Column("default_method", sa.String(length=50), nullable=False, server_default="auto"),
        sa.Column("default_lead_time_days", sa.Integer(), nullable=False, server_default=sa.text("14")),
        sa.Column("smoothing_alpha", sa.Float(), nullable=False, server_default=sa.text("0.3")),
        sa.Column("confidence_level", sa.Float(), nullable=False, server_default=sa.text("0.9")),
        sa.Column("service_level", sa.Float(), nullable=False, server_default=sa.text("0.95")),
        sa.Column("moving_average_window", sa.Integer(), nullable=False, server_default=sa.text("7")),
        sa.Column("min_active_days", sa.Integer(), nullable=False, server_default=sa.text("7")),
        sa.Column("auto_generate", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )

    op.create_table(
        "forecast_run",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenant.id"), nullable=False),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("site.id"), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("forecast_days", sa.Integer(), nullable=False),
        sa.Column("historical_days", sa.Integer(), nullable=False),
        sa.Column("method", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("healthy", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("low_stock", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("at_risk", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("overstocked", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("unavailable_items", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("interrupted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_index("ix_forecast_run_tenant_id", "forecast_run", ["tenant_id"])

    op.create_table(
        "forecast_run_item",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("run_id", sa.Integer(), sa.ForeignKey("forecast_run.id"), nullable=False),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("item.id"), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("risk_level", sa.String(length=50), nullable=False),
        sa.Column("current_stock", sa.Float(), nullable=True),
        sa.Column("average_demand", sa.Float(), nullable=True),
        sa.Column("forecasted_demand", sa.Float(), nullable=True),
        sa.Column("days_of_supply", sa.Float(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("suggested_reorder_qty", sa.Integer(), nullable=True),
        sa.Column("suggested_reorder_date", sa.Date(), nullable=True),
        sa.Column("recommendation", sa.Text(), nullable=True),
        sa.Column("using_defaults", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("error", sa.Text(), nullable=True),
        sa.UniqueConstraint("run_id", "item_id", name="uq_forecast_run_item_run_item"),
    )


def downgrade() -> None:
    op.drop_table("forecast_run_item")
    op.drop_index("ix_forecast_run_tenant_id", table_name="forecast_run")
    op.drop_table("forecast_run")
    op.drop_table("forecast_settings")
    op.drop_table("stock_balance")
    op.drop_index("ix_inventory_event_occurred_at", table_name="inventory_event")
    op.drop_index("ix_inventory_event_item_id", table_name="inventory_event")
    op.drop_table("inventory_event")
    op.drop_index("ix_item_tenant_id", table_name="item")
    op.drop_table("item")
    op.drop_table("site")
    op.drop_table("tenant")
