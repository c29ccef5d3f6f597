from __future__ import annotations

from datetime import date

import pytest

from app.core.forecasting.domain import ForecastMethod
from app.models.models import ForecastRun
from app.services.forecast_runs import RUN_STATUS_COMPLETED, generate_forecast_run, get_latest_run
from app.services.forecast_scheduler import ForecastScheduler
from tests.test_utils import (
    add_daily_consumption,
    add_stock,
    create_forecast_settings,
    create_item,
    create_site,
    create_tenant,
)


TODAY = date(2025, 6, 30)


@pytest.mark.usefixtures("db_session")
class TestForecastRuns:
    def test_run_is_persisted_with_items(self, db_session):
        tenant = create_tenant(db_session)
        site = create_site(db_session, tenant)
        busy = create_item(db_session, tenant, "BUSY", reorder_point=10, safety_stock=0, lead_time_days=7)
        add_daily_consumption(db_session, busy, TODAY, [5] * 30)
        add_stock(db_session, busy, site, 15)
        idle = create_item(db_session, tenant, "IDLE")
        add_stock(db_session, idle, site, 3)

        run, result = generate_forecast_run(
            db_session,
            tenant.id,
            forecast_days=30,
            historical_days=30,
            method=ForecastMethod.MOVING_AVERAGE,
            today=TODAY,
        )

        assert run.id is not None
        assert run.status == RUN_STATUS_COMPLETED
        assert run.method == "moving_average"
        assert run.total_items == 1
        assert run.at_risk == 1
        assert run.unavailable_items == 1
        assert len(run.items) == 2

        busy_row = next(r for r in run.items if r.item_id == busy.id)
        assert busy_row.status == "ok"
        assert busy_row.risk_level == "at_risk"
        assert busy_row.days_of_supply == pytest.approx(3.0)
        assert busy_row.suggested_reorder_qty == 135

        idle_row = next(r for r in run.items if r.item_id == idle.id)
        assert idle_row.status == "insufficient_data"
        assert idle_row.using_defaults is True
        assert result.summary.total_items == 1

    def test_latest_run(self, db_session):
        tenant = create_tenant(db_session)
        assert get_latest_run(db_session, tenant.id) is None

        generate_forecast_run(db_session, tenant.id, today=TODAY)
        second, _ = generate_forecast_run(db_session, tenant.id, forecast_days=14, today=TODAY)

        latest = get_latest_run(db_session, tenant.id)
        assert latest.id == second.id
        assert latest.forecast_days == 14
        assert latest.items == []


@pytest.mark.usefixtures("db_session")
class TestForecastScheduler:
    def test_run_once_covers_auto_generate_tenants_only(self, db_session):
        auto = create_tenant(db_session, "AUTO")
        manual = create_tenant(db_session, "MANUAL")
        create_forecast_settings(db_session, auto, auto_generate=True, default_forecast_days=14)
        create_forecast_settings(db_session, manual, auto_generate=False)

        run_ids = ForecastScheduler(interval_minutes=60).run_once(db_session)

        assert len(run_ids) == 1
        run = db_session.get(ForecastRun, run_ids[0])
        assert run.tenant_id == auto.id
        assert run.forecast_days == 14

    def test_start_is_skipped_without_postgres(self):
        scheduler = ForecastScheduler(interval_minutes=60)

        scheduler.start()

        assert scheduler.running is False
        scheduler.shutdown()
