from __future__ import annotations

from datetime import date, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.core import config
from app.core.forecasting.domain import DemandObservation
from app.core.forecasting.errors import DataSourceError, InsufficientHistoryError
from app.services import demand_history
from app.services.demand_history import ensure_sufficient_history, fetch_demand_history
from tests.test_utils import add_consumption, create_item, create_site, create_tenant


TODAY = date(2025, 3, 31)


@pytest.fixture
def no_backoff(monkeypatch):
    monkeypatch.setattr(config, "FORECAST_FETCH_BACKOFF_SECONDS", 0.0)


@pytest.mark.usefixtures("db_session")
class TestFetchDemandHistory:
    def test_window_is_zero_filled_and_ordered(self, db_session):
        tenant = create_tenant(db_session)
        item = create_item(db_session, tenant, "SKU-1")
        add_consumption(db_session, item, TODAY - timedelta(days=2), 4)
        add_consumption(db_session, item, TODAY, 6)

        history = fetch_demand_history(db_session, item.id, 30, today=TODAY)

        assert len(history) == 30
        assert history[0].date == TODAY - timedelta(days=29)
        assert history[-1].date == TODAY
        assert [o.date for o in history] == sorted(o.date for o in history)
        assert history[-1].quantity_consumed == 6
        assert history[-3].quantity_consumed == 4
        assert sum(o.quantity_consumed for o in history) == 10

    def test_same_day_events_are_summed_and_signs_ignored(self, db_session):
        tenant = create_tenant(db_session)
        item = create_item(db_session, tenant, "SKU-2")
        add_consumption(db_session, item, TODAY, -3, event_type="SHIP")
        add_consumption(db_session, item, TODAY, 2, event_type="SCRAP")

        history = fetch_demand_history(db_session, item.id, 7, today=TODAY)

        assert history[-1].quantity_consumed == 5

    def test_non_consumption_events_and_out_of_window_are_ignored(self, db_session):
        tenant = create_tenant(db_session)
        item = create_item(db_session, tenant, "SKU-3")
        add_consumption(db_session, item, TODAY, 100, event_type="RECEIVE")
        add_consumption(db_session, item, TODAY - timedelta(days=10), 7)

        history = fetch_demand_history(db_session, item.id, 7, today=TODAY)

        assert all(o.quantity_consumed == 0 for o in history)

    def test_site_filter(self, db_session):
        tenant = create_tenant(db_session)
        site_a = create_site(db_session, tenant, "A")
        site_b = create_site(db_session, tenant, "B")
        item = create_item(db_session, tenant, "SKU-4")
        add_consumption(db_session, item, TODAY, 3, site=site_a)
        add_consumption(db_session, item, TODAY, 8, site=site_b)

        history = fetch_demand_history(db_session, item.id, 7, today=TODAY, site_id=site_a.id)

        assert history[-1].quantity_consumed == 3


class TestRetries:
    def test_transient_failure_is_retried(self, db_session, monkeypatch, no_backoff, rollback_calls):
        calls = {"n": 0}

        def flaky(db, item_id, start, end, site_id):  # noqa: ARG001
            calls["n"] += 1
            if calls["n"] == 1:
                raise OperationalError("SELECT", {}, Exception("connection reset"))
            return []

        monkeypatch.setattr(demand_history, "_query_consumption", flaky)

        history = fetch_demand_history(db_session, 1, 7, today=TODAY)

        assert calls["n"] == 2
        assert len(history) == 7
        assert len(rollback_calls) == 1

    def test_exhausted_retries_raise_data_source_error(self, db_session, monkeypatch, no_backoff, rollback_calls):
        calls = {"n": 0}

        def broken(db, item_id, start, end, site_id):  # noqa: ARG001
            calls["n"] += 1
            raise OperationalError("SELECT", {}, Exception("database is down"))

        monkeypatch.setattr(demand_history, "_query_consumption", broken)
        monkeypatch.setattr(config, "FORECAST_FETCH_MAX_RETRIES", 2)

        with pytest.raises(DataSourceError):
            fetch_demand_history(db_session, 1, 7, today=TODAY)
        assert calls["n"] == 3
        assert len(rollback_calls) == 3


def test_sparse_history_is_insufficient():
    observations = [
        DemandObservation(item_id=1, date=TODAY - timedelta(days=i), quantity_consumed=1.0 if i < 3 else 0.0)
        for i in range(30)
    ]

    with pytest.raises(InsufficientHistoryError) as exc_info:
        ensure_sufficient_history(1, observations, min_active_days=7)
    assert exc_info.value.active_days == 3


def test_enough_active_days_pass():
    obs = [
        DemandObservation(item_id=1, date=TODAY - timedelta(days=i), quantity_consumed=2.0)
        for i in range(7)
    ]

    ensure_sufficient_history(1, obs, min_active_days=7)
