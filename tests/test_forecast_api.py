from __future__ import annotations

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from app.core.db import get_db
from app.main import app
from tests.test_utils import (
    add_consumption,
    add_daily_consumption,
    add_stock,
    create_item,
    create_site,
    create_tenant,
)


@pytest.fixture
def client(db_session):
    def _get_db_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db_override
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def portfolio(db_session):
    today = date.today()
    tenant = create_tenant(db_session)
    site = create_site(db_session, tenant)

    fast = create_item(db_session, tenant, "FAST", reorder_point=10, safety_stock=5, lead_time_days=7)
    add_daily_consumption(db_session, fast, today, [5] * 60)
    add_stock(db_session, fast, site, 15)

    slow = create_item(db_session, tenant, "SLOW", reorder_point=10, safety_stock=0, lead_time_days=7)
    add_daily_consumption(db_session, slow, today, [2] * 60)
    add_stock(db_session, slow, site, 1000)

    new = create_item(db_session, tenant, "NEW")
    add_consumption(db_session, new, today, 3)

    return {"tenant": tenant, "site": site, "fast": fast, "slow": slow, "new": new}


def _headers(tenant):
    return {"X-Tenant-ID": str(tenant.id)}


def test_bulk_analysis(client, portfolio):
    resp = client.get(
        "/api/v1/forecast/analysis",
        params={"forecast_days": 30, "historical_days": 60},
        headers=_headers(portfolio["tenant"]),
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()

    assert body["forecast_days"] == 30
    assert body["historical_days"] == 60
    assert body["interrupted"] is False
    assert body["summary"] == {
        "total_items": 2,
        "healthy": 0,
        "low_stock": 0,
        "at_risk": 1,
        "overstocked": 1,
    }

    items = {i["sku"]: i for i in body["items"]}
    assert items["FAST"]["status"] == "ok"
    assert items["FAST"]["risk_level"] == "at_risk"
    assert items["FAST"]["assessment"]["days_of_supply"] == pytest.approx(3.0)
    assert items["SLOW"]["risk_level"] == "overstocked"
    assert items["NEW"]["status"] == "insufficient_data"
    assert items["NEW"]["risk_level"] == "unknown"
    assert items["NEW"]["assessment"]["using_defaults"] is True


def test_item_detail(client, portfolio):
    resp = client.get(
        "/api/v1/forecast/analysis",
        params={
            "forecast_days": 14,
            "historical_days": 30,
            "item_id": portfolio["fast"].id,
            "method": "moving_average",
        },
        headers=_headers(portfolio["tenant"]),
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()

    assert body["item_id"] == portfolio["fast"].id
    assert body["method_used"] == "moving_average"
    assert len(body["history"]) == 30
    assert len(body["forecast"]) == 14
    assert body["forecast"][0]["date"] == (date.today() + timedelta(days=1)).isoformat()
    assert body["assessment"]["risk_level"] == "at_risk"
    assert body["assessment"]["optimized_reorder_point"] == 35
    assert body["assessment"]["reorder_point_advice"] == [
        "Current reorder point may be too low. Recommend increasing to 35."
    ]
    assert body["assessment"]["economic_order_qty"] is None
    assert body["accuracy"]["holdout_days"] == 7


@pytest.mark.parametrize(
    "params, field",
    [
        ({"forecast_days": 5}, "forecast_days"),
        ({"forecast_days": 91}, "forecast_days"),
        ({"historical_days": 20}, "historical_days"),
    ],
)
def test_out_of_range_parameters(client, portfolio, params, field):
    resp = client.get(
        "/api/v1/forecast/analysis",
        params=params,
        headers=_headers(portfolio["tenant"]),
    )
    assert resp.status_code == 422
    assert resp.json()["detail"]["field"] == field


def test_unknown_method_is_rejected(client, portfolio):
    resp = client.get(
        "/api/v1/forecast/analysis",
        params={"method": "arima"},
        headers=_headers(portfolio["tenant"]),
    )
    assert resp.status_code == 422


def test_unknown_item_is_404(client, portfolio):
    resp = client.get(
        "/api/v1/forecast/analysis",
        params={"item_id": 99999},
        headers=_headers(portfolio["tenant"]),
    )
    assert resp.status_code == 404
    assert resp.json()["detail"]["field"] == "item_id"


def test_tenant_header_is_required(client, portfolio):
    assert client.get("/api/v1/forecast/analysis").status_code == 422
    resp = client.get("/api/v1/forecast/analysis", headers={"X-Tenant-ID": "99999"})
    assert resp.status_code == 404


def test_generate_then_latest_run(client, portfolio):
    headers = _headers(portfolio["tenant"])
    assert client.get("/api/v1/forecast/runs/latest", headers=headers).status_code == 404

    resp = client.post(
        "/api/v1/forecast/generate",
        json={"forecast_days": 30, "historical_days": 60},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "completed"
    assert body["summary"]["total_items"] == 2

    latest = client.get("/api/v1/forecast/runs/latest", headers=headers)
    assert latest.status_code == 200, latest.text
    run = latest.json()
    assert run["id"] == body["run_id"]
    assert run["unavailable_items"] == 1
    assert {i["item_id"] for i in run["items"]} == {
        portfolio["fast"].id,
        portfolio["slow"].id,
        portfolio["new"].id,
    }


def test_generate_rejects_bad_window(client, portfolio):
    resp = client.post(
        "/api/v1/forecast/generate",
        json={"forecast_days": 365},
        headers=_headers(portfolio["tenant"]),
    )
    assert resp.status_code == 422
    assert resp.json()["detail"] == {
        "field": "forecast_days",
        "message": "must be between 7 and 90, got 365",
    }


def test_item_anomalies(client, db_session, portfolio):
    today = date.today()
    spiky = create_item(db_session, portfolio["tenant"], "SPIKY")
    quantities = [4] * 30
    quantities[10] = 40
    add_daily_consumption(db_session, spiky, today, quantities)

    resp = client.get(
        f"/api/v1/forecast/items/{spiky.id}/anomalies",
        params={"historical_days": 30},
        headers=_headers(portfolio["tenant"]),
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert len(body["anomalies"]) == 1
    assert body["anomalies"][0]["kind"] == "SPIKE"
    assert body["anomalies"][0]["date"] == (today - timedelta(days=19)).isoformat()


def test_item_seasonal_factors(client, portfolio):
    resp = client.get(
        f"/api/v1/forecast/items/{portfolio['fast'].id}/seasonal-factors",
        params={"pattern": "weekly"},
        headers=_headers(portfolio["tenant"]),
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["pattern"] == "weekly"
    assert [f["period"] for f in body["factors"]] == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    assert all(f["factor"] == pytest.approx(1.0) for f in body["factors"])
