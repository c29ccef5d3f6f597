from __future__ import annotations

import logging
import threading
from datetime import date

from sqlalchemy.orm import Session

from app.core.forecasting.domain import ForecastMethod
from app.models.models import ForecastRun, ForecastRunItem
from app.schemas.forecast import ForecastRunSchema, ItemAnalysisEntry
from app.services.forecast_analysis import AnalysisResult, run_analysis


logger = logging.getLogger(__name__)

RUN_STATUS_COMPLETED = "completed"
RUN_STATUS_INTERRUPTED = "interrupted"


def _run_item_from_entry(entry: ItemAnalysisEntry) -> ForecastRunItem:
    row = ForecastRunItem(
        item_id=entry.item_id,
        status=entry.status.value,
        risk_level=entry.risk_level.value,
        error=entry.error,
        using_defaults=False,
    )

    a = entry.assessment
    if a is not None:
        row.current_stock = a.current_stock
        row.average_demand = a.average_demand
        row.forecasted_demand = a.forecasted_demand
        row.days_of_supply = a.days_of_supply
        row.confidence = a.confidence
        row.suggested_reorder_qty = a.suggested_reorder_qty
        row.suggested_reorder_date = a.suggested_reorder_date
        row.recommendation = a.recommendation
        row.using_defaults = a.using_defaults

    return row


def persist_analysis(db: Session, result: AnalysisResult) -> ForecastRun:
    run = ForecastRun(
        tenant_id=result.tenant_id,
        site_id=result.site_id,
        forecast_days=result.forecast_days,
        historical_days=result.historical_days,
        method=result.method.value,
        status=RUN_STATUS_INTERRUPTED if result.interrupted else RUN_STATUS_COMPLETED,
        total_items=result.summary.total_items,
        healthy=result.summary.healthy,
        low_stock=result.summary.low_stock,
        at_risk=result.summary.at_risk,
        overstocked=result.summary.overstocked,
        unavailable_items=len(result.entries) - result.summary.total_items,
        interrupted=result.interrupted,
    )
    run.items = [_run_item_from_entry(entry) for entry in result.entries]

    db.add(run)
    db.commit()
    db.refresh(run)
    return run


def generate_forecast_run(
    db: Session,
    tenant_id: int,
    forecast_days: int = 30,
    historical_days: int = 90,
    site_id: int | None = None,
    method: ForecastMethod | None = None,
    today: date | None = None,
    cancel_event: threading.Event | None = None,
) -> tuple[ForecastRun, AnalysisResult]:
    """Run a tenant-wide analysis and store it as a forecast run."""

    result = run_analysis(
        db,
        tenant_id,
        forecast_days=forecast_days,
        historical_days=historical_days,
        site_id=site_id,
        method=method,
        today=today,
        cancel_event=cancel_event,
    )
    run = persist_analysis(db, result)
    logger.info(
        "Forecast run %s stored for tenant %s (status=%s, items=%s)",
        run.id,
        tenant_id,
        run.status,
        len(result.entries),
    )
    return run, result


def get_latest_run(db: Session, tenant_id: int) -> ForecastRunSchema | None:
    run = (
        db.query(ForecastRun)
        .filter(ForecastRun.tenant_id == tenant_id)
        .order_by(ForecastRun.id.desc())
        .first()
    )
    if run is None:
        return None
    return ForecastRunSchema.model_validate(run, from_attributes=True)
