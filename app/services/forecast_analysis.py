from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.core.forecasting.domain import (
    AnalysisSummary,
    CatalogItem,
    DemandObservation,
    ForecastMethod,
    ForecastOutcome,
    ForecastParams,
    ItemStatistics,
    ReplenishmentAssessment,
    RiskLevel,
)
from app.core.forecasting.errors import (
    ComputationError,
    DataSourceError,
    InsufficientHistoryError,
    InvalidParameterError,
)
from app.core.forecasting.methods import evaluate_accuracy, generate_forecast
from app.core.forecasting.replenishment import assess_replenishment, tally_summary
from app.core.forecasting.statistics import calendar_seasonal_factors, compute_statistics, detect_anomalies
from app.core.forecasting.validation import (
    API_FORECAST_DAYS_RANGE,
    API_HISTORICAL_DAYS_RANGE,
    ENGINE_DAYS_RANGE,
    validate_days,
    validate_window,
)
from app.schemas.forecast import (
    AnalysisSummarySchema,
    DemandAnomalyResponse,
    DemandAnomalySchema,
    DemandObservationSchema,
    ForecastAccuracySchema,
    ForecastPointSchema,
    ItemAnalysisEntry,
    ItemAnalysisStatus,
    ItemForecastDetailResponse,
    ItemStatisticsSchema,
    ReplenishmentAssessmentSchema,
    SeasonalFactorSchema,
    SeasonalFactorsResponse,
    SeasonalPattern,
)
from app.services.catalog import get_item, list_active_items, read_current_stock, to_catalog_item
from app.services.demand_history import ensure_sufficient_history, fetch_demand_history, read_with_retries
from app.services.forecast_settings import resolve_default_method, resolve_forecast_params


logger = logging.getLogger(__name__)

SEASONAL_PATTERN_WINDOW_DAYS = {
    SeasonalPattern.WEEKLY: 28,
    SeasonalPattern.MONTHLY: 365,
}


@dataclass
class ItemPipelineResult:
    item: CatalogItem
    observations: list[DemandObservation]
    statistics: ItemStatistics
    forecast: ForecastOutcome
    assessment: ReplenishmentAssessment
    insufficient_history: bool


@dataclass
class AnalysisResult:
    tenant_id: int
    site_id: int | None
    forecast_days: int
    historical_days: int
    method: ForecastMethod
    generated_at: datetime
    summary: AnalysisSummary
    entries: list[ItemAnalysisEntry] = field(default_factory=list)
    interrupted: bool = False

    @property
    def failures(self) -> dict[int, str]:
        return {
            e.item_id: e.error or e.status.value
            for e in self.entries
            if e.status != ItemAnalysisStatus.OK
        }


def assessment_to_schema(assessment: ReplenishmentAssessment) -> ReplenishmentAssessmentSchema:
    schema = ReplenishmentAssessmentSchema.model_validate(assessment, from_attributes=True)
    return schema.model_copy(update={"unbounded_supply": assessment.days_of_supply is None})


def _load_item(db: Session, tenant_id: int, item_id: int) -> CatalogItem:
    item = get_item(db, tenant_id, item_id)
    if item is None:
        raise InvalidParameterError("item_id", f"item {item_id} not found")
    return to_catalog_item(item)


def run_item_pipeline(
    db: Session,
    item: CatalogItem,
    forecast_days: int,
    historical_days: int,
    params: ForecastParams,
    method: ForecastMethod,
    today: date,
    site_id: int | None = None,
) -> ItemPipelineResult:
    """Extract -> statistics -> forecast -> assessment for one item.

    Insufficient history is recovered here: the item is still forecast, at
    minimum confidence. DataSourceError and ComputationError propagate.
    """

    observations = fetch_demand_history(db, item.item_id, historical_days, today=today, site_id=site_id)

    insufficient_history = False
    try:
        ensure_sufficient_history(item.item_id, observations, params.min_active_days)
    except InsufficientHistoryError as exc:
        logger.info("Forecasting item %s at low confidence: %s", item.item_id, exc)
        insufficient_history = True

    current_stock = read_current_stock(db, item.item_id, site_id)

    try:
        statistics = compute_statistics(observations, params)
        forecast = generate_forecast(
            observations,
            statistics,
            forecast_days,
            method,
            params,
            start_date=today + timedelta(days=1),
            insufficient_history=insufficient_history,
        )
        assessment = assess_replenishment(
            item,
            statistics,
            forecast,
            current_stock,
            item.reorder_point,
            item.safety_stock,
            forecast_days,
            params,
            today,
            insufficient_history,
        )
    except (ArithmeticError, ValueError) as exc:
        raise ComputationError(f"forecast computation failed for item {item.item_id}: {exc}") from exc

    return ItemPipelineResult(
        item=item,
        observations=observations,
        statistics=statistics,
        forecast=forecast,
        assessment=assessment,
        insufficient_history=insufficient_history,
    )


def run_analysis(
    db: Session,
    tenant_id: int,
    forecast_days: int = 30,
    historical_days: int = 90,
    site_id: int | None = None,
    method: ForecastMethod | None = None,
    today: date | None = None,
    cancel_event: threading.Event | None = None,
    forecast_range: tuple[int, int] = API_FORECAST_DAYS_RANGE,
    historical_range: tuple[int, int] = API_HISTORICAL_DAYS_RANGE,
) -> AnalysisResult:
    """Assess every active item of a tenant and tally risk buckets.

    Per-item failures never abort the batch: the item is listed with its
    status and error, and left out of the summary. When `cancel_event` is
    set the run stops before the next item and is marked interrupted.
    """

    validate_window(forecast_days, historical_days, forecast_range, historical_range)

    today = today or date.today()
    params = resolve_forecast_params(db, tenant_id)
    method = method or resolve_default_method(db, tenant_id)

    items = read_with_retries(
        db,
        lambda: list_active_items(db, tenant_id, site_id),
        f"item catalog read for tenant {tenant_id}",
    )

    result = AnalysisResult(
        tenant_id=tenant_id,
        site_id=site_id,
        forecast_days=forecast_days,
        historical_days=historical_days,
        method=method,
        generated_at=datetime.now(timezone.utc),
        summary=AnalysisSummary(),
    )

    for item in items:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning(
                "Forecast analysis for tenant %s interrupted after %s of %s items",
                tenant_id,
                len(result.entries),
                len(items),
            )
            result.interrupted = True
            break

        catalog_item = to_catalog_item(item)
        try:
            pipeline = run_item_pipeline(
                db,
                catalog_item,
                forecast_days,
                historical_days,
                params,
                method,
                today,
                site_id,
            )
        except (DataSourceError, ComputationError) as exc:
            logger.warning("Forecast analysis failed for item %s: %s", item.id, exc)
            result.entries.append(
                ItemAnalysisEntry(
                    item_id=item.id,
                    sku=item.sku,
                    name=item.name,
                    status=ItemAnalysisStatus.FAILED,
                    risk_level=RiskLevel.UNKNOWN,
                    error=str(exc),
                )
            )
            continue

        if pipeline.insufficient_history:
            status = ItemAnalysisStatus.INSUFFICIENT_DATA
            risk_level = RiskLevel.UNKNOWN
            error = "insufficient demand history"
        else:
            status = ItemAnalysisStatus.OK
            risk_level = pipeline.assessment.risk_level
            error = None

        result.entries.append(
            ItemAnalysisEntry(
                item_id=item.id,
                sku=item.sku,
                name=item.name,
                status=status,
                risk_level=risk_level,
                method_used=pipeline.forecast.method_used,
                assessment=assessment_to_schema(pipeline.assessment),
                error=error,
            )
        )

    result.summary = tally_summary(e.risk_level for e in result.entries)
    logger.info(
        "Forecast analysis for tenant %s: %s assessed, %s unavailable",
        tenant_id,
        result.summary.total_items,
        len(result.entries) - result.summary.total_items,
    )
    return result


def analyze_item(
    db: Session,
    tenant_id: int,
    item_id: int,
    forecast_days: int = 30,
    historical_days: int = 90,
    site_id: int | None = None,
    method: ForecastMethod | None = None,
    today: date | None = None,
) -> ItemForecastDetailResponse:
    validate_window(forecast_days, historical_days, API_FORECAST_DAYS_RANGE, API_HISTORICAL_DAYS_RANGE)

    today = today or date.today()
    item = _load_item(db, tenant_id, item_id)
    params = resolve_forecast_params(db, tenant_id)
    method = method or resolve_default_method(db, tenant_id)

    pipeline = run_item_pipeline(db, item, forecast_days, historical_days, params, method, today, site_id)
    accuracy = evaluate_accuracy(pipeline.observations, method, params)

    return ItemForecastDetailResponse(
        item_id=item.item_id,
        sku=item.sku,
        name=item.name,
        forecast_days=forecast_days,
        historical_days=historical_days,
        method_used=pipeline.forecast.method_used,
        insufficient_history=pipeline.insufficient_history,
        history=[DemandObservationSchema.model_validate(o, from_attributes=True) for o in pipeline.observations],
        forecast=[ForecastPointSchema.model_validate(p, from_attributes=True) for p in pipeline.forecast.points],
        statistics=ItemStatisticsSchema.model_validate(pipeline.statistics, from_attributes=True),
        assessment=assessment_to_schema(pipeline.assessment),
        accuracy=(
            ForecastAccuracySchema.model_validate(accuracy, from_attributes=True)
            if accuracy is not None
            else None
        ),
        anomalies=[
            DemandAnomalySchema.model_validate(a, from_attributes=True)
            for a in detect_anomalies(pipeline.observations)
        ],
    )


def detect_item_anomalies(
    db: Session,
    tenant_id: int,
    item_id: int,
    historical_days: int = 90,
    threshold: float = 2.0,
    site_id: int | None = None,
    today: date | None = None,
) -> DemandAnomalyResponse:
    validate_days("historical_days", historical_days, ENGINE_DAYS_RANGE)
    if threshold <= 0:
        raise InvalidParameterError("threshold", "must be positive")

    _load_item(db, tenant_id, item_id)
    observations = fetch_demand_history(db, item_id, historical_days, today=today, site_id=site_id)

    return DemandAnomalyResponse(
        item_id=item_id,
        historical_days=historical_days,
        threshold=threshold,
        anomalies=[
            DemandAnomalySchema.model_validate(a, from_attributes=True)
            for a in detect_anomalies(observations, threshold)
        ],
    )


def item_seasonal_factors(
    db: Session,
    tenant_id: int,
    item_id: int,
    pattern: SeasonalPattern = SeasonalPattern.WEEKLY,
    site_id: int | None = None,
    today: date | None = None,
) -> SeasonalFactorsResponse:
    _load_item(db, tenant_id, item_id)
    window_days = SEASONAL_PATTERN_WINDOW_DAYS[pattern]
    observations = fetch_demand_history(db, item_id, window_days, today=today, site_id=site_id)

    return SeasonalFactorsResponse(
        item_id=item_id,
        pattern=pattern,
        factors=[
            SeasonalFactorSchema(period=label, factor=factor)
            for label, factor in calendar_seasonal_factors(observations, pattern.value)
        ],
    )


def summary_to_schema(summary: AnalysisSummary) -> AnalysisSummarySchema:
    return AnalysisSummarySchema.model_validate(summary, from_attributes=True)
