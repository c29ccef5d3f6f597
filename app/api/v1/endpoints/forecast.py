from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.v1.deps import get_tenant_id
from app.core.db import get_db
from app.core.forecasting.domain import ForecastMethod
from app.core.forecasting.errors import ComputationError, DataSourceError, InvalidParameterError
from app.schemas.forecast import (
    DemandAnomalyResponse,
    ForecastAnalysisResponse,
    ForecastGenerateRequest,
    ForecastGenerateResponse,
    ForecastRunSchema,
    ItemForecastDetailResponse,
    SeasonalFactorsResponse,
    SeasonalPattern,
)
from app.services.forecast_analysis import (
    analyze_item,
    detect_item_anomalies,
    item_seasonal_factors,
    run_analysis,
    summary_to_schema,
)
from app.services.forecast_runs import generate_forecast_run, get_latest_run


router = APIRouter()


def _to_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, InvalidParameterError):
        if exc.field == "item_id":
            return HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"field": exc.field, "message": exc.message},
            )
        return HTTPException(
            status_code=422,
            detail={"field": exc.field, "message": exc.message},
        )
    if isinstance(exc, DataSourceError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Analysis unavailable: {exc}",
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Analysis unavailable: {exc}",
    )


@router.get(
    "/analysis",
    response_model=ForecastAnalysisResponse | ItemForecastDetailResponse,
)
def get_forecast_analysis(
    forecast_days: int = Query(30),
    historical_days: int = Query(90),
    item_id: int | None = Query(None),
    site_id: int | None = Query(None),
    method: ForecastMethod | None = Query(None),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        if item_id is not None:
            return analyze_item(
                db,
                tenant_id,
                item_id,
                forecast_days=forecast_days,
                historical_days=historical_days,
                site_id=site_id,
                method=method,
            )

        result = run_analysis(
            db,
            tenant_id,
            forecast_days=forecast_days,
            historical_days=historical_days,
            site_id=site_id,
            method=method,
        )
    except (InvalidParameterError, DataSourceError, ComputationError) as exc:
        raise _to_http_error(exc) from exc

    return ForecastAnalysisResponse(
        tenant_id=result.tenant_id,
        site_id=result.site_id,
        forecast_days=result.forecast_days,
        historical_days=result.historical_days,
        generated_at=result.generated_at,
        interrupted=result.interrupted,
        summary=summary_to_schema(result.summary),
        items=result.entries,
    )


@router.post("/generate", response_model=ForecastGenerateResponse)
def post_forecast_generate(
    data: ForecastGenerateRequest,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        run, result = generate_forecast_run(
            db,
            tenant_id,
            forecast_days=data.forecast_days,
            historical_days=data.historical_days,
            site_id=data.site_id,
            method=data.method,
        )
    except (InvalidParameterError, DataSourceError) as exc:
        raise _to_http_error(exc) from exc

    return ForecastGenerateResponse(
        status=run.status,
        run_id=run.id,
        summary=summary_to_schema(result.summary),
    )


@router.get("/runs/latest", response_model=ForecastRunSchema)
def get_latest_forecast_run(
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    run = get_latest_run(db, tenant_id)
    if run is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No forecast runs yet",
        )
    return run


@router.get("/items/{item_id}/anomalies", response_model=DemandAnomalyResponse)
def get_item_anomalies(
    item_id: int,
    historical_days: int = Query(90),
    threshold: float = Query(2.0),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        return detect_item_anomalies(
            db,
            tenant_id,
            item_id,
            historical_days=historical_days,
            threshold=threshold,
        )
    except (InvalidParameterError, DataSourceError, ComputationError) as exc:
        raise _to_http_error(exc) from exc


@router.get("/items/{item_id}/seasonal-factors", response_model=SeasonalFactorsResponse)
def get_item_seasonal_factors(
    item_id: int,
    pattern: SeasonalPattern = Query(SeasonalPattern.WEEKLY),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        return item_seasonal_factors(db, tenant_id, item_id, pattern=pattern)
    except (InvalidParameterError, DataSourceError, ComputationError) as exc:
        raise _to_http_error(exc) from exc
