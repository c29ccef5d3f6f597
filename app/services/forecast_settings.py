from __future__ import annotations

from sqlalchemy.orm import Session

from app.core.forecasting.domain import ForecastMethod, ForecastParams
from app.models.models import ForecastSettings
from app.schemas.forecast_settings import ForecastSettingsRead, ForecastSettingsUpdate


def get_forecast_settings(db: Session, tenant_id: int) -> ForecastSettings | None:
    return (
        db.query(ForecastSettings)
        .filter(ForecastSettings.tenant_id == tenant_id)
        .first()
    )


def resolve_forecast_params(db: Session, tenant_id: int) -> ForecastParams:
    """Tenant settings when present, otherwise the engine defaults."""

    fs = get_forecast_settings(db, tenant_id)
    if fs is None:
        return ForecastParams()

    return ForecastParams(
        smoothing_alpha=fs.smoothing_alpha,
        confidence_level=fs.confidence_level,
        service_level=fs.service_level,
        moving_average_window=fs.moving_average_window,
        min_active_days=fs.min_active_days,
        default_lead_time_days=fs.default_lead_time_days,
    )


def resolve_default_method(db: Session, tenant_id: int) -> ForecastMethod:
    fs = get_forecast_settings(db, tenant_id)
    if fs is None:
        return ForecastMethod.AUTO
    return ForecastMethod(fs.default_method)


def read_forecast_settings(db: Session, tenant_id: int) -> ForecastSettingsRead:
    fs = get_forecast_settings(db, tenant_id)
    if fs is None:
        return ForecastSettingsRead(id=None, tenant_id=tenant_id)
    return ForecastSettingsRead.model_validate(fs, from_attributes=True)


def upsert_forecast_settings(
    db: Session,
    tenant_id: int,
    data: ForecastSettingsUpdate,
) -> ForecastSettingsRead:
    fs = get_forecast_settings(db, tenant_id)
    if fs is None:
        fs = ForecastSettings(tenant_id=tenant_id)
        db.add(fs)

    for field, value in data.model_dump().items():
        if isinstance(value, ForecastMethod):
            value = value.value
        setattr(fs, field, value)

    db.commit()
    db.refresh(fs)
    return ForecastSettingsRead.model_validate(fs, from_attributes=True)
