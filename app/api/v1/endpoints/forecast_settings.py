from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.deps import get_tenant_id
from app.core.db import get_db
from app.schemas.forecast_settings import ForecastSettingsRead, ForecastSettingsUpdate
from app.services.forecast_settings import read_forecast_settings, upsert_forecast_settings


router = APIRouter()


@router.get("", response_model=ForecastSettingsRead)
def get_forecast_settings(
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return read_forecast_settings(db, tenant_id)


@router.put("", response_model=ForecastSettingsRead)
def put_forecast_settings(
    data: ForecastSettingsUpdate,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return upsert_forecast_settings(db, tenant_id, data)
