from pydantic import BaseModel, ConfigDict, Field

from app.core.forecasting.domain import ForecastMethod


class ForecastSettingsBase(BaseModel):
    default_forecast_days: int = Field(30, ge=7, le=90)
    default_historical_days: int = Field(90, ge=30, le=365)
    default_method: ForecastMethod = ForecastMethod.AUTO
    default_lead_time_days: int = Field(14, ge=0, le=365)
    smoothing_alpha: float = Field(0.3, gt=0, lt=1)
    confidence_level: float = Field(0.9, gt=0, lt=1)
    service_level: float = Field(0.95, gt=0, lt=1)
    moving_average_window: int = Field(7, ge=1, le=90)
    min_active_days: int = Field(7, ge=1, le=365)
    auto_generate: bool = False


class ForecastSettingsUpdate(ForecastSettingsBase):
    pass


class ForecastSettingsRead(ForecastSettingsBase):
    model_config = ConfigDict(from_attributes=True)

    id: int | None
    tenant_id: int
