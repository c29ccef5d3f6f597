from __future__ import annotations

import datetime as dt
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from app.core.forecasting.domain import ForecastMethod, RiskLevel, Trend


class ItemAnalysisStatus(str, Enum):
    OK = "ok"
    INSUFFICIENT_DATA = "insufficient_data"
    FAILED = "failed"


class DemandObservationSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: dt.date
    quantity_consumed: float


class ForecastPointSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: dt.date
    forecasted_quantity: float
    lower_bound: float
    upper_bound: float
    actual_quantity: float | None = None


class ItemStatisticsSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    mean_daily_demand: float
    standard_deviation: float
    coefficient_of_variation: float
    trend: Trend
    trend_change_percent: float
    observation_days: int
    active_days: int
    seasonality_index: list[float] | None = None
    seasonal_period: int | None = None
    seasonal_strength: float = 0.0


class EconomicOrderQuantitySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    annual_demand: float
    ordering_cost: float
    holding_cost_rate: float
    unit_cost: float
    quantity: int
    orders_per_year: float
    total_annual_cost: float


class ReplenishmentAssessmentSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: int
    current_stock: float
    average_demand: float
    forecasted_demand: float
    reorder_point: float
    safety_stock: float
    lead_time_days: int | None
    days_of_supply: float | None
    unbounded_supply: bool = False
    trend: Trend
    confidence: float
    risk_level: RiskLevel
    recommendation: str
    suggested_reorder_qty: int
    suggested_reorder_date: dt.date | None
    recommended_safety_stock: int
    optimized_reorder_point: int = 0
    reorder_point_advice: list[str] = []
    economic_order_qty: EconomicOrderQuantitySchema | None = None
    using_defaults: bool
    defaults_applied: list[str]
    insufficient_history: bool
    notes: list[str]


class AnalysisSummarySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_items: int
    healthy: int
    low_stock: int
    at_risk: int
    overstocked: int


class ItemAnalysisEntry(BaseModel):
    item_id: int
    sku: str | None
    name: str
    status: ItemAnalysisStatus
    risk_level: RiskLevel
    method_used: ForecastMethod | None = None
    assessment: ReplenishmentAssessmentSchema | None = None
    error: str | None = None


class ForecastAnalysisResponse(BaseModel):
    tenant_id: int
    site_id: int | None
    forecast_days: int
    historical_days: int
    generated_at: dt.datetime
    interrupted: bool = False
    summary: AnalysisSummarySchema
    items: list[ItemAnalysisEntry]


class ForecastAccuracySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    mape: float
    rmse: float
    bias: float
    holdout_days: int
    points: list[ForecastPointSchema]


class DemandAnomalySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: dt.date
    quantity: float
    expected: float
    z_score: float
    kind: str


class ItemForecastDetailResponse(BaseModel):
    item_id: int
    sku: str | None
    name: str
    forecast_days: int
    historical_days: int
    method_used: ForecastMethod
    insufficient_history: bool
    history: list[DemandObservationSchema]
    forecast: list[ForecastPointSchema]
    statistics: ItemStatisticsSchema
    assessment: ReplenishmentAssessmentSchema
    accuracy: ForecastAccuracySchema | None = None
    anomalies: list[DemandAnomalySchema] = Field(default_factory=list)


class ForecastGenerateRequest(BaseModel):
    forecast_days: int = 30
    historical_days: int = 90
    site_id: int | None = None
    method: ForecastMethod | None = None


class ForecastGenerateResponse(BaseModel):
    status: str
    run_id: int | None = None
    summary: AnalysisSummarySchema | None = None


class ForecastRunItemSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: int
    status: ItemAnalysisStatus
    risk_level: RiskLevel
    current_stock: float | None
    average_demand: float | None
    forecasted_demand: float | None
    days_of_supply: float | None
    confidence: float | None
    suggested_reorder_qty: int | None
    suggested_reorder_date: dt.date | None
    recommendation: str | None
    using_defaults: bool
    error: str | None


class ForecastRunSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    site_id: int | None
    created_at: dt.datetime
    forecast_days: int
    historical_days: int
    method: ForecastMethod
    status: str
    total_items: int
    healthy: int
    low_stock: int
    at_risk: int
    overstocked: int
    unavailable_items: int
    interrupted: bool
    items: list[ForecastRunItemSchema]


class DemandAnomalyResponse(BaseModel):
    item_id: int
    historical_days: int
    threshold: float
    anomalies: list[DemandAnomalySchema]


class SeasonalPattern(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SeasonalFactorSchema(BaseModel):
    period: str
    factor: float


class SeasonalFactorsResponse(BaseModel):
    item_id: int
    pattern: SeasonalPattern
    factors: list[SeasonalFactorSchema]
