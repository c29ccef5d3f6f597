from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional


class Trend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class RiskLevel(str, Enum):
    HEALTHY = "healthy"
    LOW_STOCK = "low_stock"
    AT_RISK = "at_risk"
    OVERSTOCKED = "overstocked"
    UNKNOWN = "unknown"


class ForecastMethod(str, Enum):
    AUTO = "auto"
    MOVING_AVERAGE = "moving_average"
    WEIGHTED_MOVING_AVERAGE = "weighted_moving_average"
    EXPONENTIAL_SMOOTHING = "exponential_smoothing"
    LINEAR_REGRESSION = "linear_regression"
    SEASONAL = "seasonal"
    HOLT_WINTERS = "holt_winters"


@dataclass(frozen=True)
class ForecastParams:
    """Tunable parameters for one analysis run.

    Built from the tenant's ForecastSettings row, or from module defaults
    when the tenant has none.
    """

    smoothing_alpha: float = 0.3
    """Smoothing constant for exponential smoothing (level)."""

    confidence_level: float = 0.90
    """Two-sided confidence level used for forecast bounds."""

    service_level: float = 0.95
    """Service level used for the recommended safety stock."""

    moving_average_window: int = 7
    """Trailing window (days) for the moving-average methods."""

    min_active_days: int = 7
    """Minimum number of days with consumption before history is considered sufficient."""

    default_lead_time_days: int = 14
    """Lead time used to derive a default reorder point."""

    trend_noise_threshold: float = 0.10
    """Relative change between earliest and latest third below which trend is stable."""

    seasonality_threshold: float = 0.5
    """Autocorrelation above which a seasonal period is accepted."""


@dataclass(frozen=True)
class DemandObservation:
    item_id: int
    date: date
    quantity_consumed: float


@dataclass(frozen=True)
class ForecastPoint:
    date: date
    forecasted_quantity: float
    lower_bound: float
    upper_bound: float
    actual_quantity: Optional[float] = None


@dataclass(frozen=True)
class ItemStatistics:
    mean_daily_demand: float
    standard_deviation: float
    coefficient_of_variation: float
    trend: Trend
    trend_change_percent: float
    observation_days: int
    active_days: int
    seasonality_index: Optional[tuple[float, ...]] = None
    """Multiplier per position in the seasonal cycle; None when no pattern was detected."""
    seasonal_period: Optional[int] = None
    seasonal_strength: float = 0.0


@dataclass(frozen=True)
class ForecastOutcome:
    points: list[ForecastPoint]
    method_used: ForecastMethod
    confidence: float


@dataclass(frozen=True)
class ForecastAccuracy:
    mape: float
    rmse: float
    bias: float
    holdout_days: int
    points: list[ForecastPoint] = field(default_factory=list)
    """Holdout forecast points with actual_quantity filled in."""


@dataclass(frozen=True)
class DemandAnomaly:
    date: date
    quantity: float
    expected: float
    z_score: float
    kind: str


@dataclass(frozen=True)
class CatalogItem:
    """Item fields the analyzer needs; reorder inputs are optional."""

    item_id: int
    sku: str | None
    name: str
    reorder_point: Optional[float] = None
    safety_stock: Optional[float] = None
    lead_time_days: Optional[int] = None
    min_order_qty: Optional[float] = None
    max_order_qty: Optional[float] = None
    order_multiple: Optional[float] = None
    unit_cost: Optional[float] = None


@dataclass
class EconomicOrderQuantity:
    annual_demand: float
    ordering_cost: float
    holding_cost_rate: float
    unit_cost: float
    quantity: int
    orders_per_year: float
    total_annual_cost: float


@dataclass
class ReplenishmentAssessment:
    item_id: int
    current_stock: float
    average_demand: float
    forecasted_demand: float
    reorder_point: float
    safety_stock: float
    lead_time_days: Optional[int]
    days_of_supply: Optional[float]
    """None means unbounded (no measured demand while stock is held)."""
    trend: Trend
    confidence: float
    risk_level: RiskLevel
    recommendation: str
    suggested_reorder_qty: int
    suggested_reorder_date: Optional[date]
    recommended_safety_stock: int
    optimized_reorder_point: int = 0
    reorder_point_advice: list[str] = field(default_factory=list)
    economic_order_qty: Optional[EconomicOrderQuantity] = None
    using_defaults: bool = False
    defaults_applied: list[str] = field(default_factory=list)
    insufficient_history: bool = False
    notes: list[str] = field(default_factory=list)


@dataclass
class AnalysisSummary:
    total_items: int = 0
    healthy: int = 0
    low_stock: int = 0
    at_risk: int = 0
    overstocked: int = 0
