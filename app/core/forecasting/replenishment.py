from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Iterable, Optional

from scipy.stats import norm

from app.core.forecasting.domain import (
    AnalysisSummary,
    CatalogItem,
    EconomicOrderQuantity,
    ForecastOutcome,
    ForecastParams,
    ItemStatistics,
    ReplenishmentAssessment,
    RiskLevel,
    Trend,
)
from app.core.forecasting.errors import ComputationError


OVERSTOCK_HORIZON_MULTIPLIER = 2

DEFAULT_ORDERING_COST = 50.0
DEFAULT_HOLDING_COST_RATE = 0.2

# Advise raising a configured reorder point below this share of the optimized one
REORDER_POINT_LOW_RATIO = 0.8
# Advise smaller orders when stock on hand exceeds this multiple of the optimized point
EXCESS_STOCK_RATIO = 3


def compute_days_of_supply(current_stock: float, mean_daily_demand: float) -> Optional[float]:
    """Days until stockout at the current rate; None when supply is unbounded."""

    if mean_daily_demand > 0:
        return current_stock / mean_daily_demand
    if current_stock > 0:
        return None
    return 0.0


def classify_risk(
    days_of_supply: Optional[float],
    current_stock: float,
    reorder_point: float,
    forecast_days: int,
    lead_time_days: Optional[int] = None,
) -> RiskLevel:
    """Buckets are checked from most to least severe, so ties go to the severe one."""

    at_risk_threshold = lead_time_days if lead_time_days is not None else forecast_days / 3.0
    unbounded = days_of_supply is None

    if not unbounded and days_of_supply < at_risk_threshold:
        return RiskLevel.AT_RISK
    if current_stock <= reorder_point:
        return RiskLevel.LOW_STOCK
    if unbounded or days_of_supply > OVERSTOCK_HORIZON_MULTIPLIER * forecast_days:
        return RiskLevel.OVERSTOCKED
    return RiskLevel.HEALTHY


def classify_replenishment_risk(
    current_stock: float,
    mean_daily_demand: float,
    reorder_point: float,
    forecast_days: int,
    lead_time_days: Optional[int] = None,
) -> RiskLevel:
    return classify_risk(
        compute_days_of_supply(current_stock, mean_daily_demand),
        current_stock,
        reorder_point,
        forecast_days,
        lead_time_days,
    )


def recommended_safety_stock(
    standard_deviation: float,
    lead_time_days: float,
    service_level: float = 0.95,
) -> int:
    if standard_deviation <= 0 or lead_time_days <= 0:
        return 0
    z = float(norm.ppf(service_level))
    return int(math.ceil(z * standard_deviation * math.sqrt(lead_time_days)))


def economic_order_qty(
    annual_demand: float,
    unit_cost: float,
    ordering_cost: float = DEFAULT_ORDERING_COST,
    holding_cost_rate: float = DEFAULT_HOLDING_COST_RATE,
) -> EconomicOrderQuantity:
    """Wilson lot size sqrt(2DS/H), with H the yearly holding cost of one unit.

    Without a holding cost the whole annual demand is ordered at once.
    """

    holding_cost = unit_cost * holding_cost_rate
    if holding_cost > 0:
        quantity = math.sqrt(2 * annual_demand * ordering_cost / holding_cost)
    else:
        quantity = annual_demand

    orders_per_year = annual_demand / quantity if quantity > 0 else 0.0
    total_annual_cost = orders_per_year * ordering_cost + quantity / 2 * holding_cost

    return EconomicOrderQuantity(
        annual_demand=annual_demand,
        ordering_cost=ordering_cost,
        holding_cost_rate=holding_cost_rate,
        unit_cost=unit_cost,
        quantity=int(round(quantity)),
        orders_per_year=round(orders_per_year, 1),
        total_annual_cost=round(total_annual_cost, 2),
    )


def apply_order_constraints(
    quantity: float,
    min_order_qty: Optional[float] = None,
    max_order_qty: Optional[float] = None,
    order_multiple: Optional[float] = None,
) -> int:
    """Clamp a positive order to the item's limits, then round up to the pack multiple.

    A zero quantity means nothing to order and is returned unchanged.
    """

    if quantity <= 0:
        return 0
    if min_order_qty:
        quantity = max(quantity, min_order_qty)
    if max_order_qty:
        quantity = min(quantity, max_order_qty)
    if order_multiple:
        quantity = math.ceil(quantity / order_multiple) * order_multiple
    return int(math.ceil(quantity))


def optimized_reorder_point(
    mean_daily_demand: float,
    lead_time_days: float,
    safety_stock: float,
) -> int:
    return int(round(mean_daily_demand * lead_time_days + safety_stock))


def reorder_point_advice(
    optimized: int,
    configured_reorder_point: Optional[float],
    current_stock: float,
) -> list[str]:
    advice: list[str] = []
    if configured_reorder_point is not None and configured_reorder_point < optimized * REORDER_POINT_LOW_RATIO:
        advice.append(f"Current reorder point may be too low. Recommend increasing to {optimized}.")
    if optimized > 0 and current_stock > optimized * EXCESS_STOCK_RATIO:
        advice.append(
            f"Stock on hand ({current_stock:.0f}) is high. Consider reducing order quantities."
        )
    return advice


def build_recommendation(
    risk_level: RiskLevel,
    trend: Trend,
    days_of_supply: Optional[float],
    reorder_qty: int,
    reorder_date: Optional[date],
) -> str:
    if risk_level == RiskLevel.AT_RISK:
        return (
            f"Reorder immediately, {days_of_supply:.1f}d supply remaining. "
            f"Suggested order quantity: {reorder_qty}."
        )

    if risk_level == RiskLevel.LOW_STOCK:
        by_date = f" by {reorder_date.isoformat()}" if reorder_date is not None else ""
        return (
            f"Stock is at or below the reorder point. "
            f"Place an order of {reorder_qty}{by_date}."
        )

    if risk_level == RiskLevel.OVERSTOCKED:
        if days_of_supply is None:
            return "No measured demand for stock on hand. Consider reducing next order quantity."
        return (
            f"Consider reducing next order quantity, {days_of_supply:.0f}d of supply on hand."
        )

    if trend == Trend.INCREASING:
        return "Demand is increasing. Consider raising reorder point and safety stock levels."
    if trend == Trend.DECREASING:
        return "Demand is decreasing. Consider reducing order quantities to lower carrying costs."
    return "Stock levels are adequate for forecasted demand. Continue monitoring."


def assess_replenishment(
    item: CatalogItem,
    statistics: ItemStatistics,
    forecast: ForecastOutcome,
    current_stock: float,
    reorder_point: Optional[float],
    safety_stock: Optional[float],
    forecast_days: int,
    params: ForecastParams | None = None,
    today: date | None = None,
    insufficient_history: bool = False,
) -> ReplenishmentAssessment:
    """Combine a forecast with stock levels into a risk bucket and reorder advice.

    Missing reorder inputs never raise: safety stock defaults to 0 and the
    reorder point to mean demand over the default lead time, and the
    assessment is flagged with `using_defaults`.
    """

    params = params or ForecastParams()
    today = today or date.today()
    mean = statistics.mean_daily_demand

    defaults_applied: list[str] = []
    notes: list[str] = []
    configured_reorder_point = reorder_point

    if safety_stock is None:
        safety_stock = 0.0
        defaults_applied.append("safety_stock")
    if reorder_point is None:
        reorder_point = mean * params.default_lead_time_days
        defaults_applied.append("reorder_point")

    lead_time_days = item.lead_time_days
    if lead_time_days is None:
        effective_lead_time = forecast_days / 3.0
        notes.append("No lead time set; at-risk threshold uses a third of the forecast horizon.")
    else:
        effective_lead_time = float(lead_time_days)

    if insufficient_history:
        notes.append("Insufficient demand history; forecast confidence is low.")

    forecasted_demand = float(sum(p.forecasted_quantity for p in forecast.points))
    days_of_supply = compute_days_of_supply(current_stock, mean)
    risk_level = classify_risk(days_of_supply, current_stock, reorder_point, forecast_days, lead_time_days)

    for label, value in (("forecasted demand", forecasted_demand), ("reorder point", reorder_point)):
        if not math.isfinite(value):
            raise ComputationError(f"non-finite {label} for item {item.item_id}")

    shortfall = round(forecasted_demand + safety_stock - current_stock, 6)
    suggested_reorder_qty = apply_order_constraints(
        max(shortfall, 0.0), item.min_order_qty, item.max_order_qty, item.order_multiple
    )

    if days_of_supply is None:
        suggested_reorder_date = None
    else:
        offset = max(math.floor(days_of_supply - effective_lead_time), 0)
        suggested_reorder_date = today + timedelta(days=offset)

    sizing_lead_time = lead_time_days if lead_time_days is not None else params.default_lead_time_days
    safety_stock_target = recommended_safety_stock(
        statistics.standard_deviation, sizing_lead_time, params.service_level
    )
    optimized = optimized_reorder_point(mean, sizing_lead_time, safety_stock_target)

    eoq = None
    if item.unit_cost and mean > 0:
        eoq = economic_order_qty(mean * 365, item.unit_cost)

    return ReplenishmentAssessment(
        item_id=item.item_id,
        current_stock=current_stock,
        average_demand=mean,
        forecasted_demand=forecasted_demand,
        reorder_point=reorder_point,
        safety_stock=safety_stock,
        lead_time_days=lead_time_days,
        days_of_supply=days_of_supply,
        trend=statistics.trend,
        confidence=forecast.confidence,
        risk_level=risk_level,
        recommendation=build_recommendation(
            risk_level,
            statistics.trend,
            days_of_supply,
            suggested_reorder_qty,
            suggested_reorder_date,
        ),
        suggested_reorder_qty=suggested_reorder_qty,
        suggested_reorder_date=suggested_reorder_date,
        recommended_safety_stock=safety_stock_target,
        optimized_reorder_point=optimized,
        reorder_point_advice=reorder_point_advice(optimized, configured_reorder_point, current_stock),
        economic_order_qty=eoq,
        using_defaults=bool(defaults_applied),
        defaults_applied=defaults_applied,
        insufficient_history=insufficient_history,
        notes=notes,
    )


def tally_summary(risk_levels: Iterable[RiskLevel]) -> AnalysisSummary:
    summary = AnalysisSummary()
    for level in risk_levels:
        if level == RiskLevel.UNKNOWN:
            continue
        summary.total_items += 1
        if level == RiskLevel.HEALTHY:
            summary.healthy += 1
        elif level == RiskLevel.LOW_STOCK:
            summary.low_stock += 1
        elif level == RiskLevel.AT_RISK:
            summary.at_risk += 1
        elif level == RiskLevel.OVERSTOCKED:
            summary.overstocked += 1
    return summary
