from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from app.core.forecasting.domain import (
    DemandAnomaly,
    DemandObservation,
    ForecastParams,
    ItemStatistics,
    Trend,
)
from app.core.forecasting.errors import ComputationError


# Below this many days no seasonal pattern is looked for.
MIN_SEASONALITY_DAYS = 14
SEASONAL_CANDIDATE_PERIODS = (7, 30)

WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTH_LABELS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def as_array(observations: Sequence[DemandObservation]) -> np.ndarray:
    return np.asarray([o.quantity_consumed for o in observations], dtype=float)


def classify_trend(values: np.ndarray, noise_threshold: float = 0.10) -> tuple[Trend, float]:
    """Compare the most recent third of the window with the earliest third.

    Returns the trend label and the relative change in percent.
    """

    n = len(values)
    if n < 3:
        return Trend.STABLE, 0.0

    third = n // 3
    earliest = float(values[:third].mean())
    recent = float(values[-third:].mean())

    if earliest == 0.0:
        if recent > 0.0:
            return Trend.INCREASING, 100.0
        return Trend.STABLE, 0.0

    change = (recent - earliest) / earliest
    if change > noise_threshold:
        trend = Trend.INCREASING
    elif change < -noise_threshold:
        trend = Trend.DECREASING
    else:
        trend = Trend.STABLE

    return trend, round(change * 100.0, 1)


def autocorrelation(values: np.ndarray, lag: int) -> float:
    n = len(values)
    if lag <= 0 or n < lag * 2:
        return 0.0

    centered = values - values.mean()
    denominator = float(np.sum(centered ** 2))
    if denominator == 0.0:
        return 0.0

    numerator = float(np.sum(centered[: n - lag] * centered[lag:]))
    return numerator / denominator


def seasonal_index(values: np.ndarray, period: int) -> tuple[float, ...] | None:
    """Grouped-average ratio per cycle position, relative to the overall mean."""

    overall = float(values.mean()) if len(values) else 0.0
    if overall <= 0.0:
        return None

    positions = np.arange(len(values)) % period
    factors = []
    for pos in range(period):
        bucket = values[positions == pos]
        factors.append(float(bucket.mean()) / overall if len(bucket) else 1.0)
    return tuple(round(f, 6) for f in factors)


def detect_seasonality(
    values: np.ndarray,
    threshold: float = 0.5,
    candidate_periods: Sequence[int] = SEASONAL_CANDIDATE_PERIODS,
) -> tuple[int | None, float, tuple[float, ...] | None]:
    """Return (period, strength, index) for the strongest repeating pattern.

    A period is only considered when the window holds at least two full
    cycles, and never below MIN_SEASONALITY_DAYS observations.
    """

    n = len(values)
    if n < MIN_SEASONALITY_DAYS:
        return None, 0.0, None

    best_period: int | None = None
    best_strength = 0.0
    strongest_seen = 0.0

    for period in candidate_periods:
        if n < period * 2:
            continue
        ac = autocorrelation(values, period)
        strongest_seen = max(strongest_seen, ac)
        if ac > threshold and ac > best_strength:
            best_period = period
            best_strength = ac

    if best_period is None:
        return None, round(strongest_seen, 4), None

    index = seasonal_index(values, best_period)
    if index is None:
        return None, round(strongest_seen, 4), None
    return best_period, round(best_strength, 4), index


def compute_statistics(
    observations: Sequence[DemandObservation],
    params: ForecastParams | None = None,
) -> ItemStatistics:
    params = params or ForecastParams()
    values = as_array(observations)
    n = len(values)

    if n == 0:
        return ItemStatistics(
            mean_daily_demand=0.0,
            standard_deviation=0.0,
            coefficient_of_variation=0.0,
            trend=Trend.STABLE,
            trend_change_percent=0.0,
            observation_days=0,
            active_days=0,
        )

    mean = float(values.mean())
    std = float(values.std())
    if mean > 0.0 and std > 0.0:
        cv = std / mean
    else:
        cv = 0.0

    for label, value in (("mean", mean), ("standard deviation", std), ("coefficient of variation", cv)):
        if not math.isfinite(value):
            raise ComputationError(f"non-finite {label} computed from demand history")

    trend, change_percent = classify_trend(values, params.trend_noise_threshold)
    period, strength, index = detect_seasonality(values, params.seasonality_threshold)

    return ItemStatistics(
        mean_daily_demand=mean,
        standard_deviation=std,
        coefficient_of_variation=cv,
        trend=trend,
        trend_change_percent=change_percent,
        observation_days=n,
        active_days=int(np.count_nonzero(values > 0)),
        seasonality_index=index,
        seasonal_period=period,
        seasonal_strength=strength,
    )


def detect_anomalies(
    observations: Sequence[DemandObservation],
    threshold: float = 2.0,
) -> list[DemandAnomaly]:
    """Days whose consumption is more than `threshold` standard deviations from the mean."""

    values = as_array(observations)
    if len(values) == 0:
        return []

    mean = float(values.mean())
    std = float(values.std())
    if std == 0.0:
        return []

    anomalies: list[DemandAnomaly] = []
    for obs, value in zip(observations, values):
        z = (float(value) - mean) / std
        if abs(z) > threshold:
            anomalies.append(
                DemandAnomaly(
                    date=obs.date,
                    quantity=float(value),
                    expected=mean,
                    z_score=round(z, 3),
                    kind="SPIKE" if value > mean else "DROP",
                )
            )
    return anomalies


def calendar_seasonal_factors(
    observations: Sequence[DemandObservation],
    pattern: str = "weekly",
) -> list[tuple[str, float]]:
    """Average demand per weekday (or month) divided by the overall mean.

    Buckets with no observations, or an overall mean of zero, get factor 1.0.
    """

    if pattern == "weekly":
        labels = WEEKDAY_LABELS
        key = lambda d: d.weekday()  # noqa: E731
    elif pattern == "monthly":
        labels = MONTH_LABELS
        key = lambda d: d.month - 1  # noqa: E731
    else:
        raise ValueError(f"unsupported seasonal pattern: {pattern}")

    totals = [0.0] * len(labels)
    counts = [0] * len(labels)
    for obs in observations:
        idx = key(obs.date)
        totals[idx] += obs.quantity_consumed
        counts[idx] += 1

    values = as_array(observations)
    overall = float(values.mean()) if len(values) else 0.0

    factors: list[tuple[str, float]] = []
    for label, total, count in zip(labels, totals, counts):
        if overall > 0.0 and count > 0:
            factors.append((label, round((total / count) / overall, 4)))
        else:
            factors.append((label, 1.0))
    return factors
