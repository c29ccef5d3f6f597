from __future__ import annotations

import dataclasses
import math
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Sequence

import numpy as np
from scipy.stats import norm

from app.core.forecasting.domain import (
    DemandObservation,
    ForecastAccuracy,
    ForecastMethod,
    ForecastOutcome,
    ForecastParams,
    ForecastPoint,
    ItemStatistics,
    Trend,
)
from app.core.forecasting.errors import ComputationError, InvalidParameterError
from app.core.forecasting.statistics import as_array, compute_statistics


MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.95
FULL_CONFIDENCE_HISTORY_DAYS = 30

HOLT_WINTERS_BETA = 0.1
HOLT_WINTERS_GAMMA = 0.2
DEFAULT_SEASON_LENGTH = 7


def z_value(confidence_level: float) -> float:
    """Two-sided z-score for a confidence level in (0, 1)."""
    return float(norm.ppf(0.5 + confidence_level / 2.0))


def _linear_fit(x: np.ndarray, y: np.ndarray) -> tuple[float, float]:
    if len(y) < 2:
        return 0.0, float(y.mean()) if len(y) else 0.0
    slope, intercept = np.polyfit(x, y, 1)
    return float(slope), float(intercept)


class BaseForecaster(ABC):
    method: ForecastMethod

    def __init__(self, params: ForecastParams) -> None:
        self.params = params
        self.z = z_value(params.confidence_level)

    @classmethod
    def from_params(cls, params: ForecastParams) -> "BaseForecaster":
        return cls(params)

    @abstractmethod
    def project(
        self,
        values: np.ndarray,
        statistics: ItemStatistics,
        horizon: int,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Return (forecast, bound half-width) arrays of length `horizon`."""


class MovingAverageForecaster(BaseForecaster):
    method = ForecastMethod.MOVING_AVERAGE

    def project(self, values, statistics, horizon):
        window = min(self.params.moving_average_window, len(values))
        level = float(values[-window:].mean())
        return (
            np.full(horizon, level),
            np.full(horizon, self.z * statistics.standard_deviation),
        )


class WeightedMovingAverageForecaster(BaseForecaster):
    """Trailing window average with linearly increasing weights (latest day heaviest)."""

    method = ForecastMethod.WEIGHTED_MOVING_AVERAGE

    def project(self, values, statistics, horizon):
        window = min(self.params.moving_average_window, len(values))
        recent = values[-window:]
        level = float(np.average(recent, weights=np.arange(1, window + 1)))
        return (
            np.full(horizon, level),
            np.full(horizon, self.z * statistics.standard_deviation),
        )


class ExponentialSmoothingForecaster(BaseForecaster):
    method = ForecastMethod.EXPONENTIAL_SMOOTHING

    def smoothed_level(self, values: np.ndarray) -> float:
        alpha = self.params.smoothing_alpha
        level = float(values[0])
        for value in values[1:]:
            level = alpha * float(value) + (1.0 - alpha) * level
        return level

    def project(self, values, statistics, horizon):
        level = self.smoothed_level(values)
        steps = np.arange(1, horizon + 1, dtype=float)

        if statistics.trend != Trend.STABLE and statistics.mean_daily_demand > 0:
            slope, _ = _linear_fit(np.arange(len(values), dtype=float), values)
            relative_slope = slope / statistics.mean_daily_demand
            forecast = level * np.clip(1.0 + relative_slope * steps, 0.0, None)
        else:
            forecast = np.full(horizon, level)

        return forecast, np.full(horizon, self.z * statistics.standard_deviation)


class LinearRegressionForecaster(BaseForecaster):
    """demand = a + b * day, with bounds widening by sqrt(horizon)."""

    method = ForecastMethod.LINEAR_REGRESSION

    def project(self, values, statistics, horizon):
        n = len(values)
        x = np.arange(n, dtype=float)
        slope, intercept = _linear_fit(x, values)

        residuals = values - (intercept + slope * x)
        residual_std = float(residuals.std()) if n > 1 else statistics.standard_deviation

        steps = np.arange(1, horizon + 1, dtype=float)
        forecast = intercept + slope * (n - 1 + steps)
        return forecast, self.z * residual_std * np.sqrt(steps)


class SeasonalForecaster(BaseForecaster):
    """Trend line on the de-seasonalized series, re-seasonalized per cycle position."""

    method = ForecastMethod.SEASONAL

    def project(self, values, statistics, horizon):
        factors = np.asarray(statistics.seasonality_index, dtype=float)
        period = len(factors)
        n = len(values)

        x = np.arange(n, dtype=float)
        in_sample = factors[np.arange(n) % period]
        mask = in_sample > 0
        deseasonalized = np.where(mask, values / np.where(mask, in_sample, 1.0), 0.0)
        slope, intercept = _linear_fit(x[mask], deseasonalized[mask])

        fitted = (intercept + slope * x) * in_sample
        residual_std = float((values - fitted).std())

        steps = np.arange(1, horizon + 1)
        future_factors = factors[(n - 1 + steps) % period]
        forecast = (intercept + slope * (n - 1 + steps)) * future_factors
        return forecast, np.full(horizon, self.z * residual_std)


class HoltWintersForecaster(BaseForecaster):
    """Triple exponential smoothing: additive trend, multiplicative season."""

    method = ForecastMethod.HOLT_WINTERS

    def project(self, values, statistics, horizon):
        season = statistics.seasonal_period or DEFAULT_SEASON_LENGTH
        alpha = self.params.smoothing_alpha
        n = len(values)

        level = float(values[:season].mean())
        trend = float(values[season] - values[0]) / season

        positions = np.arange(n) % season
        seasonal = []
        for pos in range(season):
            bucket_mean = float(values[positions == pos].mean())
            seasonal.append(bucket_mean / level if level > 0 else 1.0)

        for i in range(season, n):
            prev_level = level
            idx = i % season
            factor = seasonal[idx] if seasonal[idx] > 0 else 1.0
            level = alpha * (values[i] / factor) + (1.0 - alpha) * (level + trend)
            trend = HOLT_WINTERS_BETA * (level - prev_level) + (1.0 - HOLT_WINTERS_BETA) * trend
            if level > 0:
                seasonal[idx] = HOLT_WINTERS_GAMMA * (values[i] / level) + (1.0 - HOLT_WINTERS_GAMMA) * seasonal[idx]

        forecast = np.asarray(
            [(level + h * trend) * seasonal[(n - 1 + h) % season] for h in range(1, horizon + 1)],
            dtype=float,
        )
        return forecast, np.full(horizon, self.z * statistics.standard_deviation)


FORECASTERS: dict[ForecastMethod, type[BaseForecaster]] = {
    cls.method: cls
    for cls in (
        MovingAverageForecaster,
        WeightedMovingAverageForecaster,
        ExponentialSmoothingForecaster,
        LinearRegressionForecaster,
        SeasonalForecaster,
        HoltWintersForecaster,
    )
}


def get_forecaster(method: ForecastMethod, params: ForecastParams) -> BaseForecaster:
    try:
        return FORECASTERS[method].from_params(params)
    except KeyError:
        raise InvalidParameterError("method", f"unsupported forecast method: {method}") from None


def resolve_method(method: ForecastMethod, statistics: ItemStatistics) -> ForecastMethod:
    """Map AUTO and inapplicable seasonal methods onto a concrete method."""

    if method == ForecastMethod.AUTO:
        if statistics.seasonality_index is not None:
            return ForecastMethod.SEASONAL
        return ForecastMethod.EXPONENTIAL_SMOOTHING

    if method == ForecastMethod.SEASONAL and statistics.seasonality_index is None:
        return ForecastMethod.EXPONENTIAL_SMOOTHING

    if method == ForecastMethod.HOLT_WINTERS:
        season = statistics.seasonal_period or DEFAULT_SEASON_LENGTH
        if statistics.observation_days < season * 2:
            return ForecastMethod.EXPONENTIAL_SMOOTHING

    return method


def compute_confidence(
    coefficient_of_variation: float,
    history_days: int,
    insufficient_history: bool = False,
) -> float:
    """Monotonic in variability and history length, bounded to [0.1, 0.95]."""

    if insufficient_history:
        return MIN_CONFIDENCE

    confidence = min(max(1.0 - coefficient_of_variation, MIN_CONFIDENCE), MAX_CONFIDENCE)
    if history_days < FULL_CONFIDENCE_HISTORY_DAYS:
        confidence *= max(history_days, 0) / FULL_CONFIDENCE_HISTORY_DAYS
        confidence = max(confidence, MIN_CONFIDENCE)
    return round(confidence, 4)


def _build_points(start_date: date, forecast: np.ndarray, half_width: np.ndarray) -> list[ForecastPoint]:
    points: list[ForecastPoint] = []
    for i, (value, spread) in enumerate(zip(forecast, half_width)):
        value = max(float(value), 0.0)
        spread = abs(float(spread))
        points.append(
            ForecastPoint(
                date=start_date + timedelta(days=i),
                forecasted_quantity=value,
                lower_bound=max(value - spread, 0.0),
                upper_bound=value + spread,
            )
        )
    return points


def generate_forecast(
    observations: Sequence[DemandObservation],
    statistics: ItemStatistics,
    forecast_days: int,
    method: ForecastMethod = ForecastMethod.AUTO,
    params: ForecastParams | None = None,
    start_date: date | None = None,
    insufficient_history: bool = False,
) -> ForecastOutcome:
    """Project daily demand `forecast_days` ahead, starting the day after the window."""

    if not isinstance(forecast_days, int) or forecast_days <= 0:
        raise InvalidParameterError("forecast_days", "must be a positive integer")

    params = params or ForecastParams()
    values = as_array(observations)

    if start_date is None:
        start_date = observations[-1].date + timedelta(days=1) if observations else date.today() + timedelta(days=1)

    try:
        requested = ForecastMethod(method)
    except ValueError:
        raise InvalidParameterError("method", f"unsupported forecast method: {method}") from None
    resolved = resolve_method(requested, statistics)

    if len(values) == 0:
        forecast = np.zeros(forecast_days)
        half_width = np.zeros(forecast_days)
    else:
        forecaster = get_forecaster(resolved, params)
        with np.errstate(divide="ignore", invalid="ignore"):
            forecast, half_width = forecaster.project(values, statistics, forecast_days)

    if not (np.all(np.isfinite(forecast)) and np.all(np.isfinite(half_width))):
        raise ComputationError(f"{resolved.value} produced non-finite forecast values")

    return ForecastOutcome(
        points=_build_points(start_date, forecast, half_width),
        method_used=resolved,
        confidence=compute_confidence(
            statistics.coefficient_of_variation,
            statistics.observation_days,
            insufficient_history,
        ),
    )


def evaluate_accuracy(
    observations: Sequence[DemandObservation],
    method: ForecastMethod = ForecastMethod.AUTO,
    params: ForecastParams | None = None,
    holdout_days: int = 7,
) -> ForecastAccuracy | None:
    """Backtest on a trailing holdout: forecast it from the preceding days.

    Returns None when the window is too short to hold out anything useful.
    """

    params = params or ForecastParams()
    n = len(observations)
    holdout = min(holdout_days, n // 4)
    if holdout < 1 or n - holdout < 7:
        return None

    train = list(observations[:-holdout])
    test = list(observations[-holdout:])
    stats = compute_statistics(train, params)
    outcome = generate_forecast(train, stats, holdout, method, params, start_date=test[0].date)

    actual = as_array(test)
    predicted = np.asarray([p.forecasted_quantity for p in outcome.points], dtype=float)
    errors = actual - predicted

    positive = actual > 0
    mape = float(np.mean(np.abs(errors[positive] / actual[positive])) * 100.0) if positive.any() else 0.0
    rmse = math.sqrt(float(np.mean(errors ** 2)))
    bias = float(np.mean(errors))

    points = [
        dataclasses.replace(point, actual_quantity=float(value))
        for point, value in zip(outcome.points, actual)
    ]

    return ForecastAccuracy(
        mape=round(mape, 2),
        rmse=round(rmse, 4),
        bias=round(bias, 4),
        holdout_days=holdout,
        points=points,
    )
