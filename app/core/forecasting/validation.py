from __future__ import annotations

from app.core.forecasting.errors import InvalidParameterError


ENGINE_DAYS_RANGE = (7, 365)

# Ranges accepted by the forecast endpoints
API_FORECAST_DAYS_RANGE = (7, 90)
API_HISTORICAL_DAYS_RANGE = (30, 365)


def validate_days(field: str, value: int, bounds: tuple[int, int] = ENGINE_DAYS_RANGE) -> int:
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameterError(field, "must be an integer")
    if value < low or value > high:
        raise InvalidParameterError(field, f"must be between {low} and {high}, got {value}")
    return value


def validate_window(
    forecast_days: int,
    historical_days: int,
    forecast_range: tuple[int, int] = ENGINE_DAYS_RANGE,
    historical_range: tuple[int, int] = ENGINE_DAYS_RANGE,
) -> None:
    validate_days("forecast_days", forecast_days, forecast_range)
    validate_days("historical_days", historical_days, historical_range)
