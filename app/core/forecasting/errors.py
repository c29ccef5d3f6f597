from __future__ import annotations


class ForecastError(Exception):
    """Base class for all forecasting engine errors."""


class InvalidParameterError(ForecastError):
    """Raised before any computation when an input is out of range or unknown."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class InsufficientHistoryError(ForecastError):
    """Too few days with consumption to forecast reliably.

    Callers recover from this locally by producing a low-confidence forecast.
    """

    def __init__(self, item_id: int, active_days: int, min_active_days: int) -> None:
        super().__init__(
            f"item {item_id} has {active_days} day(s) with consumption, "
            f"at least {min_active_days} required"
        )
        self.item_id = item_id
        self.active_days = active_days
        self.min_active_days = min_active_days


class DataSourceError(ForecastError):
    """Historical or stock read failed after retries."""


class ComputationError(ForecastError):
    """Unexpected numeric failure (NaN/inf) in statistics or forecasting."""
