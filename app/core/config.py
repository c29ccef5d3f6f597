from __future__ import annotations

import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./forecast.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

FORECAST_SCHEDULER_ENABLED = _env_bool("FORECAST_SCHEDULER_ENABLED", "true")
FORECAST_SCHEDULER_INTERVAL_MINUTES = int(os.getenv("FORECAST_SCHEDULER_INTERVAL_MINUTES", "360"))

# Extra attempts after the first failed history/stock read
FORECAST_FETCH_MAX_RETRIES = int(os.getenv("FORECAST_FETCH_MAX_RETRIES", "2"))
FORECAST_FETCH_BACKOFF_SECONDS = float(os.getenv("FORECAST_FETCH_BACKOFF_SECONDS", "0.2"))
