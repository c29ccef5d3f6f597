from __future__ import annotations

import logging
import time
from collections import defaultdict
from datetime import date, datetime, time as dtime, timedelta, timezone
from typing import Callable, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import config
from app.core.forecasting.domain import DemandObservation
from app.core.forecasting.errors import DataSourceError, InsufficientHistoryError
from app.models.models import InventoryEvent


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Event types that count as consumption of an item
CONSUMPTION_EVENT_TYPES = ("ISSUE", "ISSUE_TO_WORKCELL", "MOVE_OUT", "SCRAP", "SHIP")


def read_with_retries(
    db: Session,
    operation: Callable[[], T],
    description: str,
    max_retries: int | None = None,
    backoff_seconds: float | None = None,
) -> T:
    """Run a read, retrying transient SQLAlchemy failures with a linear backoff.

    The session is rolled back after every failure so an aborted transaction
    does not poison the retry or the reads that follow it. Raises
    DataSourceError once all attempts are exhausted.
    """

    if max_retries is None:
        max_retries = config.FORECAST_FETCH_MAX_RETRIES
    if backoff_seconds is None:
        backoff_seconds = config.FORECAST_FETCH_BACKOFF_SECONDS

    attempts = max_retries + 1
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except SQLAlchemyError as exc:
            logger.warning(
                "%s failed (attempt %s/%s): %s", description, attempt, attempts, exc
            )
            db.rollback()
            if attempt == attempts:
                raise DataSourceError(f"{description} failed after {attempts} attempt(s): {exc}") from exc
            time.sleep(backoff_seconds * attempt)

    raise DataSourceError(f"{description} was not attempted")


def _query_consumption(
    db: Session,
    item_id: int,
    start: datetime,
    end: datetime,
    site_id: int | None,
) -> list[tuple[datetime, float]]:
    query = db.query(InventoryEvent.occurred_at, InventoryEvent.quantity).filter(
        InventoryEvent.item_id == item_id,
        InventoryEvent.event_type.in_(CONSUMPTION_EVENT_TYPES),
        InventoryEvent.occurred_at >= start,
        InventoryEvent.occurred_at < end,
    )
    if site_id is not None:
        query = query.filter(InventoryEvent.site_id == site_id)
    return [(occurred_at, float(qty)) for occurred_at, qty in query.all()]


def fetch_demand_history(
    db: Session,
    item_id: int,
    historical_days: int,
    today: date | None = None,
    site_id: int | None = None,
) -> list[DemandObservation]:
    """Daily consumption for the `historical_days` days ending at `today`, zero-filled."""

    today = today or date.today()
    start = today - timedelta(days=historical_days - 1)
    start_dt = datetime.combine(start, dtime.min, tzinfo=timezone.utc)
    end_dt = datetime.combine(today + timedelta(days=1), dtime.min, tzinfo=timezone.utc)

    rows = read_with_retries(
        db,
        lambda: _query_consumption(db, item_id, start_dt, end_dt, site_id),
        f"demand history read for item {item_id}",
    )

    daily: dict[date, float] = defaultdict(float)
    for occurred_at, qty in rows:
        day = occurred_at.date()
        if start <= day <= today:
            daily[day] += abs(qty)

    return [
        DemandObservation(
            item_id=item_id,
            date=start + timedelta(days=offset),
            quantity_consumed=daily.get(start + timedelta(days=offset), 0.0),
        )
        for offset in range(historical_days)
    ]


def ensure_sufficient_history(
    item_id: int,
    observations: Sequence[DemandObservation],
    min_active_days: int = 7,
) -> None:
    active_days = sum(1 for o in observations if o.quantity_consumed > 0)
    if active_days < min_active_days:
        raise InsufficientHistoryError(item_id, active_days, min_active_days)
