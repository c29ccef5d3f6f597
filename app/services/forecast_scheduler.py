from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from app.core import config
from app.core.db import SessionLocal, engine
from app.core.forecasting.domain import ForecastMethod
from app.core.locks import PgAdvisoryLock
from app.models.models import ForecastSettings
from app.services.forecast_runs import generate_forecast_run


logger = logging.getLogger(__name__)

SCHEDULER_LOCK_KEY = 9_223_372_036_854_770_101


class ForecastScheduler:
    """Background scheduler that regenerates forecast runs.

    Every tick produces one run per tenant with `auto_generate` enabled in
    its forecast settings. Controlled from FastAPI startup/shutdown events.
    """

    def __init__(self, interval_minutes: int | None = None) -> None:
        self._interval_minutes = interval_minutes or config.FORECAST_SCHEDULER_INTERVAL_MINUTES
        self._scheduler: Optional[BackgroundScheduler] = None
        self._cancel_event = threading.Event()

        # One scheduling instance per database
        self._lock = PgAdvisoryLock(engine, SCHEDULER_LOCK_KEY)

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if not config.FORECAST_SCHEDULER_ENABLED:
            logger.warning("ForecastScheduler disabled via FORECAST_SCHEDULER_ENABLED")
            return

        if self.running:
            logger.warning("ForecastScheduler already running, skipping start")
            return

        if not self._lock.acquire():
            logger.warning("ForecastScheduler disabled (advisory lock not acquired)")
            return

        self._cancel_event.clear()
        scheduler = BackgroundScheduler(timezone="UTC")
        scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(minutes=self._interval_minutes),
            id="forecast_run_job",
            replace_existing=True,
            max_instances=1,
            next_run_time=datetime.now(timezone.utc),
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.warning("ForecastScheduler started with interval %s minutes", self._interval_minutes)

    def shutdown(self) -> None:
        """Stop the scheduler; an in-flight run stops before its next item."""
        self._cancel_event.set()
        if self._scheduler is not None:
            try:
                self._scheduler.shutdown(wait=False)
                logger.warning("ForecastScheduler stopped")
            finally:
                self._scheduler = None

        self._lock.release()

    def run_once(self, db: Session | None = None) -> list[int]:
        """Generate a run for every auto-generate tenant; returns run ids.

        Failures are logged per tenant so one tenant cannot starve the rest.
        """
        owns_session = db is None
        db = db or SessionLocal()
        run_ids: list[int] = []
        try:
            tenants = (
                db.query(ForecastSettings)
                .filter(ForecastSettings.auto_generate.is_(True))
                .order_by(ForecastSettings.tenant_id)
                .all()
            )
            for fs in tenants:
                if self._cancel_event.is_set():
                    break
                try:
                    run, _ = generate_forecast_run(
                        db,
                        fs.tenant_id,
                        forecast_days=fs.default_forecast_days,
                        historical_days=fs.default_historical_days,
                        method=ForecastMethod(fs.default_method),
                        cancel_event=self._cancel_event,
                    )
                    run_ids.append(run.id)
                except Exception:
                    logger.exception("Scheduled forecast run failed for tenant %s", fs.tenant_id)
                    db.rollback()
            logger.info("Scheduled forecast tick produced %s runs", len(run_ids))
        finally:
            if owns_session:
                db.close()
        return run_ids
