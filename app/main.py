import logging

from fastapi import FastAPI

from app.api.v1.router import api_router
from app.core import config
from app.services.forecast_scheduler import ForecastScheduler


logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Demand Forecasting & Replenishment")
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def _startup_event() -> None:
    scheduler = ForecastScheduler()
    scheduler.start()
    app.state.forecast_scheduler = scheduler


@app.on_event("shutdown")
def _shutdown_event() -> None:
    scheduler = getattr(app.state, "forecast_scheduler", None)
    if scheduler is not None:
        scheduler.shutdown()


@app.get("/")
def root():
    return {"status": "ok", "message": "Forecasting backend running"}
