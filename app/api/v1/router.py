from fastapi import APIRouter

from app.api.v1.endpoints import forecast, forecast_settings

api_router = APIRouter()

api_router.include_router(forecast_settings.router, prefix="/forecast/settings", tags=["forecast-settings"])
api_router.include_router(forecast.router, prefix="/forecast", tags=["forecast"])
