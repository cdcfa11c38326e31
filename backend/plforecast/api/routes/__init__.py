from fastapi import APIRouter

from plforecast.api.routes import analytics, forecasts, health, records, scenarios


api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(forecasts.router)
api_router.include_router(records.router)
api_router.include_router(scenarios.router)
api_router.include_router(analytics.router)
