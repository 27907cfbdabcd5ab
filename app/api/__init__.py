# app/api/__init__.py
"""
Router principal de la API
"""
from fastapi import APIRouter

from app.core.config import get_settings
from . import medications, doses, skip_dates, schedule, notifications, audit, catalog

settings = get_settings()

# Router principal de la API
api_router = APIRouter()

api_router.include_router(
    medications.router,
    prefix="/medications",
    tags=["medications"]
)

api_router.include_router(
    doses.router,
    prefix="/doses",
    tags=["doses"]
)

api_router.include_router(
    skip_dates.router,
    prefix="/skip-dates",
    tags=["skip-dates"]
)

api_router.include_router(
    schedule.router,
    prefix="/schedule",
    tags=["schedule"]
)

api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=["notifications"]
)

api_router.include_router(
    audit.router,
    prefix="/audit",
    tags=["audit"]
)

api_router.include_router(
    catalog.router,
    prefix="/catalog",
    tags=["catalog"]
)


# Endpoints adicionales de la API
@api_router.get("/health")
async def api_health():
    """Health check específico de la API"""
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION
    }
