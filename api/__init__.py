"""
API Module
FastAPI routers for the MedTrack application
"""

from api.medicines import router as medicines_router
from api.schedules import router as schedules_router
from api.reminders import router as reminders_router, manual_router as intake_router
from api.activity import router as activity_router

from api.deps import (
    ServiceContainer,
    get_container,
    get_actor_id,
)


__all__ = [
    # Routers
    "medicines_router",
    "schedules_router",
    "reminders_router",
    "intake_router",
    "activity_router",
    # Dependencies
    "ServiceContainer",
    "get_container",
    "get_actor_id",
]


def include_routers(app, prefix: str = "/api/v1"):
    """
    Include all API routers in the FastAPI app

    Usage:
        from api import include_routers
        include_routers(app)
    """
    app.include_router(medicines_router, prefix=prefix)
    app.include_router(schedules_router, prefix=prefix)
    app.include_router(reminders_router, prefix=prefix)
    app.include_router(intake_router, prefix=prefix)
    app.include_router(activity_router, prefix=prefix)
