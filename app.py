"""
MedTrack Backend
Main FastAPI application with the background reminder ticker
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Configuration and database
from config import settings
from database import SessionLocal, init_db, DatabaseHealthCheck

from exceptions import (
    MedTrackError,
    NotFoundError,
    PermissionDenied,
    StaleTransition,
    StoreUnavailable,
    ValidationError,
)
from api import include_routers, ServiceContainer
from tools.document_store import SqlDocumentStore
from tools.notification_service import build_notifier

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


# ==================== LIFESPAN ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown"""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENV}")

    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    if getattr(app.state, "container", None) is None:
        app.state.container = ServiceContainer(
            SqlDocumentStore(SessionLocal),
            build_notifier(settings),
            app_settings=settings,
        )

    ticker_task = None
    if settings.SCHEDULER_ENABLED:
        ticker_task = asyncio.create_task(app.state.container.ticker.run())
        logger.info("Reminder ticker scheduled")

    yield

    # Shutdown
    if ticker_task is not None:
        app.state.container.ticker.stop()
        await ticker_task
    close = getattr(app.state.container.notifier, "close", None)
    if close:
        close()
    logger.info(f"Shutting down {settings.APP_NAME}")


# ==================== APP INITIALIZATION ====================

app = FastAPI(
    title=settings.APP_NAME,
    description="""
    ## MedTrack API

    Meal-relative medicine reminders with escalation to trackers.

    ### Features
    - **Meal-window scheduling**: reminders before or after breakfast, lunch and dinner
    - **Reminder lifecycle**: taken / missed / snooze with automatic escalation
    - **Tracker verification**: trackers confirm escalated doses and record manual intake
    - **Inventory**: dose counts with low-stock alerts
    - **Activity log**: audit trail and daily compliance summary
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Attach modular API routers
include_routers(app, prefix=settings.API_PREFIX)


# ==================== EXCEPTION HANDLERS ====================

ERROR_STATUS = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    StaleTransition: status.HTTP_409_CONFLICT,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "message": message,
            "status_code": status_code,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **extra,
        }
    )


@app.exception_handler(MedTrackError)
async def medtrack_exception_handler(request: Request, exc: MedTrackError):
    status_code = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    if isinstance(exc, ValidationError):
        return error_response(status_code, exc.message, field=exc.field)
    return error_response(status_code, str(exc))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(exc.status_code, exc.detail)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return error_response(
        500,
        "An unexpected error occurred" if not settings.DEBUG else str(exc),
    )


# ==================== HEALTH ====================

@app.get("/", tags=["Health"])
async def root():
    """Root endpoint"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }


@app.get("/health", tags=["Health"])
def health_check():
    """Database connectivity and ticker status"""
    database = DatabaseHealthCheck.is_connected()
    return {
        "status": "healthy" if database else "degraded",
        "database": "connected" if database else "unavailable",
        "tables": DatabaseHealthCheck.get_table_counts() if database else {},
        "scheduler_enabled": settings.SCHEDULER_ENABLED,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ==================== MAIN ====================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
