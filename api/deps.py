"""
API Dependencies
Service wiring and common dependencies for FastAPI endpoints
"""

import logging
from typing import Optional
from fastapi import Header, HTTPException, Request, status

from config import Settings, engine_config
from actions.activity_log import ActivityLog
from actions.inventory_ledger import InventoryLedger
from actions.reminder_engine import ReminderLifecycleManager, SentReminderRegistry
from services.medication_service import MedicationService
from services.reminder_scheduler import ReminderTicker
from services.schedule_service import ScheduleService
from tools.document_store import DocumentStore, TenantLocks
from tools.notification_service import Notifier
from tools.scheduler import Clock, DueSlotSelector


logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Every service wired once against one store, notifier and clock.

    The app builds a single container at startup; tests build their own
    against an in-memory store.
    """

    def __init__(
        self,
        store: DocumentStore,
        notifier: Notifier,
        clock: Optional[Clock] = None,
        app_settings: Optional[Settings] = None
    ):
        self.store = store
        self.notifier = notifier
        self.clock = clock or Clock()
        self.locks = TenantLocks()

        self.activity_log = ActivityLog(store, self.clock, engine_config.LOG_RETENTION)
        self.ledger = InventoryLedger(
            store,
            self.activity_log,
            notifier,
            self.clock,
            low_stock_threshold=engine_config.LOW_STOCK_THRESHOLD,
        )
        self.engine = ReminderLifecycleManager(
            store,
            notifier,
            self.ledger,
            self.activity_log,
            self.clock,
            registry=SentReminderRegistry(engine_config.DEDUP_TTL_HOURS),
            selector=DueSlotSelector(engine_config.DUE_TOLERANCE_MINUTES),
            locks=self.locks,
        )
        self.medication_service = MedicationService(
            store, self.activity_log, self.ledger, self.clock, locks=self.locks
        )
        self.schedule_service = ScheduleService(
            store, self.activity_log, self.clock, locks=self.locks
        )
        self.ticker = ReminderTicker(
            self.engine,
            store,
            notifier,
            self.activity_log,
            self.clock,
            tick_seconds=app_settings.SCHEDULER_TICK_SECONDS if app_settings else 60,
            summary_time=app_settings.DAILY_SUMMARY_TIME if app_settings else None,
        )


def get_container(request: Request) -> ServiceContainer:
    """Container attached to the app during startup"""
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services are not initialized",
        )
    return container


def get_medication_service(request: Request) -> MedicationService:
    return get_container(request).medication_service


def get_schedule_service(request: Request) -> ScheduleService:
    return get_container(request).schedule_service


def get_engine(request: Request) -> ReminderLifecycleManager:
    return get_container(request).engine


def get_activity_log(request: Request) -> ActivityLog:
    return get_container(request).activity_log


async def get_actor_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id")
) -> str:
    """
    Chat-platform user performing the request
    Raises HTTPException if the header is missing
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header required",
        )
    return x_user_id
