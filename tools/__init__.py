"""
Tools Package
Scheduling, storage and notification building blocks for MedTrack
"""

from .meal_windows import (
    MealWindow,
    MealWindowConfig,
    load_meal_config,
    validate_meal_config,
    parse_hhmm,
    shift_hhmm,
)

from .scheduler import (
    ScheduleSlot,
    ScheduleCompiler,
    DueSlotSelector,
    Clock,
    schedule_compiler,
    due_slot_selector,
    slot_id_for,
    occurrence_date,
)

from .document_store import (
    DocumentStore,
    SqlDocumentStore,
    TenantLocks,
    default_document,
)

from .notification_service import (
    DeliveryHandle,
    Notifier,
    LoggingNotifier,
    WebhookNotifier,
    build_notifier,
)

__all__ = [
    # Meal windows
    "MealWindow",
    "MealWindowConfig",
    "load_meal_config",
    "validate_meal_config",
    "parse_hhmm",
    "shift_hhmm",

    # Scheduler
    "ScheduleSlot",
    "ScheduleCompiler",
    "DueSlotSelector",
    "Clock",
    "schedule_compiler",
    "due_slot_selector",
    "slot_id_for",
    "occurrence_date",

    # Document store
    "DocumentStore",
    "SqlDocumentStore",
    "TenantLocks",
    "default_document",

    # Notifications
    "DeliveryHandle",
    "Notifier",
    "LoggingNotifier",
    "WebhookNotifier",
    "build_notifier",
]
