"""
Actions Module
Reminder lifecycle, inventory side effects and the activity log
"""

from .activity_log import (
    ActivityEntry,
    ActivityEventType,
    ActivityLog,
)

from .inventory_ledger import InventoryLedger

from .reminder_engine import (
    ReminderInstance,
    ReminderLifecycleManager,
    SentReminderRegistry,
    TickResult,
    TransitionResult,
)


__all__ = [
    # Activity Log
    "ActivityEntry",
    "ActivityEventType",
    "ActivityLog",

    # Inventory
    "InventoryLedger",

    # Reminder Engine
    "ReminderInstance",
    "ReminderLifecycleManager",
    "SentReminderRegistry",
    "TickResult",
    "TransitionResult",
]
