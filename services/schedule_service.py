"""
Schedule Service
Meal-window settings, tracker roster and compiled reminder slots
"""

import logging
from typing import Dict, List, Optional, Any
from datetime import datetime

from config import DocumentKeys
from exceptions import NotFoundError, PermissionDenied, ValidationError
from actions.activity_log import ActivityLog, ActivityEventType
from tools.document_store import DocumentStore, TenantLocks
from tools.meal_windows import MealWindowConfig, load_meal_config, parse_time_range, validate_meal_config
from tools.scheduler import (
    Clock,
    DueSlotSelector,
    ScheduleCompiler,
    ScheduleSlot,
    due_slot_selector,
    schedule_compiler,
)


logger = logging.getLogger(__name__)

SETTINGS_FIELDS = ("meal_times", "timezone", "reminder_advance_minutes")


class ScheduleService:
    """
    Service for tenant settings and the schedule slots derived from them.

    Any settings change regenerates the slot list for the tenant.
    """

    def __init__(
        self,
        store: DocumentStore,
        activity_log: ActivityLog,
        clock: Clock,
        compiler: ScheduleCompiler = schedule_compiler,
        selector: DueSlotSelector = due_slot_selector,
        locks: Optional[TenantLocks] = None
    ):
        self.store = store
        self.activity_log = activity_log
        self.clock = clock
        self.compiler = compiler
        self.selector = selector
        self.tenant_lock = locks or TenantLocks()

    # ==================== SETTINGS ====================

    def get_settings(self, tenant_id: str) -> Dict[str, Any]:
        """Meal windows, timezone, advance minutes and tracker roster"""
        document = self.store.read(tenant_id, DocumentKeys.SETTINGS)
        config = load_meal_config(document)
        return {
            **config.to_document_fields(),
            "trackers": list(document.get("trackers", [])),
            "updated_at": document.get("updated_at"),
            "updated_by": document.get("updated_by"),
        }

    def get_meal_config(self, tenant_id: str) -> MealWindowConfig:
        return load_meal_config(self.store.read(tenant_id, DocumentKeys.SETTINGS))

    def update_settings(
        self,
        tenant_id: str,
        updates: Dict[str, Any],
        updated_by: str
    ) -> Dict[str, Any]:
        """
        Validate and store a settings change, then regenerate schedules

        Args:
            tenant_id: Tenant to update
            updates: Any of meal_times (partial per meal, each {start, end} or
                "HH:MM-HH:MM"), timezone,
                reminder_advance_minutes
            updated_by: Tracker making the change

        Returns:
            The new settings
        """
        unknown = [key for key in updates if key not in SETTINGS_FIELDS]
        if unknown:
            raise ValidationError(f"unknown setting(s): {', '.join(sorted(unknown))}", field=unknown[0])

        with self.tenant_lock(tenant_id):
            document = self.store.read(tenant_id, DocumentKeys.SETTINGS)
            merged = {key: document[key] for key in SETTINGS_FIELDS if document.get(key) is not None}
            merged["meal_times"] = dict(document.get("meal_times") or {})
            for meal, window in (updates.get("meal_times") or {}).items():
                if isinstance(window, str):
                    window = parse_time_range(window, field=f"meal_times.{meal}")
                merged["meal_times"][meal] = window
            for key in ("timezone", "reminder_advance_minutes"):
                if updates.get(key) is not None:
                    merged[key] = updates[key]

            config = validate_meal_config(merged)

            document.update(config.to_document_fields())
            document["updated_at"] = self.clock.now().isoformat()
            document["updated_by"] = updated_by
            self.store.write_or_raise(tenant_id, DocumentKeys.SETTINGS, document)

            self.activity_log.record_event(
                tenant_id,
                ActivityEventType.SETTINGS_UPDATED,
                actor=updated_by,
                message="Meal time settings updated",
                changes={key: updates[key] for key in updates if updates[key] is not None},
            )
            logger.info(f"Settings updated for tenant {tenant_id} by {updated_by}")

            self._generate(tenant_id, config)

        return self.get_settings(tenant_id)

    # ==================== TRACKERS ====================

    def list_trackers(self, tenant_id: str) -> List[str]:
        return list(self.store.read(tenant_id, DocumentKeys.SETTINGS).get("trackers", []))

    def is_tracker(self, tenant_id: str, user_id: str) -> bool:
        return user_id in self.list_trackers(tenant_id)

    def require_tracker(self, tenant_id: str, user_id: str) -> None:
        """Tracker-only actions; a tenant with an empty roster is open until its first tracker is added"""
        trackers = self.list_trackers(tenant_id)
        if trackers and user_id not in trackers:
            logger.warning(f"{user_id} is not a tracker in tenant {tenant_id}")
            raise PermissionDenied("Only trackers can perform this action")

    def add_tracker(self, tenant_id: str, tracker_id: str, added_by: str) -> List[str]:
        if not tracker_id or not tracker_id.strip():
            raise ValidationError("tracker_id must not be empty", field="tracker_id")

        with self.tenant_lock(tenant_id):
            document = self.store.read(tenant_id, DocumentKeys.SETTINGS)
            trackers = document.setdefault("trackers", [])
            if tracker_id in trackers:
                return list(trackers)

            trackers.append(tracker_id)
            self.store.write_or_raise(tenant_id, DocumentKeys.SETTINGS, document)
            self.activity_log.record_event(
                tenant_id,
                ActivityEventType.TRACKER_ADDED,
                actor=added_by,
                message=f"Added tracker {tracker_id}",
                tracker_id=tracker_id,
            )

        logger.info(f"Tracker {tracker_id} added to tenant {tenant_id}")
        return list(trackers)

    def remove_tracker(self, tenant_id: str, tracker_id: str, removed_by: str) -> List[str]:
        with self.tenant_lock(tenant_id):
            document = self.store.read(tenant_id, DocumentKeys.SETTINGS)
            trackers = document.get("trackers", [])
            if tracker_id not in trackers:
                raise NotFoundError(f"{tracker_id} is not a tracker")

            document["trackers"] = [t for t in trackers if t != tracker_id]
            self.store.write_or_raise(tenant_id, DocumentKeys.SETTINGS, document)
            self.activity_log.record_event(
                tenant_id,
                ActivityEventType.TRACKER_REMOVED,
                actor=removed_by,
                message=f"Removed tracker {tracker_id}",
                tracker_id=tracker_id,
            )

        logger.info(f"Tracker {tracker_id} removed from tenant {tenant_id}")
        return document["trackers"]

    # ==================== SCHEDULES ====================

    def generate_schedules(self, tenant_id: str) -> List[ScheduleSlot]:
        """Recompile every slot for the tenant and replace the stored set"""
        with self.tenant_lock(tenant_id):
            return self._generate(tenant_id, self.get_meal_config(tenant_id))

    def _generate(self, tenant_id: str, config: MealWindowConfig) -> List[ScheduleSlot]:
        medicines = self.store.read(tenant_id, DocumentKeys.MEDICINES).get("medicines", [])
        slots = self.compiler.compile(medicines, config)

        document = self.store.read(tenant_id, DocumentKeys.SCHEDULES)
        document["schedules"] = [slot.to_dict() for slot in slots]
        document["generated_at"] = self.clock.now().isoformat()
        self.store.write_or_raise(tenant_id, DocumentKeys.SCHEDULES, document)

        self.activity_log.record_event(
            tenant_id,
            ActivityEventType.SCHEDULES_GENERATED,
            message=f"Generated {len(slots)} schedule slots",
            slot_count=len(slots),
        )
        logger.info(f"Generated {len(slots)} schedules for tenant {tenant_id}")
        return slots

    def get_schedules(self, tenant_id: str, target_id: Optional[str] = None) -> List[ScheduleSlot]:
        raw = self.store.read(tenant_id, DocumentKeys.SCHEDULES).get("schedules", [])
        slots = [ScheduleSlot.from_dict(item) for item in raw]
        if target_id is not None:
            slots = [s for s in slots if s.target_id == target_id]
        return sorted(slots, key=lambda s: s.reminder_time)

    def due_slots(self, tenant_id: str, now: Optional[datetime] = None) -> List[ScheduleSlot]:
        """Stored slots due at `now`, evaluated in the tenant timezone"""
        config = self.get_meal_config(tenant_id)
        current = now.astimezone(config.tzinfo) if now else self.clock.now(config.timezone)
        return self.selector.select(self.get_schedules(tenant_id), current)
