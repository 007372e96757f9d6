"""
Activity Log
Append-only audit trail of every medicine and reminder event
"""

import logging
import uuid
from typing import List, Dict, Any, Optional, Iterable
from datetime import datetime, date
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from config import DocumentKeys, engine_config
from tools.document_store import DocumentStore
from tools.meal_windows import resolve_timezone
from tools.scheduler import Clock


logger = logging.getLogger(__name__)


class ActivityEventType(str, Enum):
    """Closed set of activity event kinds"""
    REMINDER_SENT = "reminder_sent"
    MEDICINE_TAKEN = "medicine_taken"
    MEDICINE_MISSED = "medicine_missed"
    MEDICINE_MISSED_MANUAL = "medicine_missed_manual"
    MEDICINE_SNOOZED = "medicine_snoozed"
    MEDICINE_MISSED_AUTO = "medicine_missed_auto"
    MEDICINE_TAKEN_VERIFIED = "medicine_taken_verified"
    MEDICINE_TAKEN_LATE = "medicine_taken_late"
    MEDICINE_MISSED_CONFIRMED = "medicine_missed_confirmed"
    MEDICINE_TAKEN_MANUAL = "medicine_taken_manual"
    MEDICINE_TAKEN_LATE_MANUAL = "medicine_taken_late_manual"
    MEDICINE_MISSED_CORRECTED = "medicine_missed_corrected"
    INVENTORY_LOW = "inventory_low"
    INVENTORY_RESTOCKED = "inventory_restocked"
    MEDICINE_ADDED = "medicine_added"
    MEDICINE_UPDATED = "medicine_updated"
    MEDICINE_DELETED = "medicine_deleted"
    SETTINGS_UPDATED = "settings_updated"
    SCHEDULES_GENERATED = "schedules_generated"
    TRACKER_ADDED = "tracker_added"
    TRACKER_REMOVED = "tracker_removed"


_INTAKE = ("medicine_id", "target_id")
_REMINDER = ("medicine_id", "target_id", "reminder_key")
_TRACKER_ACTION = ("medicine_id", "target_id", "actor")

# Fields each event kind must carry; "reminder_key" lives in metadata
REQUIRED_FIELDS: Dict[ActivityEventType, tuple] = {
    ActivityEventType.REMINDER_SENT: _REMINDER,
    ActivityEventType.MEDICINE_TAKEN: _INTAKE,
    ActivityEventType.MEDICINE_MISSED: _INTAKE,
    ActivityEventType.MEDICINE_MISSED_MANUAL: ("medicine_id", "target_id", "actor"),
    ActivityEventType.MEDICINE_SNOOZED: _REMINDER,
    ActivityEventType.MEDICINE_MISSED_AUTO: _REMINDER,
    ActivityEventType.MEDICINE_TAKEN_VERIFIED: _TRACKER_ACTION,
    ActivityEventType.MEDICINE_TAKEN_LATE: _TRACKER_ACTION,
    ActivityEventType.MEDICINE_MISSED_CONFIRMED: _TRACKER_ACTION,
    ActivityEventType.MEDICINE_TAKEN_MANUAL: _TRACKER_ACTION,
    ActivityEventType.MEDICINE_TAKEN_LATE_MANUAL: _TRACKER_ACTION,
    ActivityEventType.MEDICINE_MISSED_CORRECTED: _TRACKER_ACTION,
    ActivityEventType.INVENTORY_LOW: ("medicine_id", "remaining_count"),
    ActivityEventType.INVENTORY_RESTOCKED: ("medicine_id", "remaining_count"),
    ActivityEventType.MEDICINE_ADDED: ("medicine_id", "actor"),
    ActivityEventType.MEDICINE_UPDATED: ("medicine_id",),
    ActivityEventType.MEDICINE_DELETED: ("medicine_id",),
    ActivityEventType.SETTINGS_UPDATED: ("actor",),
    ActivityEventType.SCHEDULES_GENERATED: ("slot_count",),
    ActivityEventType.TRACKER_ADDED: ("actor", "tracker_id"),
    ActivityEventType.TRACKER_REMOVED: ("actor", "tracker_id"),
}

# Exact types counted by the daily summary
SUMMARY_TAKEN_TYPES = {ActivityEventType.MEDICINE_TAKEN}
SUMMARY_MISSED_TYPES = {ActivityEventType.MEDICINE_MISSED}


class ActivityEntry(BaseModel):
    """One immutable activity log record"""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    timestamp: datetime
    type: ActivityEventType
    medicine_id: Optional[str] = None
    target_id: Optional[str] = None
    actor: Optional[str] = None
    message: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_required_fields(self) -> "ActivityEntry":
        missing = []
        for name in REQUIRED_FIELDS.get(self.type, ()):
            value = getattr(self, name, None) if name in type(self).model_fields else self.metadata.get(name)
            if value is None or value == "":
                missing.append(name)
        if missing:
            raise ValueError(f"{self.type.value} requires {', '.join(missing)}")
        return self

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class ActivityLog:
    """
    Append-only activity log kept newest-first in the tenant's logs document.

    Entries are never edited or removed one by one; the retention cap drops
    the oldest entries after every append.
    """

    def __init__(
        self,
        store: DocumentStore,
        clock: Clock,
        retention: int = engine_config.LOG_RETENTION
    ):
        self.store = store
        self.clock = clock
        self.retention = retention

    def record(self, tenant_id: str, entry: ActivityEntry) -> ActivityEntry:
        document = self.store.read(tenant_id, DocumentKeys.LOGS)
        logs = document.setdefault("logs", [])
        logs.insert(0, entry.to_document())

        if len(logs) > self.retention:
            del logs[self.retention:]

        self.store.write_or_raise(tenant_id, DocumentKeys.LOGS, document)
        logger.debug(f"Recorded {entry.type.value} for tenant {tenant_id}")
        return entry

    def record_event(
        self,
        tenant_id: str,
        event_type: ActivityEventType,
        medicine_id: Optional[str] = None,
        target_id: Optional[str] = None,
        actor: Optional[str] = None,
        message: str = "",
        **metadata: Any
    ) -> ActivityEntry:
        entry = ActivityEntry(
            timestamp=self.clock.now(),
            type=event_type,
            medicine_id=medicine_id,
            target_id=target_id,
            actor=actor,
            message=message,
            metadata=metadata,
        )
        return self.record(tenant_id, entry)

    def entries(
        self,
        tenant_id: str,
        day: Optional[date] = None,
        types: Optional[Iterable[ActivityEventType]] = None,
        timezone: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[ActivityEntry]:
        """Entries newest-first, optionally filtered by local calendar date and type"""
        document = self.store.read(tenant_id, DocumentKeys.LOGS)
        tz = resolve_timezone(timezone) if timezone else None
        wanted = {ActivityEventType(t) for t in types} if types else None

        result: List[ActivityEntry] = []
        for raw in document.get("logs", []):
            try:
                entry = ActivityEntry.model_validate(raw)
            except ValueError as e:
                logger.warning(f"Skipping malformed log entry {raw.get('id')}: {e}")
                continue

            if wanted is not None and entry.type not in wanted:
                continue
            if day is not None:
                stamp = entry.timestamp.astimezone(tz) if tz else entry.timestamp
                if stamp.date() != day:
                    continue

            result.append(entry)
            if limit is not None and len(result) >= limit:
                break

        return result

    def daily_summary(
        self,
        tenant_id: str,
        day: date,
        timezone: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Taken/missed counts and compliance for one calendar date.

        Only the exact medicine_taken and medicine_missed types are counted.
        """
        todays = self.entries(tenant_id, day=day, timezone=timezone)
        taken = sum(1 for e in todays if e.type in SUMMARY_TAKEN_TYPES)
        missed = sum(1 for e in todays if e.type in SUMMARY_MISSED_TYPES)
        total = taken + missed

        return {
            "date": day.isoformat(),
            "taken": taken,
            "missed": missed,
            "compliance": round(taken / total * 100) if total > 0 else None,
        }
