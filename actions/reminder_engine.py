"""
Reminder Engine
Drives each reminder from delivery through response, escalation and verification
"""

import logging
import threading
import uuid
from typing import List, Dict, Any, Optional, Tuple
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from pydantic import BaseModel

from config import DocumentKeys, engine_config
from exceptions import NotFoundError, PermissionDenied, StaleTransition, StoreUnavailable, ValidationError
from models import (
    AlertKind,
    ManualIntakeStatus,
    ReminderKind,
    ReminderState,
    ResponseAction,
    VerificationOutcome,
)
from actions.activity_log import ActivityLog, ActivityEventType
from actions.inventory_ledger import InventoryLedger
from tools.document_store import DocumentStore, TenantLocks
from tools.meal_windows import load_meal_config, resolve_timezone
from tools.notification_service import DeliveryHandle, Notifier
from tools.scheduler import Clock, DueSlotSelector, ScheduleSlot, occurrence_date


logger = logging.getLogger(__name__)

DedupKey = Tuple[str, str, str]

VERIFICATION_EVENTS = {
    VerificationOutcome.TAKEN: ActivityEventType.MEDICINE_TAKEN_VERIFIED,
    VerificationOutcome.LATE: ActivityEventType.MEDICINE_TAKEN_LATE,
    VerificationOutcome.MISSED: ActivityEventType.MEDICINE_MISSED_CONFIRMED,
}

MANUAL_EVENTS = {
    ManualIntakeStatus.TAKEN: ActivityEventType.MEDICINE_TAKEN_MANUAL,
    ManualIntakeStatus.TAKEN_LATE: ActivityEventType.MEDICINE_TAKEN_LATE_MANUAL,
    ManualIntakeStatus.MISSED: ActivityEventType.MEDICINE_MISSED_MANUAL,
    ManualIntakeStatus.UNDO_MISSED: ActivityEventType.MEDICINE_MISSED_CORRECTED,
}


def new_reminder_key() -> str:
    return f"rem_{uuid.uuid4().hex}"


class ReminderInstance(BaseModel):
    """One row of the persisted deadline table"""
    reminder_key: str
    kind: ReminderKind = ReminderKind.SCHEDULED
    slot_id: Optional[str] = None
    slot_date: Optional[date] = None
    parent_key: Optional[str] = None
    medicine_id: str
    target_id: str
    state: ReminderState = ReminderState.PENDING
    outcome: Optional[str] = None
    created_at: datetime
    deliver_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    deadline_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    delivery_handle: Optional[Dict[str, Any]] = None

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


@dataclass
class TickResult:
    """What one tick did for one tenant"""
    tenant_id: str
    delivered: List[str] = field(default_factory=list)
    snoozes_delivered: List[str] = field(default_factory=list)
    escalated: List[str] = field(default_factory=list)
    duplicates_skipped: int = 0
    pruned: int = 0


@dataclass
class TransitionResult:
    """Outcome of a response, verification or manual intake"""
    reminder_key: Optional[str]
    state: Optional[ReminderState]
    outcome: str
    inventory: Optional[int] = None
    follow_up_key: Optional[str] = None
    tracked: bool = True


class SentReminderRegistry:
    """
    Process-wide record of (tenant, slot, date) keys already delivered.

    Entries older than the TTL are removed by sweep().
    """

    def __init__(self, ttl_hours: int = engine_config.DEDUP_TTL_HOURS):
        self.ttl = timedelta(hours=ttl_hours)
        self._sent: Dict[DedupKey, datetime] = {}
        self._lock = threading.Lock()

    def mark(self, key: DedupKey, at: datetime) -> bool:
        """Record the key; False when it was already recorded"""
        with self._lock:
            if key in self._sent:
                return False
            self._sent[key] = at
            return True

    def was_sent(self, key: DedupKey) -> bool:
        with self._lock:
            return key in self._sent

    def sweep(self, now: datetime) -> int:
        """Drop entries older than the TTL, returning how many were removed"""
        cutoff = now - self.ttl
        with self._lock:
            stale = [key for key, sent_at in self._sent.items() if sent_at < cutoff]
            for key in stale:
                del self._sent[key]
        if stale:
            logger.debug(f"Swept {len(stale)} dedup entries")
        return len(stale)

    def discard(self, key: DedupKey) -> None:
        with self._lock:
            self._sent.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sent)


class ReminderLifecycleManager:
    """
    State machine for reminder instances.

    States: PENDING -> DELIVERED -> RESPONDED | ESCALATED; ESCALATED -> VERIFIED.
    Deadlines live in the tenant's reminders document and are scanned on
    every tick, so pending escalations survive a restart. All work for one
    tenant runs under that tenant's lock.
    """

    def __init__(
        self,
        store: DocumentStore,
        notifier: Notifier,
        ledger: InventoryLedger,
        activity_log: ActivityLog,
        clock: Clock,
        registry: Optional[SentReminderRegistry] = None,
        selector: Optional[DueSlotSelector] = None,
        escalation_minutes: int = engine_config.ESCALATION_TIMEOUT_MINUTES,
        snooze_minutes: int = engine_config.SNOOZE_MINUTES,
        retention_hours: int = engine_config.DEDUP_TTL_HOURS,
        locks: Optional[TenantLocks] = None
    ):
        self.store = store
        self.notifier = notifier
        self.ledger = ledger
        self.activity_log = activity_log
        self.clock = clock
        self.registry = registry or SentReminderRegistry(retention_hours)
        self.selector = selector or DueSlotSelector()
        self.escalation_delay = timedelta(minutes=escalation_minutes)
        self.snooze_delay = timedelta(minutes=snooze_minutes)
        self.retention = timedelta(hours=retention_hours)

        self.tenant_lock = locks or TenantLocks()

    # ==================== STORAGE ====================

    def _load_reminders(self, tenant_id: str) -> Tuple[Dict[str, Any], Dict[str, ReminderInstance]]:
        document = self.store.read(tenant_id, DocumentKeys.REMINDERS)
        rows = {
            key: ReminderInstance.model_validate(raw)
            for key, raw in document.get("reminders", {}).items()
        }
        return document, rows

    def _save_reminders(
        self,
        tenant_id: str,
        document: Dict[str, Any],
        rows: Dict[str, ReminderInstance]
    ) -> None:
        document["reminders"] = {key: row.to_document() for key, row in rows.items()}
        self.store.write_or_raise(tenant_id, DocumentKeys.REMINDERS, document)

    def _tenant_context(self, tenant_id: str) -> Tuple[str, List[str]]:
        settings_doc = self.store.read(tenant_id, DocumentKeys.SETTINGS)
        config = load_meal_config(settings_doc)
        return config.timezone, list(settings_doc.get("trackers", []))

    def _medicine(self, tenant_id: str, medicine_id: str) -> Optional[Dict[str, Any]]:
        document = self.store.read(tenant_id, DocumentKeys.MEDICINES)
        for medicine in document.get("medicines", []):
            if medicine.get("id") == medicine_id:
                return medicine
        return None

    # ==================== TICK ====================

    def process_tenant(self, tenant_id: str) -> TickResult:
        """One scheduler tick for one tenant"""
        result = TickResult(tenant_id=tenant_id)

        with self.tenant_lock(tenant_id):
            tz_name, trackers = self._tenant_context(tenant_id)
            now = self.clock.now()
            now_local = self.clock.now(tz_name)

            self.registry.sweep(now)
            document, rows = self._load_reminders(tenant_id)
            result.pruned = self._prune(rows, now)
            self._reseed_registry(tenant_id, rows, tz_name, now)

            slots = [
                ScheduleSlot.from_dict(raw)
                for raw in self.store.read(tenant_id, DocumentKeys.SCHEDULES).get("schedules", [])
            ]
            created = []
            for slot in self.selector.select(slots, now_local):
                slot_date = occurrence_date(slot.reminder_time, now_local)
                dedup_key = (tenant_id, slot.id, slot_date.isoformat())
                if not self.registry.mark(dedup_key, now):
                    result.duplicates_skipped += 1
                    continue

                medicine = self._medicine(tenant_id, slot.medicine_id)
                if medicine is None:
                    logger.warning(f"Slot {slot.id} references missing medicine {slot.medicine_id}")
                    continue

                instance = ReminderInstance(
                    reminder_key=new_reminder_key(),
                    kind=ReminderKind.SCHEDULED,
                    slot_id=slot.id,
                    slot_date=slot_date,
                    medicine_id=slot.medicine_id,
                    target_id=slot.target_id,
                    created_at=now,
                    deliver_at=now,
                )
                rows[instance.reminder_key] = instance
                created.append((instance, medicine, slot, dedup_key))

            # New rows are stored as pending before anything is sent
            if created:
                try:
                    self._save_reminders(tenant_id, document, rows)
                except StoreUnavailable:
                    for _, _, _, dedup_key in created:
                        self.registry.discard(dedup_key)
                    raise

            for instance, medicine, slot, _ in created:
                self._deliver(tenant_id, instance, medicine, now, slot=slot)
                result.delivered.append(instance.reminder_key)

            for row in list(rows.values()):
                if row.state == ReminderState.PENDING and row.deliver_at and row.deliver_at <= now:
                    medicine = self._medicine(tenant_id, row.medicine_id)
                    if medicine is None:
                        logger.warning(f"Snoozed reminder {row.reminder_key} references missing medicine")
                        self._close(row, ReminderState.RESPONDED, "orphaned", now)
                        continue
                    self._deliver(tenant_id, row, medicine, now)
                    result.snoozes_delivered.append(row.reminder_key)

            for row in list(rows.values()):
                if row.state == ReminderState.DELIVERED and row.deadline_at and row.deadline_at <= now:
                    self._escalate(tenant_id, row, now, trackers)
                    result.escalated.append(row.reminder_key)

            self._save_reminders(tenant_id, document, rows)

        if result.delivered or result.snoozes_delivered or result.escalated:
            logger.info(
                f"Tick for tenant {tenant_id}: delivered={len(result.delivered)} "
                f"snoozes={len(result.snoozes_delivered)} escalated={len(result.escalated)}"
            )
        return result

    def _reseed_registry(
        self,
        tenant_id: str,
        rows: Dict[str, ReminderInstance],
        tz_name: str,
        now: datetime
    ) -> None:
        """Rebuild dedup keys from persisted rows so a restart does not resend"""
        tz = resolve_timezone(tz_name)
        for row in rows.values():
            if row.slot_id and row.created_at >= now - self.registry.ttl:
                day = row.slot_date or row.created_at.astimezone(tz).date()
                self.registry.mark((tenant_id, row.slot_id, day.isoformat()), row.created_at)

    def _prune(self, rows: Dict[str, ReminderInstance], now: datetime) -> int:
        """Drop closed rows older than the retention window; escalated rows wait for a tracker"""
        cutoff = now - self.retention
        stale = [
            key for key, row in rows.items()
            if row.closed_at is not None and row.closed_at < cutoff
        ]
        for key in stale:
            del rows[key]
        return len(stale)

    def _deliver(
        self,
        tenant_id: str,
        instance: ReminderInstance,
        medicine: Dict[str, Any],
        now: datetime,
        slot: Optional[ScheduleSlot] = None
    ) -> None:
        """PENDING -> DELIVERED and arm the escalation deadline"""
        handle: Optional[DeliveryHandle] = None
        try:
            handle = self.notifier.send_reminder(
                tenant_id,
                instance.target_id,
                instance.medicine_id,
                instance.reminder_key,
                medicine_name=medicine.get("name"),
                dosage=medicine.get("dosage"),
                inventory=medicine.get("inventory", 0),
                frequency=slot.frequency if slot else None,
                meal_time=slot.meal_time if slot else None,
                snoozed=instance.kind == ReminderKind.SNOOZE,
            )
        except Exception as e:
            logger.error(f"Error sending reminder {instance.reminder_key}: {e}")

        instance.state = ReminderState.DELIVERED
        instance.delivered_at = now
        instance.deadline_at = now + self.escalation_delay
        instance.delivery_handle = handle.to_dict() if handle else None

        self.activity_log.record_event(
            tenant_id,
            ActivityEventType.REMINDER_SENT,
            medicine_id=instance.medicine_id,
            target_id=instance.target_id,
            message=f"Reminder sent for {medicine.get('name')}",
            reminder_key=instance.reminder_key,
            schedule_id=instance.slot_id,
            reminder_time=slot.reminder_time if slot else None,
            kind=instance.kind.value,
        )
        logger.info(f"Reminder {instance.reminder_key} delivered to {instance.target_id}")

    def _escalate(self, tenant_id: str, row: ReminderInstance, now: datetime, trackers: List[str]) -> None:
        """DELIVERED -> ESCALATED once the deadline passes without a response"""
        row.state = ReminderState.ESCALATED
        row.deadline_at = None

        self.activity_log.record_event(
            tenant_id,
            ActivityEventType.MEDICINE_MISSED_AUTO,
            medicine_id=row.medicine_id,
            target_id=row.target_id,
            message="Automatic missed dose detection",
            reminder_key=row.reminder_key,
            detection_method="automatic_timeout",
        )
        logger.info(f"Reminder {row.reminder_key} escalated after timeout")

        medicine = self._medicine(tenant_id, row.medicine_id) or {}
        try:
            self.notifier.alert_trackers(
                tenant_id,
                row.medicine_id,
                row.target_id,
                AlertKind.MISSED_DOSE_AUTO.value,
                reminder_key=row.reminder_key,
                medicine_name=medicine.get("name"),
                dosage=medicine.get("dosage"),
                inventory=medicine.get("inventory", 0),
                tracker_ids=trackers,
            )
        except Exception as e:
            logger.error(f"Error notifying trackers for {row.reminder_key}: {e}")

        if row.delivery_handle:
            try:
                self.notifier.mark_expired(DeliveryHandle.from_dict(row.delivery_handle))
            except Exception as e:
                logger.error(f"Error marking reminder {row.reminder_key} expired: {e}")

    @staticmethod
    def _require_tracker(trackers: List[str], actor_id: str, message: str) -> None:
        """Same roster rule as the services: an empty roster is open"""
        if trackers and actor_id not in trackers:
            logger.warning(f"Non-tracker {actor_id} denied: {message}")
            raise PermissionDenied(message)

    @staticmethod
    def _close(row: ReminderInstance, state: ReminderState, outcome: str, now: datetime) -> None:
        """Cancel any armed deadline and move to a closed state"""
        row.deadline_at = None
        row.state = state
        row.outcome = outcome
        row.closed_at = now

    # ==================== TARGET RESPONSE ====================

    def respond(
        self,
        tenant_id: str,
        reminder_key: str,
        actor_id: str,
        action: ResponseAction,
        medicine_id: Optional[str] = None,
        target_id: Optional[str] = None
    ) -> TransitionResult:
        """Handle taken / missed / snooze from the target of a delivered reminder"""
        action = ResponseAction(action)

        with self.tenant_lock(tenant_id):
            _, trackers = self._tenant_context(tenant_id)
            now = self.clock.now()
            document, rows = self._load_reminders(tenant_id)
            row = rows.get(reminder_key)

            if row is not None:
                if actor_id != row.target_id:
                    logger.warning(f"{actor_id} tried to answer reminder {reminder_key} for {row.target_id}")
                    raise PermissionDenied("Only the target can respond to their own reminder")
                if row.state != ReminderState.DELIVERED:
                    logger.warning(f"Stale {action.value} for reminder {reminder_key} in state {row.state.value}")
                    raise StaleTransition(f"Reminder {reminder_key} is already {row.state.value}")

                medicine_id, target_id = row.medicine_id, row.target_id
            else:
                if not medicine_id or not target_id:
                    raise NotFoundError(f"Reminder {reminder_key} not found")
                if actor_id != target_id:
                    raise PermissionDenied("Only the target can respond to their own reminder")
                logger.info(f"Response for unknown reminder {reminder_key}; applying direct effects only")

            if self._medicine(tenant_id, medicine_id) is None:
                raise NotFoundError(f"Medicine {medicine_id} not found")
            if row is not None:
                self._close(row, ReminderState.RESPONDED, action.value, now)

            follow_up: Optional[ReminderInstance] = None
            if action == ResponseAction.SNOOZE and row is not None:
                follow_up = ReminderInstance(
                    reminder_key=new_reminder_key(),
                    kind=ReminderKind.SNOOZE,
                    parent_key=reminder_key,
                    medicine_id=medicine_id,
                    target_id=target_id,
                    created_at=now,
                    deliver_at=now + self.snooze_delay,
                )
                rows[follow_up.reminder_key] = follow_up
            elif action == ResponseAction.MISSED and row is not None:
                follow_up = ReminderInstance(
                    reminder_key=new_reminder_key(),
                    kind=ReminderKind.VERIFICATION,
                    parent_key=reminder_key,
                    medicine_id=medicine_id,
                    target_id=target_id,
                    state=ReminderState.ESCALATED,
                    outcome=ResponseAction.MISSED.value,
                    created_at=now,
                )
                rows[follow_up.reminder_key] = follow_up

            if row is not None:
                self._save_reminders(tenant_id, document, rows)

            inventory = None
            if action == ResponseAction.TAKEN:
                inventory = self.ledger.decrement(tenant_id, medicine_id, 1, actor=actor_id)
                self.activity_log.record_event(
                    tenant_id,
                    ActivityEventType.MEDICINE_TAKEN,
                    medicine_id=medicine_id,
                    target_id=target_id,
                    actor=actor_id,
                    message="Medicine taken as scheduled",
                    reminder_key=reminder_key,
                )
            elif action == ResponseAction.MISSED:
                self.activity_log.record_event(
                    tenant_id,
                    ActivityEventType.MEDICINE_MISSED_MANUAL,
                    medicine_id=medicine_id,
                    target_id=target_id,
                    actor=actor_id,
                    message="Target reported a missed dose",
                    reminder_key=reminder_key,
                )
                self._alert_missed(tenant_id, medicine_id, target_id, follow_up, trackers)
            else:
                self.activity_log.record_event(
                    tenant_id,
                    ActivityEventType.MEDICINE_SNOOZED,
                    medicine_id=medicine_id,
                    target_id=target_id,
                    actor=actor_id,
                    message=f"Reminder snoozed for {int(self.snooze_delay.total_seconds() // 60)} minutes",
                    reminder_key=reminder_key,
                    snooze_key=follow_up.reminder_key if follow_up else None,
                    snooze_until=follow_up.deliver_at.isoformat() if follow_up else None,
                )

        logger.info(f"Reminder {reminder_key} answered {action.value} by {actor_id}")
        return TransitionResult(
            reminder_key=reminder_key,
            state=ReminderState.RESPONDED if row is not None else None,
            outcome=action.value,
            inventory=inventory,
            follow_up_key=follow_up.reminder_key if follow_up else None,
            tracked=row is not None,
        )

    def _alert_missed(
        self,
        tenant_id: str,
        medicine_id: str,
        target_id: str,
        verification: Optional[ReminderInstance],
        trackers: List[str]
    ) -> None:
        medicine = self._medicine(tenant_id, medicine_id) or {}
        try:
            self.notifier.alert_trackers(
                tenant_id,
                medicine_id,
                target_id,
                AlertKind.MISSED_DOSE_REPORTED.value,
                reminder_key=verification.reminder_key if verification else None,
                medicine_name=medicine.get("name"),
                dosage=medicine.get("dosage"),
                inventory=medicine.get("inventory", 0),
                tracker_ids=trackers,
            )
        except Exception as e:
            logger.error(f"Error notifying trackers of missed dose for {medicine_id}: {e}")

    # ==================== TRACKER VERIFICATION ====================

    def verify(
        self,
        tenant_id: str,
        reminder_key: str,
        actor_id: str,
        outcome: VerificationOutcome,
        medicine_id: Optional[str] = None,
        target_id: Optional[str] = None
    ) -> TransitionResult:
        """Tracker verdict on an escalated reminder"""
        outcome = VerificationOutcome(outcome)

        with self.tenant_lock(tenant_id):
            _, trackers = self._tenant_context(tenant_id)
            self._require_tracker(trackers, actor_id, "Only trackers can verify medicine intake")

            now = self.clock.now()
            document, rows = self._load_reminders(tenant_id)
            row = rows.get(reminder_key)

            if row is not None:
                if row.state != ReminderState.ESCALATED:
                    logger.warning(f"Stale verification for {reminder_key} in state {row.state.value}")
                    raise StaleTransition(f"Reminder {reminder_key} is {row.state.value}, not escalated")
                medicine_id, target_id = row.medicine_id, row.target_id
            elif not medicine_id or not target_id:
                raise NotFoundError(f"Reminder {reminder_key} not found")
            else:
                logger.info(f"Verification for unknown reminder {reminder_key}; applying direct effects only")

            if self._medicine(tenant_id, medicine_id) is None:
                raise NotFoundError(f"Medicine {medicine_id} not found")
            if row is not None:
                self._close(row, ReminderState.VERIFIED, outcome.value, now)
                self._save_reminders(tenant_id, document, rows)

            inventory = None
            if outcome in (VerificationOutcome.TAKEN, VerificationOutcome.LATE):
                inventory = self.ledger.decrement(tenant_id, medicine_id, 1, actor=actor_id)

            self.activity_log.record_event(
                tenant_id,
                VERIFICATION_EVENTS[outcome],
                medicine_id=medicine_id,
                target_id=target_id,
                actor=actor_id,
                message=f"Tracker verified {outcome.value}",
                reminder_key=reminder_key,
                verified_at=now.isoformat(),
            )

        logger.info(f"Reminder {reminder_key} verified {outcome.value} by {actor_id}")
        return TransitionResult(
            reminder_key=reminder_key,
            state=ReminderState.VERIFIED if row is not None else None,
            outcome=outcome.value,
            inventory=inventory,
            tracked=row is not None,
        )

    # ==================== MANUAL OVERRIDE ====================

    def record_manual_intake(
        self,
        tenant_id: str,
        medicine_id: str,
        target_id: str,
        actor_id: str,
        status: ManualIntakeStatus,
        notes: str = ""
    ) -> TransitionResult:
        """
        Tracker records an intake outside any reminder.

        Each call is one more intake event; nothing is deduplicated against
        reminder-driven events.
        """
        status = ManualIntakeStatus(status)

        with self.tenant_lock(tenant_id):
            _, trackers = self._tenant_context(tenant_id)
            self._require_tracker(trackers, actor_id, "Only trackers can update intake status")

            medicine = self._medicine(tenant_id, medicine_id)
            if medicine is None:
                raise NotFoundError(f"Medicine {medicine_id} not found")
            if medicine.get("target_id") != target_id:
                raise ValidationError(
                    f"Medicine {medicine.get('name')} is assigned to {medicine.get('target_id')}",
                    field="target_id",
                )

            inventory = None
            if status != ManualIntakeStatus.MISSED:
                inventory = self.ledger.decrement(tenant_id, medicine_id, 1, actor=actor_id)

            self.activity_log.record_event(
                tenant_id,
                MANUAL_EVENTS[status],
                medicine_id=medicine_id,
                target_id=target_id,
                actor=actor_id,
                message=f"Manual intake update: {status.value} for {medicine.get('name')}",
                status=status.value,
                notes=notes,
                manual_entry=True,
            )

        logger.info(f"Manual intake {status.value} for {medicine_id} recorded by {actor_id}")
        return TransitionResult(
            reminder_key=None,
            state=None,
            outcome=status.value,
            inventory=inventory,
            tracked=False,
        )

    # ==================== QUERIES ====================

    def get_reminder(self, tenant_id: str, reminder_key: str) -> ReminderInstance:
        _, rows = self._load_reminders(tenant_id)
        if reminder_key not in rows:
            raise NotFoundError(f"Reminder {reminder_key} not found")
        return rows[reminder_key]

    def list_reminders(
        self,
        tenant_id: str,
        state: Optional[ReminderState] = None,
        target_id: Optional[str] = None
    ) -> List[ReminderInstance]:
        _, rows = self._load_reminders(tenant_id)
        result = [
            row for row in rows.values()
            if (state is None or row.state == state)
            and (target_id is None or row.target_id == target_id)
        ]
        result.sort(key=lambda r: r.created_at, reverse=True)
        return result
