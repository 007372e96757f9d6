"""
Medication Scheduler Tool
Derives reminder slots from meal windows and selects the ones due now
"""

import logging
from typing import Dict, List, Optional, Any, Iterable, Tuple
from dataclasses import dataclass, asdict
from datetime import date, datetime, timedelta, timezone as dt_timezone

from config import engine_config
from models import MealTiming
from tools.meal_windows import (
    MealWindowConfig,
    MINUTES_PER_DAY,
    parse_hhmm,
    shift_hhmm,
    resolve_timezone,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleSlot:
    """One reminder definition for a (medicine, frequency tag) pair"""
    id: str
    medicine_id: str
    medicine_name: str
    target_id: str
    frequency: str
    meal_time: str
    timing: str
    reminder_time: str
    timezone: str
    active: bool = True

    @property
    def key(self) -> Tuple[str, str]:
        return (self.medicine_id, self.frequency)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduleSlot":
        return cls(
            id=data["id"],
            medicine_id=data["medicine_id"],
            medicine_name=data.get("medicine_name", ""),
            target_id=data["target_id"],
            frequency=data["frequency"],
            meal_time=data["meal_time"],
            timing=data["timing"],
            reminder_time=data["reminder_time"],
            timezone=data.get("timezone", engine_config.DEFAULT_TIMEZONE),
            active=data.get("active", True),
        )


def slot_id_for(medicine_id: str, frequency: str) -> str:
    """Deterministic slot key for a medicine/tag pair"""
    return f"sched_{medicine_id}_{frequency}"


def circular_distance(a: int, b: int) -> int:
    """Distance in minutes between two times of day, wrapping at midnight"""
    diff = abs(a - b) % MINUTES_PER_DAY
    return min(diff, MINUTES_PER_DAY - diff)


def occurrence_date(reminder_time: str, now: datetime) -> date:
    """
    Local calendar date of the slot occurrence closest to `now`.

    A 00:00 slot picked up at 23:59 belongs to the next day, and a 23:59 slot
    picked up at 00:00 belongs to the previous one.
    """
    delta = parse_hhmm(reminder_time) - (now.hour * 60 + now.minute)
    if delta < -MINUTES_PER_DAY // 2:
        return now.date() + timedelta(days=1)
    if delta > MINUTES_PER_DAY // 2:
        return now.date() - timedelta(days=1)
    return now.date()


def split_frequency_tag(tag: str) -> Optional[Tuple[MealTiming, str]]:
    """Split "before_lunch" into (BEFORE, "lunch"); None when the timing is unknown"""
    if not isinstance(tag, str) or "_" not in tag:
        return None
    timing, _, meal = tag.partition("_")
    try:
        return MealTiming(timing), meal
    except ValueError:
        return None


class ScheduleCompiler:
    """
    Derives the flat slot list from medicines and the tenant's meal windows.

    Compilation is pure: identical inputs always give identical slots,
    including slot ids.
    """

    def compile(
        self,
        medicines: Iterable[Dict[str, Any]],
        config: MealWindowConfig
    ) -> List[ScheduleSlot]:
        slots: List[ScheduleSlot] = []

        for medicine in medicines:
            frequency = medicine.get("frequency")
            if not frequency or not isinstance(frequency, list):
                logger.info(f"Skipping medicine {medicine.get('id')}: no frequency tags")
                continue

            seen = set()
            for tag in frequency:
                if tag in seen:
                    continue
                seen.add(tag)

                slot = self._slot_for(medicine, tag, config)
                if slot is not None:
                    slots.append(slot)

        return slots

    def _slot_for(
        self,
        medicine: Dict[str, Any],
        tag: str,
        config: MealWindowConfig
    ) -> Optional[ScheduleSlot]:
        parsed = split_frequency_tag(tag)
        if parsed is None:
            logger.info(f"Skipping tag '{tag}' for medicine {medicine.get('id')}: unknown timing")
            return None

        timing, meal_name = parsed
        window = config.window(meal_name)
        if window is None:
            logger.info(f"Skipping tag '{tag}' for medicine {medicine.get('id')}: unknown meal '{meal_name}'")
            return None

        if timing == MealTiming.BEFORE:
            reminder_time = shift_hhmm(window.start, -config.reminder_advance_minutes)
        else:
            reminder_time = window.end

        return ScheduleSlot(
            id=slot_id_for(medicine["id"], tag),
            medicine_id=medicine["id"],
            medicine_name=medicine.get("name", ""),
            target_id=medicine.get("target_id", ""),
            frequency=tag,
            meal_time=meal_name,
            timing=timing.value,
            reminder_time=reminder_time,
            timezone=config.timezone,
            active=True,
        )


class DueSlotSelector:
    """Selects slots whose reminder time is within a tolerance of now"""

    def __init__(self, tolerance_minutes: int = engine_config.DUE_TOLERANCE_MINUTES):
        self.tolerance_minutes = tolerance_minutes

    def select(self, slots: Iterable[ScheduleSlot], now: datetime) -> List[ScheduleSlot]:
        """`now` must already be expressed in the tenant timezone"""
        now_minutes = now.hour * 60 + now.minute
        due = []

        for slot in slots:
            if not slot.active:
                continue
            try:
                slot_minutes = parse_hhmm(slot.reminder_time)
            except ValueError:
                logger.warning(f"Slot {slot.id} has unparseable reminder time '{slot.reminder_time}'")
                continue

            if circular_distance(now_minutes, slot_minutes) <= self.tolerance_minutes:
                due.append(slot)

        return due


class Clock:
    """Wall clock, injectable so tests can pin time"""

    def now(self, timezone: Optional[str] = None) -> datetime:
        current = datetime.now(dt_timezone.utc)
        if timezone:
            return current.astimezone(resolve_timezone(timezone))
        return current


# Singleton instances
schedule_compiler = ScheduleCompiler()
due_slot_selector = DueSlotSelector()
