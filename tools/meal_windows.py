"""
Meal Window Configuration
Per-tenant meal windows, timezone and reminder advance offset
"""

import logging
import re
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from config import engine_config
from exceptions import ValidationError
from models import MealName


logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
_HHMM = re.compile(r"^(\d{2}):(\d{2})$")


def parse_hhmm(value: str) -> int:
    """Parse "HH:MM" into minutes since midnight"""
    match = _HHMM.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"'{value}' is not a valid HH:MM time")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"'{value}' is not a valid HH:MM time")
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM", wrapping across days"""
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def shift_hhmm(value: str, delta_minutes: int) -> str:
    """Shift an "HH:MM" time by delta minutes using modular day arithmetic"""
    return format_minutes(parse_hhmm(value) + delta_minutes)


def resolve_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name or raise ValueError"""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
        raise ValueError(f"Unknown timezone '{name}'") from e


class MealWindow(BaseModel):
    """Start/end time-of-day for one meal"""
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _check_hhmm(cls, value: str) -> str:
        parse_hhmm(value)
        return value.strip()

    @property
    def start_minutes(self) -> int:
        return parse_hhmm(self.start)

    @property
    def end_minutes(self) -> int:
        return parse_hhmm(self.end)


class MealWindowConfig(BaseModel):
    """Meal windows plus timezone and advance minutes for one tenant"""
    meal_times: Dict[str, MealWindow] = Field(
        default_factory=lambda: {
            name: MealWindow(**window)
            for name, window in engine_config.DEFAULT_MEAL_TIMES.items()
        }
    )
    timezone: str = engine_config.DEFAULT_TIMEZONE
    reminder_advance_minutes: int = Field(
        default=engine_config.DEFAULT_ADVANCE_MINUTES,
        ge=0,
        le=engine_config.MAX_ADVANCE_MINUTES,
    )

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        resolve_timezone(value)
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return resolve_timezone(self.timezone)

    def window(self, meal_name: str) -> Optional[MealWindow]:
        return self.meal_times.get(meal_name)

    def check_window_order(self) -> None:
        """
        Reject windows whose end does not come after their start.

        Overnight windows are not supported until there is a defined
        meaning for them.
        """
        for name, window in self.meal_times.items():
            if window.end_minutes <= window.start_minutes:
                raise ValidationError(
                    f"end {window.end} must be after start {window.start}",
                    field=f"meal_times.{name}",
                )

    def to_document_fields(self) -> Dict[str, Any]:
        return {
            "meal_times": {
                name: {"start": w.start, "end": w.end}
                for name, w in self.meal_times.items()
            },
            "timezone": self.timezone,
            "reminder_advance_minutes": self.reminder_advance_minutes,
        }


def _field_from_error(error: PydanticValidationError) -> str:
    first = error.errors()[0]
    return ".".join(str(part) for part in first.get("loc", ())) or "settings"


def load_meal_config(data: Dict[str, Any]) -> MealWindowConfig:
    """
    Build a MealWindowConfig from a settings document.

    Window ordering is not checked here so that configs already in the
    store keep compiling.
    """
    try:
        return MealWindowConfig(
            meal_times=data.get("meal_times") or engine_config.DEFAULT_MEAL_TIMES,
            timezone=data.get("timezone") or engine_config.DEFAULT_TIMEZONE,
            reminder_advance_minutes=data.get(
                "reminder_advance_minutes", engine_config.DEFAULT_ADVANCE_MINUTES
            ),
        )
    except PydanticValidationError as e:
        field = _field_from_error(e)
        raise ValidationError(e.errors()[0].get("msg", "invalid value"), field=field) from e


def validate_meal_config(data: Dict[str, Any]) -> MealWindowConfig:
    """Strict validation applied before settings are written"""
    known = {meal.value for meal in MealName}
    unknown = [name for name in (data.get("meal_times") or {}) if name not in known]
    if unknown:
        raise ValidationError(f"unknown meal(s): {', '.join(sorted(unknown))}", field="meal_times")

    config = load_meal_config(data)
    config.check_window_order()
    return config


def parse_time_range(value: str, field: str = "meal_times") -> Dict[str, str]:
    """Parse "HH:MM-HH:MM" into a start/end mapping"""
    parts = [p.strip() for p in (value or "").split("-")]
    if len(parts) != 2 or not all(parts):
        raise ValidationError("expected HH:MM-HH:MM", field=field)

    for part in parts:
        try:
            parse_hhmm(part)
        except ValueError as e:
            raise ValidationError(str(e), field=field) from e
    return {"start": parts[0], "end": parts[1]}
