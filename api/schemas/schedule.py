"""
Schedule Schemas
Pydantic models for settings, trackers and schedule slots
"""

from typing import Optional, List, Dict, Union
from pydantic import BaseModel, Field


# ==================== REQUEST SCHEMAS ====================

class MealWindowIn(BaseModel):
    """Start/end of one meal as HH:MM"""
    start: str
    end: str


class SettingsUpdate(BaseModel):
    """Schema for changing meal windows, timezone or advance minutes"""
    meal_times: Optional[Dict[str, Union[MealWindowIn, str]]] = Field(
        None, description="Per meal, {start, end} or \"HH:MM-HH:MM\""
    )
    timezone: Optional[str] = None
    reminder_advance_minutes: Optional[int] = None


class TrackerAdd(BaseModel):
    """Schema for adding a tracker to the roster"""
    tracker_id: str = Field(..., min_length=1)


# ==================== RESPONSE SCHEMAS ====================

class SettingsResponse(BaseModel):
    """Tenant settings"""
    meal_times: Dict[str, MealWindowIn]
    timezone: str
    reminder_advance_minutes: int
    trackers: List[str] = []
    updated_at: Optional[str] = None
    updated_by: Optional[str] = None


class TrackerList(BaseModel):
    trackers: List[str]


class ScheduleSlotResponse(BaseModel):
    """One compiled reminder slot"""
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


class ScheduleList(BaseModel):
    """Compiled slots for a tenant"""
    schedules: List[ScheduleSlotResponse]
    total: int
