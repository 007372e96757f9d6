"""
Reminder Schemas
Pydantic models for reminder responses, verifications and manual intake
"""

from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field

from models import (
    ManualIntakeStatus,
    ReminderKind,
    ReminderState,
    ResponseAction,
    VerificationOutcome,
)


# ==================== REQUEST SCHEMAS ====================

class ReminderResponseRequest(BaseModel):
    """Target's answer to a delivered reminder"""
    action: ResponseAction
    medicine_id: Optional[str] = None
    target_id: Optional[str] = None


class VerificationRequest(BaseModel):
    """Tracker verdict on an escalated reminder"""
    outcome: VerificationOutcome
    medicine_id: Optional[str] = None
    target_id: Optional[str] = None


class ManualIntakeRequest(BaseModel):
    """Out-of-band intake update recorded by a tracker"""
    medicine_id: str = Field(..., min_length=1)
    target_id: str = Field(..., min_length=1)
    status: ManualIntakeStatus
    notes: str = Field(default="", max_length=500)


# ==================== RESPONSE SCHEMAS ====================

class TransitionResponse(BaseModel):
    """Result of a reminder action"""
    reminder_key: Optional[str] = None
    state: Optional[ReminderState] = None
    outcome: str
    inventory: Optional[int] = None
    follow_up_key: Optional[str] = None
    tracked: bool = True


class ReminderResponse(BaseModel):
    """One reminder instance"""
    reminder_key: str
    kind: ReminderKind
    slot_id: Optional[str] = None
    parent_key: Optional[str] = None
    medicine_id: str
    target_id: str
    state: ReminderState
    outcome: Optional[str] = None
    created_at: datetime
    deliver_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    deadline_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


class ReminderList(BaseModel):
    reminders: List[ReminderResponse]
    total: int


class TickResponse(BaseModel):
    """What a manual tick did"""
    tenant_id: str
    delivered: List[str]
    snoozes_delivered: List[str]
    escalated: List[str]
    duplicates_skipped: int
    pruned: int
