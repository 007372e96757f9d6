"""
Reminders API Router
Endpoints for reminder responses, tracker verification and manual intake
"""

from dataclasses import asdict
from typing import Optional
from fastapi import APIRouter, Depends, Query

from models import ReminderState
from actions.reminder_engine import ReminderLifecycleManager
from api.deps import get_actor_id, get_engine
from api.schemas.reminder import (
    ManualIntakeRequest,
    ReminderList,
    ReminderResponse,
    ReminderResponseRequest,
    TickResponse,
    TransitionResponse,
    VerificationRequest,
)


router = APIRouter(prefix="/tenants/{tenant_id}/reminders", tags=["reminders"])


@router.get("/", response_model=ReminderList)
def list_reminders(
    tenant_id: str,
    state: Optional[ReminderState] = Query(None),
    target_id: Optional[str] = Query(None),
    engine: ReminderLifecycleManager = Depends(get_engine)
):
    rows = engine.list_reminders(tenant_id, state=state, target_id=target_id)
    return {"reminders": [row.model_dump() for row in rows], "total": len(rows)}


@router.get("/{reminder_key}", response_model=ReminderResponse)
def get_reminder(
    tenant_id: str,
    reminder_key: str,
    engine: ReminderLifecycleManager = Depends(get_engine)
):
    return engine.get_reminder(tenant_id, reminder_key).model_dump()


@router.post("/{reminder_key}/respond", response_model=TransitionResponse)
def respond_to_reminder(
    tenant_id: str,
    reminder_key: str,
    request: ReminderResponseRequest,
    actor_id: str = Depends(get_actor_id),
    engine: ReminderLifecycleManager = Depends(get_engine)
):
    """
    Target answers a delivered reminder

    - **action**: `taken`, `missed` or `snooze`
    - A second answer for the same reminder returns 409
    """
    result = engine.respond(
        tenant_id,
        reminder_key,
        actor_id,
        request.action,
        medicine_id=request.medicine_id,
        target_id=request.target_id,
    )
    return asdict(result)


@router.post("/{reminder_key}/verify", response_model=TransitionResponse)
def verify_reminder(
    tenant_id: str,
    reminder_key: str,
    request: VerificationRequest,
    actor_id: str = Depends(get_actor_id),
    engine: ReminderLifecycleManager = Depends(get_engine)
):
    """Tracker verdict on an escalated reminder: `taken`, `missed` or `late`"""
    result = engine.verify(
        tenant_id,
        reminder_key,
        actor_id,
        request.outcome,
        medicine_id=request.medicine_id,
        target_id=request.target_id,
    )
    return asdict(result)


manual_router = APIRouter(prefix="/tenants/{tenant_id}", tags=["reminders"])


@manual_router.post("/intake", response_model=TransitionResponse)
def record_manual_intake(
    tenant_id: str,
    request: ManualIntakeRequest,
    actor_id: str = Depends(get_actor_id),
    engine: ReminderLifecycleManager = Depends(get_engine)
):
    """Tracker records an intake outside any reminder"""
    result = engine.record_manual_intake(
        tenant_id,
        request.medicine_id,
        request.target_id,
        actor_id,
        request.status,
        notes=request.notes,
    )
    return asdict(result)


@manual_router.post("/tick", response_model=TickResponse)
def run_tick(
    tenant_id: str,
    engine: ReminderLifecycleManager = Depends(get_engine)
):
    """Run one scheduler tick for this tenant now"""
    return asdict(engine.process_tenant(tenant_id))
