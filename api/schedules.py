"""
Schedules API Router
Endpoints for meal-window settings, trackers and compiled slots
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query

from api.deps import get_actor_id, get_schedule_service
from api.schemas.schedule import (
    ScheduleList,
    SettingsResponse,
    SettingsUpdate,
    TrackerAdd,
    TrackerList,
)
from services.schedule_service import ScheduleService


router = APIRouter(prefix="/tenants/{tenant_id}", tags=["schedules"])


# ==================== SETTINGS ====================

@router.get("/settings", response_model=SettingsResponse)
def get_settings(
    tenant_id: str,
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    return schedule_service.get_settings(tenant_id)


@router.patch("/settings", response_model=SettingsResponse)
def update_settings(
    tenant_id: str,
    updates: SettingsUpdate,
    actor_id: str = Depends(get_actor_id),
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    """
    Change meal windows, timezone or reminder advance

    Schedules are regenerated after every successful update.
    """
    schedule_service.require_tracker(tenant_id, actor_id)
    return schedule_service.update_settings(
        tenant_id,
        updates.model_dump(exclude_none=True),
        updated_by=actor_id,
    )


# ==================== TRACKERS ====================

@router.get("/trackers", response_model=TrackerList)
def list_trackers(
    tenant_id: str,
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    return {"trackers": schedule_service.list_trackers(tenant_id)}


@router.post("/trackers", response_model=TrackerList)
def add_tracker(
    tenant_id: str,
    request: TrackerAdd,
    actor_id: str = Depends(get_actor_id),
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    schedule_service.require_tracker(tenant_id, actor_id)
    return {"trackers": schedule_service.add_tracker(tenant_id, request.tracker_id, added_by=actor_id)}


@router.delete("/trackers/{tracker_id}", response_model=TrackerList)
def remove_tracker(
    tenant_id: str,
    tracker_id: str,
    actor_id: str = Depends(get_actor_id),
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    schedule_service.require_tracker(tenant_id, actor_id)
    return {"trackers": schedule_service.remove_tracker(tenant_id, tracker_id, removed_by=actor_id)}


# ==================== SCHEDULES ====================

@router.get("/schedules", response_model=ScheduleList)
def get_schedules(
    tenant_id: str,
    target_id: Optional[str] = Query(None, description="Only slots for this target"),
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    slots = schedule_service.get_schedules(tenant_id, target_id=target_id)
    return {"schedules": [slot.to_dict() for slot in slots], "total": len(slots)}


@router.post("/schedules/regenerate", response_model=ScheduleList)
def regenerate_schedules(
    tenant_id: str,
    actor_id: str = Depends(get_actor_id),
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    """Recompile all slots from the current medicines and settings"""
    schedule_service.require_tracker(tenant_id, actor_id)
    slots = schedule_service.generate_schedules(tenant_id)
    return {"schedules": [slot.to_dict() for slot in slots], "total": len(slots)}


@router.get("/schedules/due", response_model=ScheduleList)
def get_due_schedules(
    tenant_id: str,
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    slots = schedule_service.due_slots(tenant_id)
    return {"schedules": [slot.to_dict() for slot in slots], "total": len(slots)}
