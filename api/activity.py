"""
Activity API Router
Endpoints for the activity log and daily summaries
"""

from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from actions.activity_log import ActivityEventType, ActivityLog
from api.deps import get_activity_log, get_schedule_service
from api.schemas.activity import ActivityList, DailySummaryResponse
from services.schedule_service import ScheduleService


router = APIRouter(prefix="/tenants/{tenant_id}/activity", tags=["activity"])


@router.get("/", response_model=ActivityList)
def list_activity(
    tenant_id: str,
    day: Optional[date] = Query(None, description="Local calendar date"),
    types: Optional[List[ActivityEventType]] = Query(None),
    limit: int = Query(50, ge=1, le=1000),
    activity_log: ActivityLog = Depends(get_activity_log),
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    """Activity entries newest first"""
    timezone = schedule_service.get_meal_config(tenant_id).timezone
    entries = activity_log.entries(tenant_id, day=day, types=types, timezone=timezone, limit=limit)
    return {"entries": entries, "total": len(entries)}


@router.get("/summary", response_model=DailySummaryResponse)
def get_daily_summary(
    tenant_id: str,
    day: Optional[date] = Query(None, description="Defaults to today in the tenant timezone"),
    activity_log: ActivityLog = Depends(get_activity_log),
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    timezone = schedule_service.get_meal_config(tenant_id).timezone
    day = day or schedule_service.clock.now(timezone).date()
    return activity_log.daily_summary(tenant_id, day, timezone)
