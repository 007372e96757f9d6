"""
Activity Schemas
Pydantic models for activity log queries and daily summaries
"""

from typing import Optional, List
from pydantic import BaseModel

from actions.activity_log import ActivityEntry


class ActivityList(BaseModel):
    """Activity entries, newest first"""
    entries: List[ActivityEntry]
    total: int


class DailySummaryResponse(BaseModel):
    """Taken/missed counts for one local date"""
    date: str
    taken: int
    missed: int
    compliance: Optional[int] = None
