"""
Services Module
Business logic layer for the MedTrack application
"""

from services.medication_service import MedicationService, parse_frequency
from services.schedule_service import ScheduleService
from services.reminder_scheduler import ReminderTicker


__all__ = [
    "MedicationService",
    "ScheduleService",
    "ReminderTicker",
    "parse_frequency",
]
