"""
Tests for Schedule Service
Tests settings updates, the tracker roster and slot generation
"""

from datetime import datetime, timezone

import pytest

from exceptions import NotFoundError, PermissionDenied, ValidationError
from actions.activity_log import ActivityEventType
from tests.conftest import TARGET_ID, TRACKER_ID


class TestSettings:
    """Tests for meal-window settings"""

    @pytest.mark.unit
    def test_defaults(self, schedule_service, tenant):
        settings = schedule_service.get_settings(tenant)

        assert settings["timezone"] == "Asia/Kolkata"
        assert settings["reminder_advance_minutes"] == 15
        assert settings["meal_times"]["breakfast"] == {"start": "07:00", "end": "10:00"}
        assert settings["trackers"] == [TRACKER_ID]

    @pytest.mark.unit
    def test_partial_meal_update_regenerates(self, schedule_service, activity_log, tenant, medicine):
        settings = schedule_service.update_settings(
            tenant,
            {"meal_times": {"breakfast": {"start": "08:00", "end": "09:00"}}},
            updated_by=TRACKER_ID,
        )

        assert settings["meal_times"]["breakfast"]["start"] == "08:00"
        assert settings["meal_times"]["lunch"] == {"start": "12:00", "end": "14:00"}
        assert settings["updated_by"] == TRACKER_ID
        assert [s.reminder_time for s in schedule_service.get_schedules(tenant)] == ["07:45"]

        types = [e.type for e in activity_log.entries(tenant, limit=2)]
        assert types == [ActivityEventType.SCHEDULES_GENERATED, ActivityEventType.SETTINGS_UPDATED]

    @pytest.mark.unit
    def test_meal_window_as_range_string(self, schedule_service, tenant, medicine):
        settings = schedule_service.update_settings(
            tenant, {"meal_times": {"breakfast": "08:00-09:00"}}, updated_by=TRACKER_ID
        )

        assert settings["meal_times"]["breakfast"] == {"start": "08:00", "end": "09:00"}
        assert schedule_service.get_schedules(tenant)[0].reminder_time == "07:45"

    @pytest.mark.unit
    def test_advance_change_moves_slots(self, schedule_service, tenant, medicine):
        schedule_service.update_settings(tenant, {"reminder_advance_minutes": 30}, updated_by=TRACKER_ID)

        assert schedule_service.get_schedules(tenant)[0].reminder_time == "06:30"

    @pytest.mark.unit
    @pytest.mark.parametrize("updates,field", [
        ({"timezone": "Nowhere/City"}, "timezone"),
        ({"reminder_advance_minutes": 90}, "reminder_advance_minutes"),
        ({"meal_times": {"lunch": {"start": "14:00", "end": "12:00"}}}, "meal_times.lunch"),
        ({"meal_times": {"dinner": "19:00"}}, "meal_times.dinner"),
        ({"meal_times": {"dinner": "7pm-9pm"}}, "meal_times.dinner"),
        ({"theme": "dark"}, "theme"),
    ])
    def test_invalid_updates_change_nothing(self, schedule_service, tenant, updates, field):
        with pytest.raises(ValidationError) as exc_info:
            schedule_service.update_settings(tenant, updates, updated_by=TRACKER_ID)

        assert exc_info.value.field == field
        assert schedule_service.get_settings(tenant)["updated_at"] is None


class TestTrackers:
    """Tests for the tracker roster"""

    @pytest.mark.unit
    def test_add_is_idempotent(self, schedule_service, activity_log, tenant):
        before = len(activity_log.entries(tenant))

        assert schedule_service.add_tracker(tenant, TRACKER_ID, added_by=TRACKER_ID) == [TRACKER_ID]
        assert len(activity_log.entries(tenant)) == before

    @pytest.mark.unit
    def test_remove(self, schedule_service, activity_log, tenant):
        schedule_service.add_tracker(tenant, "second", added_by=TRACKER_ID)

        assert schedule_service.remove_tracker(tenant, "second", removed_by=TRACKER_ID) == [TRACKER_ID]
        assert activity_log.entries(tenant)[0].type == ActivityEventType.TRACKER_REMOVED

    @pytest.mark.unit
    def test_remove_unknown(self, schedule_service, tenant):
        with pytest.raises(NotFoundError):
            schedule_service.remove_tracker(tenant, "nobody", removed_by=TRACKER_ID)

    @pytest.mark.unit
    def test_require_tracker(self, schedule_service, tenant):
        schedule_service.require_tracker(tenant, TRACKER_ID)

        with pytest.raises(PermissionDenied):
            schedule_service.require_tracker(tenant, TARGET_ID)

    @pytest.mark.unit
    def test_empty_roster_is_open(self, schedule_service, store):
        store.initialize_tenant("fresh")

        schedule_service.require_tracker("fresh", "anyone")
        assert schedule_service.is_tracker("fresh", "anyone") is False


class TestSchedules:
    """Tests for slot generation and lookup"""

    @pytest.mark.unit
    def test_generate_replaces_slots(self, schedule_service, medication_service, tenant, medicine):
        medication_service.update_medicine(
            tenant, medicine["id"], {"frequency": "before_breakfast,after_dinner"}, updated_by=TRACKER_ID
        )

        slots = schedule_service.generate_schedules(tenant)

        assert [s.reminder_time for s in slots] == ["06:45", "21:00"]
        assert len(schedule_service.get_schedules(tenant)) == 2
        assert schedule_service.get_schedules(tenant, target_id="other") == []

    @pytest.mark.unit
    def test_due_slots_in_tenant_timezone(self, schedule_service, tenant, medicine):
        assert len(schedule_service.due_slots(tenant)) == 1
        assert schedule_service.due_slots(tenant, now=datetime(2025, 1, 15, 3, 0, tzinfo=timezone.utc)) == []
