"""
Tests for Medication Scheduler Tool
Tests slot compilation from meal windows and due-slot selection
"""

import pytest
from datetime import date, datetime, timezone

from tools.meal_windows import MealWindowConfig, load_meal_config
from tools.scheduler import (
    Clock,
    DueSlotSelector,
    ScheduleCompiler,
    ScheduleSlot,
    circular_distance,
    occurrence_date,
    slot_id_for,
    split_frequency_tag,
)
from models import MealTiming


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def compiler():
    """Create schedule compiler instance"""
    return ScheduleCompiler()


@pytest.fixture
def default_config():
    """Default meal windows in Asia/Kolkata with a 15 minute advance"""
    return MealWindowConfig()


@pytest.fixture
def metformin():
    return {
        "id": "med_abc",
        "name": "Metformin",
        "dosage": "500mg",
        "frequency": ["before_breakfast", "after_dinner"],
        "inventory": 10,
        "target_id": "user-1",
    }


def _slot(reminder_time: str, active: bool = True) -> ScheduleSlot:
    return ScheduleSlot(
        id=f"sched_med_{reminder_time}",
        medicine_id="med",
        medicine_name="Med",
        target_id="user-1",
        frequency="before_breakfast",
        meal_time="breakfast",
        timing="before",
        reminder_time=reminder_time,
        timezone="Asia/Kolkata",
        active=active,
    )


def _at(hour: int, minute: int) -> datetime:
    return datetime(2025, 1, 15, hour, minute)


# =============================================================================
# Test Frequency Tags
# =============================================================================

class TestFrequencyTags:
    """Tests for tag splitting and slot ids"""

    @pytest.mark.unit
    def test_split_known_tag(self):
        assert split_frequency_tag("before_lunch") == (MealTiming.BEFORE, "lunch")
        assert split_frequency_tag("after_dinner") == (MealTiming.AFTER, "dinner")

    @pytest.mark.unit
    def test_split_unknown_timing(self):
        assert split_frequency_tag("during_lunch") is None
        assert split_frequency_tag("lunch") is None
        assert split_frequency_tag(None) is None

    @pytest.mark.unit
    def test_slot_id_is_deterministic(self):
        assert slot_id_for("med_1", "before_breakfast") == "sched_med_1_before_breakfast"


# =============================================================================
# Test ScheduleCompiler
# =============================================================================

class TestScheduleCompiler:
    """Tests for slot compilation"""

    @pytest.mark.unit
    def test_before_meal_subtracts_advance(self, compiler, default_config, metformin):
        slots = compiler.compile([metformin], default_config)

        before = next(s for s in slots if s.frequency == "before_breakfast")
        assert before.reminder_time == "06:45"
        assert before.timing == "before"
        assert before.meal_time == "breakfast"
        assert before.id == "sched_med_abc_before_breakfast"

    @pytest.mark.unit
    def test_after_meal_uses_window_end(self, compiler, default_config, metformin):
        slots = compiler.compile([metformin], default_config)

        after = next(s for s in slots if s.frequency == "after_dinner")
        assert after.reminder_time == "21:00"
        assert after.timing == "after"

    @pytest.mark.unit
    def test_before_meal_wraps_past_midnight(self, compiler, metformin):
        config = load_meal_config({
            "meal_times": {
                "breakfast": {"start": "00:10", "end": "01:00"},
                "lunch": {"start": "12:00", "end": "14:00"},
                "dinner": {"start": "19:00", "end": "21:00"},
            },
            "reminder_advance_minutes": 15,
        })

        slots = compiler.compile([metformin], config)

        assert slots[0].reminder_time == "23:55"

    @pytest.mark.unit
    def test_compile_is_idempotent(self, compiler, default_config, metformin):
        first = compiler.compile([metformin], default_config)
        second = compiler.compile([metformin], default_config)

        assert first == second
        assert [s.id for s in first] == [s.id for s in second]

    @pytest.mark.unit
    def test_duplicate_tags_collapse(self, compiler, default_config, metformin):
        metformin["frequency"] = ["before_breakfast", "before_breakfast"]

        slots = compiler.compile([metformin], default_config)

        assert len(slots) == 1

    @pytest.mark.unit
    def test_unknown_tags_are_skipped(self, compiler, default_config, metformin):
        metformin["frequency"] = ["before_brunch", "whenever", "after_lunch"]

        slots = compiler.compile([metformin], default_config)

        assert [s.frequency for s in slots] == ["after_lunch"]

    @pytest.mark.unit
    def test_missing_frequency_is_skipped(self, compiler, default_config, metformin):
        no_tags = dict(metformin, id="med_none", frequency=[])
        bad_type = dict(metformin, id="med_str", frequency="before_lunch")

        slots = compiler.compile([no_tags, bad_type], default_config)

        assert slots == []

    @pytest.mark.unit
    def test_slot_round_trips_through_dict(self, compiler, default_config, metformin):
        slot = compiler.compile([metformin], default_config)[0]

        assert ScheduleSlot.from_dict(slot.to_dict()) == slot


# =============================================================================
# Test DueSlotSelector
# =============================================================================

class TestDueSlotSelector:
    """Tests for selecting due slots"""

    @pytest.mark.unit
    def test_selects_within_tolerance(self):
        selector = DueSlotSelector(tolerance_minutes=1)
        slots = [_slot("06:45"), _slot("07:30")]

        assert [s.reminder_time for s in selector.select(slots, _at(6, 45))] == ["06:45"]
        assert [s.reminder_time for s in selector.select(slots, _at(6, 46))] == ["06:45"]
        assert selector.select(slots, _at(6, 47)) == []

    @pytest.mark.unit
    def test_midnight_is_circular(self):
        selector = DueSlotSelector(tolerance_minutes=1)

        assert len(selector.select([_slot("23:59")], _at(0, 0))) == 1
        assert len(selector.select([_slot("00:00")], _at(23, 59))) == 1

    @pytest.mark.unit
    def test_inactive_slots_are_ignored(self):
        selector = DueSlotSelector()

        assert selector.select([_slot("06:45", active=False)], _at(6, 45)) == []

    @pytest.mark.unit
    def test_unparseable_time_is_skipped(self):
        selector = DueSlotSelector()

        assert selector.select([_slot("6:45")], _at(6, 45)) == []

    @pytest.mark.unit
    def test_circular_distance(self):
        assert circular_distance(0, 1439) == 1
        assert circular_distance(600, 660) == 60
        assert circular_distance(0, 720) == 720

    @pytest.mark.unit
    @pytest.mark.parametrize("reminder_time,hour,minute,expected", [
        ("00:00", 23, 59, date(2025, 1, 16)),
        ("23:59", 0, 0, date(2025, 1, 14)),
        ("06:45", 6, 46, date(2025, 1, 15)),
        ("00:00", 0, 1, date(2025, 1, 15)),
    ])
    def test_occurrence_date(self, reminder_time, hour, minute, expected):
        assert occurrence_date(reminder_time, _at(hour, minute)) == expected


class TestClock:
    """Tests for the wall clock"""

    @pytest.mark.unit
    def test_now_is_aware(self):
        assert Clock().now().tzinfo is not None

    @pytest.mark.unit
    def test_now_in_timezone(self):
        local = Clock().now("Asia/Kolkata")

        assert local.utcoffset().total_seconds() == 5.5 * 3600
        assert abs((local - datetime.now(timezone.utc)).total_seconds()) < 5
