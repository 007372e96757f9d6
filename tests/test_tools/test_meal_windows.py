"""
Tests for Meal Window Configuration
Tests HH:MM parsing, timezone checks and settings validation
"""

import pytest

from exceptions import ValidationError
from tools.meal_windows import (
    MealWindowConfig,
    format_minutes,
    load_meal_config,
    parse_hhmm,
    parse_time_range,
    shift_hhmm,
    validate_meal_config,
)


class TestTimeHelpers:
    """Tests for HH:MM helpers"""

    @pytest.mark.unit
    def test_parse_hhmm(self):
        assert parse_hhmm("00:00") == 0
        assert parse_hhmm("07:30") == 450
        assert parse_hhmm("23:59") == 1439

    @pytest.mark.unit
    @pytest.mark.parametrize("value", ["7:30", "24:00", "12:60", "noon", "", None])
    def test_parse_hhmm_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            parse_hhmm(value)

    @pytest.mark.unit
    def test_shift_wraps_both_ways(self):
        assert shift_hhmm("00:10", -15) == "23:55"
        assert shift_hhmm("23:50", 20) == "00:10"
        assert format_minutes(-1) == "23:59"

    @pytest.mark.unit
    def test_parse_time_range(self):
        assert parse_time_range("07:00-10:00") == {"start": "07:00", "end": "10:00"}

    @pytest.mark.unit
    def test_parse_time_range_names_field(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_time_range("7-10", field="meal_times.breakfast")

        assert exc_info.value.field == "meal_times.breakfast"


class TestMealWindowConfig:
    """Tests for loading and validating tenant settings"""

    @pytest.mark.unit
    def test_defaults(self):
        config = MealWindowConfig()

        assert config.timezone == "Asia/Kolkata"
        assert config.reminder_advance_minutes == 15
        assert config.window("breakfast").start == "07:00"
        assert config.window("dinner").end == "21:00"
        assert config.window("brunch") is None

    @pytest.mark.unit
    def test_unknown_timezone_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            load_meal_config({"timezone": "Mars/Olympus"})

        assert exc_info.value.field == "timezone"

    @pytest.mark.unit
    @pytest.mark.parametrize("advance", [-1, 61])
    def test_advance_out_of_range(self, advance):
        with pytest.raises(ValidationError) as exc_info:
            load_meal_config({"reminder_advance_minutes": advance})

        assert exc_info.value.field == "reminder_advance_minutes"

    @pytest.mark.unit
    def test_malformed_window_names_meal(self):
        with pytest.raises(ValidationError) as exc_info:
            load_meal_config({"meal_times": {"lunch": {"start": "noon", "end": "14:00"}}})

        assert exc_info.value.field.startswith("meal_times.lunch")

    @pytest.mark.unit
    def test_inverted_window_loads_but_fails_validation(self):
        data = {
            "meal_times": {
                "breakfast": {"start": "07:00", "end": "10:00"},
                "lunch": {"start": "14:00", "end": "12:00"},
                "dinner": {"start": "19:00", "end": "21:00"},
            }
        }

        assert load_meal_config(data).window("lunch").start == "14:00"

        with pytest.raises(ValidationError) as exc_info:
            validate_meal_config(data)
        assert exc_info.value.field == "meal_times.lunch"

    @pytest.mark.unit
    def test_unknown_meal_fails_validation(self):
        with pytest.raises(ValidationError):
            validate_meal_config({"meal_times": {"brunch": {"start": "10:00", "end": "11:00"}}})

    @pytest.mark.unit
    def test_to_document_fields(self):
        fields = MealWindowConfig().to_document_fields()

        assert fields["meal_times"]["lunch"] == {"start": "12:00", "end": "14:00"}
        assert fields["timezone"] == "Asia/Kolkata"
