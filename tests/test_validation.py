"""
Tests for candidate validation and form input handling.
"""

import random

import pendulum
import pytest

from appointmentplanner.domain.exceptions import ValidationError
from appointmentplanner.domain.models import COLOR_PALETTE, Appointment
from appointmentplanner.domain.validation import (
    AppointmentValidator,
    ParticipantValidator,
    derive_end_time,
    handle_input_change,
    new_candidate,
)


def _valid_candidate(**overrides):
    values = {
        "title": "Design review",
        "date": pendulum.date(2024, 6, 10),
        "start_time": "09:00",
        "end_time": "10:00",
        "participants": ["p1"],
    }
    values.update(overrides)
    return Appointment(**values)


class TestAppointmentValidator:
    """Tests for AppointmentValidator."""

    def test_valid_candidate(self):
        result = AppointmentValidator().validate(_valid_candidate())

        assert result.valid
        assert result.errors == {}

    def test_empty_candidate_reports_every_required_field(self):
        """Every rule is checked, not just the first failing one."""
        result = AppointmentValidator().validate({})

        assert set(result.errors) == {"title", "date", "start_time", "end_time", "participants"}
        assert result.errors["participants"] == "At least one participant is required"

    def test_end_before_start(self):
        result = AppointmentValidator().validate(_valid_candidate(start_time="14:00", end_time="13:00"))

        assert result.errors == {"end_time": "End time must be after start time"}

    def test_equal_start_and_end(self):
        result = AppointmentValidator().validate(_valid_candidate(start_time="14:00", end_time="14:00"))

        assert "end_time" in result.errors

    def test_blank_title_is_missing(self):
        result = AppointmentValidator().validate(_valid_candidate(title="   "))

        assert result.errors == {"title": "Title is required"}

    def test_malformed_clock_values(self):
        result = AppointmentValidator().validate(_valid_candidate(start_time="9am", end_time="25:00"))

        assert result.errors["start_time"] == "Start time must use HH:mm format"
        assert result.errors["end_time"] == "End time must use HH:mm format"

    def test_unparsable_date_in_record(self):
        result = AppointmentValidator().validate(
            {"title": "x", "date": "someday", "start_time": "09:00", "end_time": "10:00", "participants": ["p1"]}
        )

        assert result.errors == {"date": "Date is invalid"}

    def test_blank_candidate_with_misordered_times(self):
        """Blank title, no date, 09:00-08:00 and nobody invited: four errors, start is fine."""
        result = AppointmentValidator().validate(
            {"title": "", "date": None, "start_time": "09:00", "end_time": "08:00", "participants": []}
        )

        assert set(result.errors) == {"title", "date", "end_time", "participants"}
        assert result.errors["end_time"] == "End time must be after start time"
        assert result.errors["date"] == "Date is required"

    def test_color_outside_palette(self):
        result = AppointmentValidator().validate(_valid_candidate(color="#000000"))

        assert result.errors == {"color": "Color must be one of the palette colors"}

    def test_palette_color_in_any_case(self):
        assert AppointmentValidator().validate(_valid_candidate(color="#6366F1")).valid
        assert AppointmentValidator().validate(_valid_candidate(color=None)).valid

    def test_custom_palette(self):
        validator = AppointmentValidator(palette=["#123456"])

        assert validator.validate(_valid_candidate(color="#123456")).valid
        assert "color" in validator.validate(_valid_candidate(color="#6366f1")).errors

    def test_raise_for_errors(self):
        result = AppointmentValidator().validate(_valid_candidate(participants=[]))

        with pytest.raises(ValidationError) as excinfo:
            result.raise_for_errors()

        assert excinfo.value.field_errors == {"participants": "At least one participant is required"}


class TestParticipantValidator:
    """Tests for ParticipantValidator."""

    def test_valid_participant(self):
        assert ParticipantValidator().validate({"name": "Alice", "email": "alice@example.com"}).valid

    def test_missing_fields(self):
        result = ParticipantValidator().validate({})

        assert result.errors == {"name": "Name is required", "email": "Email is required"}

    def test_invalid_email(self):
        result = ParticipantValidator().validate({"name": "Alice", "email": "alice@localhost"})

        assert result.errors == {"email": "Email is invalid"}

    def test_color_outside_palette(self):
        result = ParticipantValidator().validate({"name": "Alice", "email": "alice@example.com", "color": "banana"})

        assert result.errors == {"color": "Color must be one of the palette colors"}

    def test_palette_color(self):
        assert ParticipantValidator().validate({"name": "Alice", "email": "alice@example.com", "color": "#14B8A6"}).valid


class TestInputHandling:
    """Tests for form edits and default durations."""

    def test_derive_end_time(self):
        assert derive_end_time("09:00") == "10:00"
        assert derive_end_time("09:45", 30) == "10:15"

    def test_derive_end_time_wraps_past_midnight(self):
        assert derive_end_time("23:40") == "00:40"

    def test_start_change_moves_end(self):
        """Changing the start re-derives the end with the default duration."""
        candidate = _valid_candidate(start_time="09:00", end_time="09:30")

        updated = handle_input_change(candidate, "start_time", "14:00")

        assert updated.start_time == "14:00"
        assert updated.end_time == "15:00"
        assert candidate.start_time == "09:00"

    def test_explicit_end_change_wins(self):
        candidate = handle_input_change(_valid_candidate(), "start_time", "14:00")

        updated = handle_input_change(candidate, "end_time", "14:30")

        assert updated.start_time == "14:00"
        assert updated.end_time == "14:30"

    def test_partial_start_keeps_end(self):
        """A half-typed start does not touch the end."""
        updated = handle_input_change(_valid_candidate(), "start_time", "1")

        assert updated.end_time == "10:00"

    def test_late_start_is_rejected_after_wrap(self):
        updated = handle_input_change(_valid_candidate(), "start_time", "23:40")

        assert updated.end_time == "00:40"
        assert AppointmentValidator().validate(updated).errors == {"end_time": "End time must be after start time"}

    def test_date_change_is_parsed(self):
        updated = handle_input_change(_valid_candidate(), "date", "2024-06-12")

        assert updated.date == pendulum.date(2024, 6, 12)

    def test_unknown_field(self):
        with pytest.raises(ValueError, match="Unknown appointment field"):
            handle_input_change(_valid_candidate(), "room", "B12")

    def test_new_candidate_from_slot(self):
        candidate = new_candidate("2024-06-10", "10:30", rng=random.Random(7))

        assert candidate.date == pendulum.date(2024, 6, 10)
        assert candidate.start_time == "10:30"
        assert candidate.end_time == "11:30"
        assert candidate.participants == []
        assert candidate.color in COLOR_PALETTE
