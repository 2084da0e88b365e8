"""
Structural validation of candidate appointments and participants.

Validators never raise on bad input: every applicable field error is
collected and returned together. Conflict detection is a separate step.
"""

import random
import re
from dataclasses import dataclass, field, fields, replace
from datetime import date as date_type
from typing import Any, Dict, Mapping, Optional, Sequence, Union

import pendulum

from .exceptions import ValidationError
from .models import (
    COLOR_PALETTE,
    Appointment,
    Participant,
    is_clock,
    parse_clock,
    parse_date,
    random_color,
)

DEFAULT_DURATION_MINUTES = 60

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")

_APPOINTMENT_FIELDS = {item.name for item in fields(Appointment)}


@dataclass
class ValidationResult:
    """Outcome of a validation pass, keyed by field name."""
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise ValidationError carrying the field errors, if any."""
        if self.errors:
            raise ValidationError(self.errors)


class AppointmentValidator:
    """
    Gatekeeper for appointment create/update.

    Rules are evaluated independently:
    - title, date, start_time, end_time required
    - at least one participant
    - end_time strictly after start_time once both parse
    - color, when set, taken from the palette
    """

    def __init__(self, palette: Sequence[str] = COLOR_PALETTE):
        self.palette = list(palette)

    def validate(self, candidate: Union[Appointment, Mapping[str, Any]]) -> ValidationResult:
        errors: Dict[str, str] = {}

        if isinstance(candidate, Mapping):
            try:
                candidate = Appointment.from_record(candidate)
            except ValueError:
                errors["date"] = "Date is invalid"
                candidate = Appointment.from_record({**candidate, "date": None})

        if not (candidate.title or "").strip():
            errors["title"] = "Title is required"

        if candidate.date is None and "date" not in errors:
            errors["date"] = "Date is required"

        start = self._check_clock(candidate.start_time, "start_time", "Start time", errors)
        end = self._check_clock(candidate.end_time, "end_time", "End time", errors)

        if not candidate.participants:
            errors["participants"] = "At least one participant is required"

        if start is not None and end is not None and end <= start:
            errors["end_time"] = "End time must be after start time"

        _check_color(candidate.color, self.palette, errors)

        return ValidationResult(errors=errors)

    @staticmethod
    def _check_clock(value: Optional[str], key: str, label: str, errors: Dict[str, str]):
        if not value:
            errors[key] = f"{label} is required"
            return None
        if not is_clock(value):
            errors[key] = f"{label} must use HH:mm format"
            return None
        return parse_clock(value)


class ParticipantValidator:
    """Name is required; email is required and must look like an address."""

    def __init__(self, palette: Sequence[str] = COLOR_PALETTE):
        self.palette = list(palette)

    def validate(self, candidate: Union[Participant, Mapping[str, Any]]) -> ValidationResult:
        if isinstance(candidate, Mapping):
            candidate = Participant.from_record(candidate)

        errors: Dict[str, str] = {}

        if not candidate.name.strip():
            errors["name"] = "Name is required"

        if not candidate.email.strip():
            errors["email"] = "Email is required"
        elif not EMAIL_PATTERN.search(candidate.email):
            errors["email"] = "Email is invalid"

        _check_color(candidate.color, self.palette, errors)

        return ValidationResult(errors=errors)


def _check_color(color: Optional[str], palette: Sequence[str], errors: Dict[str, str]) -> None:
    if color and color.lower() not in {token.lower() for token in palette}:
        errors["color"] = "Color must be one of the palette colors"


def derive_end_time(start_time: str, duration_minutes: int = DEFAULT_DURATION_MINUTES) -> str:
    """
    Default end for a start time.

    Wraps past midnight (23:40 + 60 -> 00:40) without moving the date; the
    resulting candidate is then rejected by the ordering rule.
    """
    hour, minute = parse_clock(start_time)
    start = pendulum.datetime(2000, 1, 1, hour, minute, tz="UTC")
    return start.add(minutes=duration_minutes).format("HH:mm")


def handle_input_change(
    candidate: Appointment,
    field_name: str,
    value: Any,
    duration_minutes: int = DEFAULT_DURATION_MINUTES,
) -> Appointment:
    """
    Apply one form edit to a candidate and return the updated copy.

    Changing ``start_time`` re-derives ``end_time`` with the default
    duration; a later explicit ``end_time`` edit overrides it.

    Raises:
        ValueError: If the field does not exist on an appointment
    """
    if field_name not in _APPOINTMENT_FIELDS:
        raise ValueError(f"Unknown appointment field: {field_name}")

    if field_name == "date":
        value = parse_date(value)

    updated = replace(candidate, **{field_name: value})

    if field_name == "start_time" and is_clock(value):
        updated.end_time = derive_end_time(value, duration_minutes)

    return updated


def new_candidate(
    day: Union[date_type, str],
    start_time: str = "09:00",
    duration_minutes: int = DEFAULT_DURATION_MINUTES,
    palette: Sequence[str] = COLOR_PALETTE,
    rng: Optional[random.Random] = None,
) -> Appointment:
    """Blank candidate opened from a clicked grid slot."""
    return Appointment(
        date=parse_date(day),
        start_time=start_time,
        end_time=derive_end_time(start_time, duration_minutes),
        participants=[],
        color=random_color(palette, rng),
    )
