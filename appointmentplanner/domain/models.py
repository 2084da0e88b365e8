"""
Domain models for appointments, participants and the time ranges they occupy.
"""

import random
import re
from dataclasses import asdict, dataclass, field
from datetime import date as date_type, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pendulum
from pendulum import Date, DateTime

DEFAULT_TIMEZONE = "Europe/Berlin"

COLOR_PALETTE = (
    "#6366f1",  # Indigo
    "#ec4899",  # Pink
    "#8b5cf6",  # Purple
    "#14b8a6",  # Teal
    "#f59e0b",  # Amber
    "#ef4444",  # Red
    "#22c55e",  # Green
    "#06b6d4",  # Cyan
)

UNKNOWN_COLOR = "#ccc"

_CLOCK_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_clock(value: str) -> Tuple[int, int]:
    """
    Split an ``HH:mm`` clock value into hour and minute.

    Raises:
        ValueError: If the value is not a 24h ``HH:mm`` string
    """
    match = _CLOCK_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid clock value {value!r}, expected HH:mm")
    return int(match.group(1)), int(match.group(2))


def is_clock(value: Any) -> bool:
    """Check whether a value is a well-formed ``HH:mm`` string."""
    return isinstance(value, str) and bool(_CLOCK_PATTERN.match(value))


def parse_date(value: Any) -> Optional[Date]:
    """
    Normalise a date-ish value (ISO string, date, datetime) to a pendulum Date.

    Empty values map to None; anything unparsable raises ValueError.
    """
    if value is None or value == "":
        return None
    if isinstance(value, (datetime, date_type)):
        return pendulum.date(value.year, value.month, value.day)
    if isinstance(value, str):
        parsed = pendulum.parse(value)
        return pendulum.date(parsed.year, parsed.month, parsed.day)
    raise ValueError(f"Cannot interpret {value!r} as a date")


def wall_clock(day: date_type, clock: str) -> DateTime:
    """
    Combine a calendar day with an ``HH:mm`` value as a naive local instant.

    All comparisons use these, so a daylight-saving transition never moves
    or removes a clock value.
    """
    hour, minute = parse_clock(clock)
    return pendulum.naive(day.year, day.month, day.day, hour, minute)


def at_clock(day: date_type, clock: str, timezone: str = DEFAULT_TIMEZONE) -> DateTime:
    """
    Combine a calendar day with an ``HH:mm`` value in the given timezone.

    A clock value inside a spring-forward gap resolves to the instant after
    the transition (02:30 becomes 03:30 CEST).
    """
    hour, minute = parse_clock(clock)
    return pendulum.datetime(day.year, day.month, day.day, hour, minute, tz=timezone)


def initials_for(name: str) -> str:
    """Avatar initials: first letter of every name part, upper-cased."""
    return "".join(part[0] for part in name.split()).upper()


def random_color(palette: Sequence[str] = COLOR_PALETTE, rng: Optional[random.Random] = None) -> str:
    """Pick a palette color for a record created without one."""
    return (rng or random).choice(list(palette))


def _unique(ids: Iterable[str]) -> List[str]:
    # Preserve order while removing duplicates
    seen: set[str] = set()
    deduped: List[str] = []
    for item in ids:
        if item not in seen:
            deduped.append(item)
            seen.add(item)
    return deduped


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Ranges are half-open: ``end`` itself is not part of the range, so two
    back-to-back ranges do not overlap.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start

    def contains(self, moment: DateTime) -> bool:
        """Check if a single instant falls inside the range."""
        return self.start <= moment < self.end

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass
class Participant:
    """
    A person that can be booked into appointments.
    """
    name: str = ""
    email: str = ""
    phone: str = ""
    color: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None

    def initials(self) -> str:
        return initials_for(self.name)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Participant":
        """Build a participant from a plain store record."""
        return cls(
            name=record.get("name") or "",
            email=record.get("email") or "",
            phone=record.get("phone") or "",
            color=record.get("color") or record.get("avatar_color"),
            id=record.get("id"),
            created_at=record.get("created_at") or record.get("createdAt"),
        )

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class UnknownParticipant:
    """
    Placeholder rendered for a participant id that no longer resolves.

    Deleting a participant leaves appointments pointing at it; those
    references show up as "Unknown".
    """
    id: str
    name: str = "Unknown"
    color: str = UNKNOWN_COLOR

    def initials(self) -> str:
        return initials_for(self.name)


ResolvedParticipant = Union[Participant, UnknownParticipant]


def resolve_participant(
    participant_id: str,
    participants: Sequence[Participant],
    unknown_color: str = UNKNOWN_COLOR,
) -> ResolvedParticipant:
    """Look up a participant by id, falling back to the Unknown placeholder."""
    for participant in participants:
        if participant.id == participant_id:
            return participant
    return UnknownParticipant(id=participant_id, color=unknown_color)


@dataclass
class Appointment:
    """
    A meeting on a single calendar day.

    ``start_time`` and ``end_time`` are local ``HH:mm`` values. Candidate
    appointments (not yet committed) use the same type with fields left
    empty, which is what the validator reports on.
    """
    title: str = ""
    date: Optional[Date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    participants: List[str] = field(default_factory=list)
    description: str = ""
    location: str = ""
    color: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None
    start_timestamp: Optional[int] = None
    end_timestamp: Optional[int] = None

    def involves(self, participant_id: str) -> bool:
        return participant_id in self.participants

    def time_range(self) -> TimeRange:
        """
        Get the local wall-clock range this appointment occupies.

        Raises:
            ValueError: If date or times are missing, malformed or misordered
        """
        if self.date is None or not self.start_time or not self.end_time:
            raise ValueError(f"Appointment {self.id or self.title!r} has no complete time range")

        return TimeRange(
            start=wall_clock(self.date, self.start_time),
            end=wall_clock(self.date, self.end_time),
        )

    def epoch_range(self, timezone: str = DEFAULT_TIMEZONE) -> Tuple[int, int]:
        """
        Unix seconds for start and end in ``timezone``.

        The end is the start plus the wall-clock duration, so a start inside
        a spring-forward gap still yields a positive span.

        Raises:
            ValueError: If date or times are missing, malformed or misordered
        """
        duration = self.time_range().duration_minutes()
        start = at_clock(self.date, self.start_time, timezone).int_timestamp
        return start, start + duration * 60

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Appointment":
        """
        Build an appointment from a plain store record.

        Accepts the API shape as well, where times are camelCase and
        participants are nested under ``appointmentParticipants``.

        Raises:
            ValueError: If the date cannot be parsed
        """
        participants = record.get("participants")
        if participants is None and "appointmentParticipants" in record:
            participants = [
                item["participant"]["id"] for item in record["appointmentParticipants"]
            ]

        return cls(
            title=record.get("title") or "",
            date=parse_date(record.get("date")),
            start_time=record.get("start_time") or record.get("startTime"),
            end_time=record.get("end_time") or record.get("endTime"),
            participants=_unique(participants or []),
            description=record.get("description") or "",
            location=record.get("location") or "",
            color=record.get("color"),
            id=record.get("id"),
            created_at=record.get("created_at") or record.get("createdAt"),
            start_timestamp=record.get("start_timestamp"),
            end_timestamp=record.get("end_timestamp"),
        )

    def to_record(self) -> Dict[str, Any]:
        record = asdict(self)
        record["date"] = self.date.isoformat() if self.date else None
        return record


@dataclass(frozen=True)
class Conflict:
    """
    A participant that already has an overlapping appointment booked.
    """
    participant_id: str
    appointment: Appointment
