"""
Calendar grid: the bookable slot lattice of a week and the assignment of
appointments to its slots.

Pure domain logic, no I/O. The appointment collection is always passed in
and never mutated.
"""

import logging
from dataclasses import dataclass, field
from datetime import date as date_type
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pendulum
from pendulum import Date

from .models import Appointment, TimeRange, is_clock, parse_date, wall_clock

logger = logging.getLogger(__name__)


class BucketPolicy(str, Enum):
    """How appointments are assigned to rendering slots."""
    START_TIME = "start_time"  # only the slot holding start_time
    OVERLAP = "overlap"  # every slot the appointment intersects


@dataclass(frozen=True)
class Slot:
    """A fixed-width time-of-day window, e.g. 09:00 - 09:30."""
    start: str
    end: str

    def on(self, day: date_type) -> TimeRange:
        """Get the wall-clock range of this slot on a given day."""
        return TimeRange(start=wall_clock(day, self.start), end=wall_clock(day, self.end))

    def __str__(self) -> str:
        return f"{self.start} - {self.end}"


@dataclass
class TimeSlotBucket:
    """
    Appointments rendered in one slot of one day.
    """
    day: Date
    slot: Slot
    appointments: List[Appointment] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.appointments


@dataclass
class SlotCards:
    """
    What a slot renders: one full card plus a "see more" overflow.

    ``listing`` holds every appointment starting in the slot, the card
    included, and is what the overflow hands off to.
    """
    primary: Optional[Appointment]
    listing: List[Appointment] = field(default_factory=list)

    @property
    def overflow_count(self) -> int:
        if self.primary is None:
            return 0
        return max(len(self.listing) - 1, 0)


class TimeGrid:
    """
    Bookable slot lattice for a displayed week.

    Slots cover ``[start_hour:00, end_hour:00)`` at ``slot_minutes``
    granularity. With the defaults this is 07:00 up to the 19:30 row.
    """

    def __init__(
        self,
        start_hour: int = 7,
        end_hour: int = 20,
        slot_minutes: int = 30,
        policy: BucketPolicy = BucketPolicy.START_TIME,
    ):
        if not 0 <= start_hour < end_hour <= 23:
            raise ValueError(f"Invalid grid hours {start_hour}-{end_hour}")
        if slot_minutes <= 0 or 60 % slot_minutes != 0:
            raise ValueError(f"slot_minutes must divide an hour, got {slot_minutes}")

        self.start_hour = start_hour
        self.end_hour = end_hour
        self.slot_minutes = slot_minutes
        self.policy = BucketPolicy(policy)
        self.slots = self._build_slots()

    @property
    def labels(self) -> List[str]:
        """Ordered time-of-day labels, one per slot."""
        return [slot.start for slot in self.slots]

    def _build_slots(self) -> List[Slot]:
        slots: List[Slot] = []

        # Only the clock part matters, any fixed day works
        current = pendulum.datetime(2000, 1, 3, self.start_hour, 0, tz="UTC")
        closing = current.set(hour=self.end_hour)

        while current < closing:
            following = current.add(minutes=self.slot_minutes)
            slots.append(Slot(start=current.format("HH:mm"), end=following.format("HH:mm")))
            current = following

        return slots

    def slot_at(self, label: str) -> Slot:
        """
        Find the slot starting at a label.

        Raises:
            ValueError: If no slot starts at that label
        """
        for slot in self.slots:
            if slot.start == label:
                return slot
        raise ValueError(f"No slot starts at {label!r}")

    def _as_slot(self, slot: Union[Slot, str]) -> Slot:
        return slot if isinstance(slot, Slot) else self.slot_at(slot)

    @staticmethod
    def week_of(day: Union[date_type, str]) -> List[Date]:
        """Return the seven days Monday through Sunday containing ``day``."""
        monday = parse_date(day).start_of("week")
        return [monday.add(days=offset) for offset in range(7)]

    @staticmethod
    def shift_week(anchor: Union[date_type, str], weeks: int) -> Date:
        """Move an anchor date by whole weeks (negative goes back)."""
        return parse_date(anchor).add(weeks=weeks)

    def _scheduled_on(
        self,
        appointments: Sequence[Appointment],
        day: Date,
    ) -> List[Tuple[Appointment, TimeRange]]:
        """Appointments of a day paired with their ranges, collection order kept."""
        scheduled: List[Tuple[Appointment, TimeRange]] = []

        for appointment in appointments:
            if appointment.date != day:
                continue
            try:
                scheduled.append((appointment, appointment.time_range()))
            except ValueError as exc:
                logger.warning("Skipping appointment %s on the grid: %s", appointment.id, exc)

        return scheduled

    def bucket_slot(
        self,
        appointments: Sequence[Appointment],
        day: Union[date_type, str],
        slot: Union[Slot, str],
        policy: Optional[BucketPolicy] = None,
    ) -> TimeSlotBucket:
        """
        Assign the appointments of ``day`` to a single slot.

        Start-time policy keeps appointments whose start falls inside the
        slot. Overlap policy keeps every appointment intersecting it.
        """
        day = parse_date(day)
        slot = self._as_slot(slot)
        policy = BucketPolicy(policy or self.policy)
        window = slot.on(day)

        if policy is BucketPolicy.START_TIME:
            members = [
                appointment for appointment, booked in self._scheduled_on(appointments, day)
                if window.contains(booked.start)
            ]
        else:
            members = [
                appointment for appointment, booked in self._scheduled_on(appointments, day)
                if booked.overlaps(window)
            ]

        return TimeSlotBucket(day=day, slot=slot, appointments=members)

    def bucket(
        self,
        appointments: Sequence[Appointment],
        day: Union[date_type, str],
        policy: Optional[BucketPolicy] = None,
    ) -> List[TimeSlotBucket]:
        """Bucket a day's appointments into every slot of the grid."""
        return [self.bucket_slot(appointments, day, slot, policy) for slot in self.slots]

    def week(
        self,
        appointments: Sequence[Appointment],
        anchor: Union[date_type, str],
        policy: Optional[BucketPolicy] = None,
    ) -> Dict[Date, List[TimeSlotBucket]]:
        """Bucket every day of the week containing ``anchor``."""
        return {day: self.bucket(appointments, day, policy) for day in self.week_of(anchor)}

    def cards_for_slot(self, bucket: TimeSlotBucket) -> SlotCards:
        """
        Split a bucket into the rendered card and its overflow listing.

        Only appointments starting in the slot are listed; the first of
        them (collection order) becomes the card.
        """
        window = bucket.slot.on(bucket.day)
        starters = [
            appointment for appointment in bucket.appointments
            if is_clock(appointment.start_time)
            and window.contains(wall_clock(bucket.day, appointment.start_time))
        ]

        if not starters:
            return SlotCards(primary=None, listing=[])

        return SlotCards(primary=starters[0], listing=starters)

    def is_occupied(
        self,
        appointments: Sequence[Appointment],
        day: Union[date_type, str],
        slot: Union[Slot, str],
    ) -> bool:
        """Full overlap test, whatever policy renders the cards."""
        return not self.bucket_slot(appointments, day, slot, BucketPolicy.OVERLAP).is_empty

    @staticmethod
    def is_past(day: Union[date_type, str], today: Union[date_type, str]) -> bool:
        """Date-only comparison; today itself is not in the past."""
        return parse_date(day) < parse_date(today)

    def can_create_at(
        self,
        appointments: Sequence[Appointment],
        day: Union[date_type, str],
        slot: Union[Slot, str],
        today: Union[date_type, str],
    ) -> bool:
        """Whether clicking this slot may open a new appointment."""
        if self.is_past(day, today):
            return False
        return not self.is_occupied(appointments, day, slot)
