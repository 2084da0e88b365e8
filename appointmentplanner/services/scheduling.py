"""
Application service for booking participants into appointments.

The service owns the order of operations for every mutation (validate,
detect conflicts, persist, re-fetch) and delegates the actual rules to the
domain layer. Persistence goes through a store protocol so a remote API,
a JSON file or an in-memory fake can be plugged in.
"""

from __future__ import annotations

import logging
import random
from datetime import date as date_type
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from pendulum import Date

from ..domain.conflict_detector import ConflictDetector, ConflictPolicy
from ..domain.exceptions import ConflictError, NotFoundError
from ..domain.models import (
    COLOR_PALETTE,
    DEFAULT_TIMEZONE,
    UNKNOWN_COLOR,
    Appointment,
    Conflict,
    Participant,
    ResolvedParticipant,
    random_color,
    resolve_participant,
)
from ..domain.time_grid import Slot, TimeGrid, TimeSlotBucket
from ..domain.validation import AppointmentValidator, ParticipantValidator, ValidationResult
from .clock import ClockProtocol, SystemClock

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
AppointmentInput = Union[Appointment, Mapping[str, Any]]
ParticipantInput = Union[Participant, Mapping[str, Any]]

# Assigned by the store, never taken from a candidate
_STORE_FIELDS = ("id", "created_at")

# Fields a conflict check needs; title and color do not matter there
_SCHEDULE_FIELDS = ("date", "start_time", "end_time", "participants")


class SchedulerStoreProtocol(Protocol):
    """Protocol describing the persistence behaviour needed by the service."""

    async def list_appointments(self) -> List[Record]:
        """Return every stored appointment record."""

    async def create_appointment(self, data: Record) -> Record:
        """Store a new appointment and return it with id and creation timestamp."""

    async def update_appointment(self, appointment_id: str, data: Record) -> Record:
        """Merge ``data`` into a stored appointment; unknown ids raise NotFoundError."""

    async def delete_appointment(self, appointment_id: str) -> None:
        """Remove an appointment; unknown ids are ignored."""

    async def list_participants(self) -> List[Record]:
        """Return every stored participant record."""

    async def create_participant(self, data: Record) -> Record:
        """Store a new participant and return it with id and creation timestamp."""

    async def update_participant(self, participant_id: str, data: Record) -> Record:
        """Merge ``data`` into a stored participant; unknown ids raise NotFoundError."""

    async def delete_participant(self, participant_id: str) -> None:
        """Remove a participant; unknown ids are ignored."""


class SchedulingService:
    """
    Stable operation surface for the calendar UI.

    The service keeps the latest snapshot fetched from the store for
    rendering and participant lookup, and re-fetches it after every
    successful mutation. Validation and conflict checks always run against
    a fresh fetch.
    """

    def __init__(
        self,
        store: SchedulerStoreProtocol,
        *,
        grid: Optional[TimeGrid] = None,
        clock: Optional[ClockProtocol] = None,
        conflict_policy: ConflictPolicy = ConflictPolicy.BLOCK,
        timezone: str = DEFAULT_TIMEZONE,
        palette: Sequence[str] = COLOR_PALETTE,
        unknown_color: str = UNKNOWN_COLOR,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._store = store
        self._grid = grid or TimeGrid()
        self._clock = clock or SystemClock(timezone)
        self._detector = ConflictDetector()
        self._validator = AppointmentValidator(palette)
        self._participant_validator = ParticipantValidator(palette)
        self.conflict_policy = ConflictPolicy(conflict_policy)
        self.timezone = timezone
        self.palette = list(palette)
        self.unknown_color = unknown_color
        self._rng = rng

        self._appointments: List[Appointment] = []
        self._participants: List[Participant] = []
        self._loaded = False

    @classmethod
    def from_config(
        cls,
        config,
        store: SchedulerStoreProtocol,
        clock: Optional[ClockProtocol] = None,
    ) -> "SchedulingService":
        """Wire a service from an ``AppConfig``."""
        return cls(
            store,
            grid=config.build_grid(),
            clock=clock,
            conflict_policy=config.conflict_policy,
            timezone=config.timezone,
            palette=config.palette,
            unknown_color=config.unknown_color,
        )

    @property
    def grid(self) -> TimeGrid:
        return self._grid

    def today(self) -> Date:
        """Current date according to the injected clock."""
        return self._clock.today()

    # ------------------------------------------------------------------
    # Snapshot handling
    # ------------------------------------------------------------------

    async def refresh(self) -> None:
        """Re-fetch both collections from the store (post-commit invalidation)."""
        self._appointments = await self._fetch_appointments()
        self._participants = await self._fetch_participants()
        self._loaded = True

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            await self.refresh()

    async def _fetch_appointments(self) -> List[Appointment]:
        appointments: List[Appointment] = []
        for record in await self._store.list_appointments():
            try:
                appointments.append(Appointment.from_record(record))
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping unreadable appointment record %s: %s", record.get("id"), exc)
        return appointments

    async def _fetch_participants(self) -> List[Participant]:
        return [Participant.from_record(record) for record in await self._store.list_participants()]

    # ------------------------------------------------------------------
    # Appointments
    # ------------------------------------------------------------------

    async def list_appointments(self) -> List[Appointment]:
        """Return the current appointment collection."""
        self._appointments = await self._fetch_appointments()
        return list(self._appointments)

    async def check_conflicts(
        self,
        candidate: AppointmentInput,
        exclude_id: Optional[str] = None,
    ) -> List[Conflict]:
        """
        Conflicts a candidate would cause, without saving anything.

        Only the scheduling fields are validated; a draft without a title
        can still be checked.

        Raises:
            ValidationError: If date, times or participants are invalid
        """
        result = self._validator.validate(candidate)
        schedule_errors = {key: message for key, message in result.errors.items() if key in _SCHEDULE_FIELDS}
        self._raise_if_invalid(ValidationResult(errors=schedule_errors), "conflict check")

        appointment = self._as_appointment(candidate)
        return self._detector.detect(appointment, await self._fetch_appointments(), exclude_id)

    async def create_appointment(self, candidate: AppointmentInput, *, confirm: bool = False) -> Appointment:
        """
        Validate, conflict-check and persist a new appointment.

        Args:
            candidate: Appointment or plain record with the appointment fields
            confirm: Save despite conflicts (only honoured by the warn policy)

        Raises:
            ValidationError: If the candidate is structurally invalid
            ConflictError: If participants would be double-booked
            TransportError: If the store fails
        """
        self._raise_if_invalid(self._validator.validate(candidate), "appointment")
        appointment = self._as_appointment(candidate)

        existing = await self._fetch_appointments()
        self._enforce_conflict_policy(self._detector.detect(appointment, existing), confirm)

        created = await self._store.create_appointment(self._appointment_record(appointment))
        logger.info("Created appointment %s on %s", created.get("id"), created.get("date"))

        await self.refresh()
        return Appointment.from_record(created)

    async def update_appointment(
        self,
        appointment_id: str,
        candidate: AppointmentInput,
        *,
        confirm: bool = False,
    ) -> Appointment:
        """
        Replace fields of a stored appointment and re-check it.

        A mapping is merged over the stored record (partial update); an
        ``Appointment`` replaces every field.

        Raises:
            NotFoundError: If no appointment has that id
            ValidationError: If the merged appointment is invalid
            ConflictError: If participants would be double-booked
        """
        existing = await self._fetch_appointments()
        current = self._find_appointment(existing, appointment_id)

        if isinstance(candidate, Appointment):
            merged: Record = candidate.to_record()
        else:
            merged = {**current.to_record(), **dict(candidate)}

        self._raise_if_invalid(self._validator.validate(merged), f"update of appointment {appointment_id}")
        appointment = Appointment.from_record(merged)

        conflicts = self._detector.detect(appointment, existing, exclude_id=appointment_id)
        self._enforce_conflict_policy(conflicts, confirm)

        updated = await self._store.update_appointment(appointment_id, self._appointment_record(appointment))
        logger.info("Updated appointment %s", appointment_id)

        await self.refresh()
        return Appointment.from_record(updated)

    async def delete_appointment(self, appointment_id: str) -> None:
        """Remove an appointment. Deleting an unknown id is not an error."""
        await self._store.delete_appointment(appointment_id)
        logger.info("Deleted appointment %s", appointment_id)
        await self.refresh()

    async def search_appointments(self, query: str) -> List[Appointment]:
        """
        Case-insensitive search over title, description, location and the
        names of resolved participants.
        """
        await self.refresh()
        if not query:
            return list(self._appointments)

        needle = query.lower()
        matches: List[Appointment] = []

        for appointment in self._appointments:
            texts = [appointment.title, appointment.description, appointment.location]
            texts.extend(
                participant.name for participant in self._participants
                if participant.id in appointment.participants
            )
            if any(needle in (text or "").lower() for text in texts):
                matches.append(appointment)

        return matches

    async def appointments_for(self, participant_id: str) -> List[Appointment]:
        """Every appointment the participant is booked into."""
        return [
            appointment for appointment in await self.list_appointments()
            if appointment.involves(participant_id)
        ]

    async def appointment_count(self, participant_id: str) -> int:
        return len(await self.appointments_for(participant_id))

    async def appointment_counts(self) -> Dict[str, int]:
        """Appointments per participant id, from a single fetch."""
        counts: Dict[str, int] = {}
        for appointment in await self.list_appointments():
            for participant_id in appointment.participants:
                counts[participant_id] = counts.get(participant_id, 0) + 1
        return counts

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    async def list_participants(self) -> List[Participant]:
        """Return the current participant collection."""
        self._participants = await self._fetch_participants()
        return list(self._participants)

    async def create_participant(self, candidate: ParticipantInput) -> Participant:
        """
        Validate and persist a new participant.

        A random palette color is assigned when none is given.

        Raises:
            ValidationError: If name or email is missing or malformed
        """
        self._raise_if_invalid(self._participant_validator.validate(candidate), "participant")
        participant = self._as_participant(candidate)

        record = self._strip_store_fields(participant.to_record())
        record["color"] = participant.color or random_color(self.palette, self._rng)

        created = await self._store.create_participant(record)
        logger.info("Created participant %s (%s)", created.get("id"), created.get("email"))

        await self.refresh()
        return Participant.from_record(created)

    async def update_participant(self, participant_id: str, changes: ParticipantInput) -> Participant:
        """
        Merge changes into a stored participant and re-validate it.

        Raises:
            NotFoundError: If no participant has that id
            ValidationError: If the merged participant is invalid
        """
        participants = await self._fetch_participants()
        current = next((p for p in participants if p.id == participant_id), None)
        if current is None:
            raise NotFoundError("Participant", participant_id)

        if isinstance(changes, Participant):
            changes = {key: value for key, value in changes.to_record().items() if value is not None}

        merged = {**current.to_record(), **dict(changes)}
        self._raise_if_invalid(self._participant_validator.validate(merged), f"update of participant {participant_id}")

        updated = await self._store.update_participant(
            participant_id, self._strip_store_fields(Participant.from_record(merged).to_record())
        )
        logger.info("Updated participant %s", participant_id)

        await self.refresh()
        return Participant.from_record(updated)

    async def delete_participant(self, participant_id: str) -> None:
        """
        Remove a participant.

        Appointments referencing it are left untouched; their reference
        resolves to the Unknown placeholder from then on.
        """
        await self._store.delete_participant(participant_id)
        logger.info("Deleted participant %s", participant_id)
        await self.refresh()

    async def search_participants(self, query: str) -> List[Participant]:
        """Case-insensitive search over participant name and email."""
        participants = await self.list_participants()
        if not query:
            return participants

        needle = query.lower()
        return [
            participant for participant in participants
            if needle in participant.name.lower() or needle in participant.email.lower()
        ]

    def resolve_participant(self, participant_id: str) -> ResolvedParticipant:
        """Look up a participant in the latest snapshot, or the Unknown placeholder."""
        return resolve_participant(participant_id, self._participants, self.unknown_color)

    # ------------------------------------------------------------------
    # Calendar view
    # ------------------------------------------------------------------

    async def week_view(self, anchor: Union[date_type, str]) -> Dict[Date, List[TimeSlotBucket]]:
        """Slot buckets for each day of the week containing ``anchor``."""
        await self._ensure_loaded()
        return self._grid.week(self._appointments, anchor)

    def can_create_at(self, day: Union[date_type, str], slot: Union[Slot, str]) -> bool:
        """Whether a click on this slot may open a new appointment."""
        return self._grid.can_create_at(self._appointments, day, slot, self._clock.today())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _enforce_conflict_policy(self, conflicts: List[Conflict], confirm: bool) -> None:
        if not conflicts:
            return

        if self.conflict_policy is ConflictPolicy.WARN and confirm:
            logger.warning("Saving despite %d confirmed conflict(s)", len(conflicts))
            return

        logger.info(
            "Rejected candidate: conflicts for %s",
            ", ".join(sorted({conflict.participant_id for conflict in conflicts})),
        )
        raise ConflictError(conflicts)

    @staticmethod
    def _raise_if_invalid(result: ValidationResult, subject: str) -> None:
        if not result.valid:
            logger.info(
                "Rejected %s: %s",
                subject,
                "; ".join(f"{field}: {message}" for field, message in result.errors.items()),
            )
            result.raise_for_errors()

    def _appointment_record(self, appointment: Appointment) -> Record:
        """Persisted shape: default color and unix-epoch mirrors of start/end."""
        start_timestamp, end_timestamp = appointment.epoch_range(self.timezone)

        record = self._strip_store_fields(appointment.to_record())
        record["color"] = appointment.color or random_color(self.palette, self._rng)
        record["start_timestamp"] = start_timestamp
        record["end_timestamp"] = end_timestamp
        return record

    @staticmethod
    def _strip_store_fields(record: Record) -> Record:
        return {key: value for key, value in record.items() if key not in _STORE_FIELDS}

    @staticmethod
    def _as_appointment(candidate: AppointmentInput) -> Appointment:
        if isinstance(candidate, Appointment):
            return candidate
        return Appointment.from_record(candidate)

    @staticmethod
    def _as_participant(candidate: ParticipantInput) -> Participant:
        if isinstance(candidate, Participant):
            return candidate
        return Participant.from_record(candidate)

    @staticmethod
    def _find_appointment(appointments: Sequence[Appointment], appointment_id: str) -> Appointment:
        for appointment in appointments:
            if appointment.id == appointment_id:
                return appointment
        raise NotFoundError("Appointment", appointment_id)
