"""
Conflict detection: finds participants that would be double-booked by a
candidate appointment.

Pure domain logic, no I/O.
"""

import logging
from enum import Enum
from typing import List, Optional, Sequence

from .models import Appointment, Conflict, TimeRange

logger = logging.getLogger(__name__)


class ConflictPolicy(str, Enum):
    """What saving does when the candidate double-books someone."""
    BLOCK = "block"  # refuse to save
    WARN = "warn"  # save only after explicit confirmation


class ConflictDetector:
    """
    Detects overlaps between a candidate and an existing collection.

    Algorithm:
    1. Combine the candidate's date and times into a half-open range
    2. For each candidate participant (outer loop, candidate order)
    3. Scan the collection (inner loop, collection order), skipping the
       excluded id, appointments without that participant and other days
    4. Record one conflict per overlapping appointment

    Touching endpoints (one ends as the other starts) are not conflicts.
    Times are compared as local wall-clock values, never converted.
    """

    def detect(
        self,
        candidate: Appointment,
        existing: Sequence[Appointment],
        exclude_id: Optional[str] = None,
    ) -> List[Conflict]:
        """
        Find every (participant, appointment) pair the candidate overlaps.

        Args:
            candidate: Appointment being created or edited
            existing: Full appointment collection to check against
            exclude_id: Id of the appointment being edited, so its stored
                version is not reported against itself

        Returns:
            Conflicts ordered by participant, then collection order
        """
        if not candidate.participants:
            return []

        try:
            candidate_range = candidate.time_range()
        except ValueError:
            # Incomplete or misordered candidates are the validator's concern
            return []

        conflicts: List[Conflict] = []

        for participant_id in candidate.participants:
            for appointment in existing:
                if exclude_id is not None and appointment.id == exclude_id:
                    continue
                if not appointment.involves(participant_id) or appointment.date != candidate.date:
                    continue

                booked = self._booked_range(appointment)
                if booked is not None and candidate_range.overlaps(booked):
                    conflicts.append(Conflict(participant_id=participant_id, appointment=appointment))

        return conflicts

    def has_conflicts(
        self,
        candidate: Appointment,
        existing: Sequence[Appointment],
        exclude_id: Optional[str] = None,
    ) -> bool:
        return bool(self.detect(candidate, existing, exclude_id))

    def _booked_range(self, appointment: Appointment) -> Optional[TimeRange]:
        try:
            return appointment.time_range()
        except ValueError as exc:
            logger.warning("Ignoring appointment %s during conflict check: %s", appointment.id, exc)
            return None
