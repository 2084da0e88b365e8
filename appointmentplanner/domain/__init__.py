"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .conflict_detector import ConflictDetector, ConflictPolicy
from .exceptions import ConflictError, NotFoundError, SchedulerError, TransportError, ValidationError
from .models import (
    Appointment,
    Conflict,
    Participant,
    TimeRange,
    UnknownParticipant,
    resolve_participant,
)
from .time_grid import BucketPolicy, Slot, SlotCards, TimeGrid, TimeSlotBucket
from .validation import (
    AppointmentValidator,
    ParticipantValidator,
    ValidationResult,
    derive_end_time,
    handle_input_change,
    new_candidate,
)

__all__ = [
    "Appointment",
    "AppointmentValidator",
    "BucketPolicy",
    "Conflict",
    "ConflictDetector",
    "ConflictError",
    "ConflictPolicy",
    "NotFoundError",
    "Participant",
    "ParticipantValidator",
    "SchedulerError",
    "Slot",
    "SlotCards",
    "TimeGrid",
    "TimeRange",
    "TimeSlotBucket",
    "TransportError",
    "UnknownParticipant",
    "ValidationError",
    "ValidationResult",
    "derive_end_time",
    "handle_input_change",
    "new_candidate",
    "resolve_participant",
]
