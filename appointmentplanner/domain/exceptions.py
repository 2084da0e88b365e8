"""
Domain-specific exception hierarchy for the appointment planner.
"""

from typing import Dict, List


class SchedulerError(Exception):
    """Base class for all application-level errors."""


class ValidationError(SchedulerError):
    """Raised when a candidate record is structurally invalid."""

    def __init__(self, field_errors: Dict[str, str]):
        self.field_errors = dict(field_errors)
        details = "; ".join(f"{field}: {message}" for field, message in self.field_errors.items())
        super().__init__(f"Validation failed ({details})")


class ConflictError(SchedulerError):
    """Raised when a candidate appointment double-books a participant."""

    def __init__(self, conflicts: List["Conflict"]):  # noqa: F821
        self.conflicts = list(conflicts)
        super().__init__(f"There are scheduling conflicts ({len(self.conflicts)} found)")


class NotFoundError(SchedulerError):
    """Raised when an update references an unknown record."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class TransportError(SchedulerError):
    """Raised when the persistence collaborator cannot be reached or read."""
