"""
Clock collaborator supplying "today" for the past-date guard.
"""

from typing import Protocol

import pendulum
from pendulum import Date

from ..domain.models import DEFAULT_TIMEZONE


class ClockProtocol(Protocol):
    """Anything that can tell the current local date."""

    def today(self) -> Date:
        """Return the current date in the calendar's timezone."""


class SystemClock:
    """Wall clock in a fixed timezone."""

    def __init__(self, timezone: str = DEFAULT_TIMEZONE) -> None:
        self.timezone = timezone

    def today(self) -> Date:
        return pendulum.today(self.timezone).date()
