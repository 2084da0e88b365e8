"""
Service layer helpers that orchestrate stores and domain logic.
"""

from .clock import ClockProtocol, SystemClock
from .scheduling import SchedulerStoreProtocol, SchedulingService

__all__ = ["ClockProtocol", "SchedulerStoreProtocol", "SchedulingService", "SystemClock"]
