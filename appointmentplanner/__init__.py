"""
Appointment planner - book participants into meetings without double-booking.
"""

__version__ = "0.1.0"
