"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking import BackendProtocol, BookingService, BookingSession, NotifierProtocol
from .schedule import ScheduleService

__all__ = [
    "BackendProtocol",
    "BookingService",
    "BookingSession",
    "NotifierProtocol",
    "ScheduleService",
]
