"""
Domain layer - Pure business logic without external dependencies.
"""

from .calendar import CalendarEvent, CalendarReconciler, Conflict, build_time_grid
from .models import (
    Appointment,
    AppointmentDraft,
    Cart,
    CartItem,
    Client,
    OpeningHours,
    ScheduledBlock,
    SelectedSlot,
    Service,
    ServiceLine,
    Staff,
    TimeRange,
)
from .slot_layout import SequentialLayout

__all__ = [
    "Appointment",
    "AppointmentDraft",
    "CalendarEvent",
    "CalendarReconciler",
    "Cart",
    "CartItem",
    "Client",
    "Conflict",
    "OpeningHours",
    "ScheduledBlock",
    "SelectedSlot",
    "SequentialLayout",
    "Service",
    "ServiceLine",
    "Staff",
    "TimeRange",
    "build_time_grid",
]
