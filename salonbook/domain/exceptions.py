"""
Domain-specific exception hierarchy for the salon booking application.
"""

from __future__ import annotations

from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Appointment, AppointmentDraft


class SalonBookError(Exception):
    """Base class for all application-level errors."""


class BookingValidationError(SalonBookError):
    """Raised when a booking is submitted with missing input (slot, services or client)."""


class BackendError(SalonBookError):
    """Raised when the backend rejects a request or cannot be reached."""


class PartialWriteError(BackendError):
    """
    Raised when an appointment row was stored but a follow-up write failed.

    ``appointment`` is the record that now exists in the backend.
    """

    def __init__(self, message: str, *, appointment: "Appointment") -> None:
        super().__init__(message)
        self.appointment = appointment


class AuthenticationError(SalonBookError):
    """Raised when signing in or refreshing the backend session fails."""


class NotificationError(SalonBookError):
    """Raised when a confirmation email cannot be dispatched."""


class BatchSubmissionError(SalonBookError):
    """
    Raised when one appointment of a multi-staff batch fails to persist.

    Appointments created earlier in the same batch are not rolled back; they
    are exposed on ``created`` so the caller can report or clean them up.
    """

    def __init__(
        self,
        message: str,
        *,
        created: List["Appointment"],
        failed: "AppointmentDraft",
    ) -> None:
        super().__init__(message)
        self.created = created
        self.failed = failed
