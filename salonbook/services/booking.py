"""
Application services for submitting a booking cart.

The service validates the booking input, delegates the time layout to the
domain-level ``SequentialLayout`` and persists the resulting drafts through a
backend adapter. The backend and email dependencies are described by simple
protocols so the real Supabase adapter or a stub can be plugged in.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

from pendulum import Date, DateTime

from ..domain.exceptions import (
    BatchSubmissionError,
    BookingValidationError,
    NotificationError,
    PartialWriteError,
    SalonBookError,
)
from ..domain.models import (
    Appointment,
    AppointmentDraft,
    Cart,
    CartItem,
    Client,
    ScheduledBlock,
    SelectedSlot,
    Service,
    Staff,
)
from ..domain.slot_layout import SequentialLayout

logger = logging.getLogger(__name__)


class BackendProtocol(Protocol):
    """Protocol describing the persistence calls needed by the booking flow."""

    async def create_appointment(self, draft: AppointmentDraft) -> Appointment:
        """Persist one appointment and return the created record."""

    async def list_appointments(
        self,
        date_from: Date,
        date_to: Date,
        staff_id: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> List[Appointment]:
        """Return persisted appointments in the given date window."""

    async def delete_appointment(self, appointment_id: str) -> bool:
        """Delete an appointment and its service links."""

    async def get_client(self, client_id: str) -> Optional[Client]:
        """Look up a client by id."""

    async def find_client_by_email(self, email: str) -> Optional[Client]:
        """Look up a client by email address."""

    async def list_services(self) -> List[Service]:
        """Return the bookable services and deals."""

    async def list_staff(self) -> List[Staff]:
        """Return the salon's staff members."""


class NotifierProtocol(Protocol):
    """Protocol for dispatching booking confirmation emails."""

    async def send_booking_confirmation(
        self,
        client: Client,
        appointment: Appointment,
    ) -> None:
        """Send a confirmation for one created appointment."""


class BookingService:
    """
    Turns a cart and an anchor instant into persisted appointments.

    Drafts are created one at a time, awaiting each backend call before the
    next. There is no rollback: when a later draft fails, the appointments
    created before it stay in place and are reported on the raised
    ``BatchSubmissionError``.
    """

    def __init__(
        self,
        backend: BackendProtocol,
        layout: SequentialLayout,
        notifier: Optional[NotifierProtocol] = None,
        salon_id: Optional[str] = None,
    ) -> None:
        self._backend = backend
        self._layout = layout
        self._notifier = notifier
        self._salon_id = salon_id

    @property
    def layout(self) -> SequentialLayout:
        return self._layout

    def validate(
        self,
        items: Sequence[CartItem],
        slot: Optional[SelectedSlot],
        client: Optional[Client],
    ) -> None:
        """
        Check the booking input before any backend call.

        Raises:
            BookingValidationError: If the slot, the services or the client is missing
        """
        if slot is None:
            raise BookingValidationError("Please select a time slot for the appointment.")
        if not items:
            raise BookingValidationError("Please add at least one service to the cart.")
        if client is None:
            raise BookingValidationError("Please select a client for the appointment.")

    def preview(
        self,
        items: Sequence[CartItem],
        anchor: DateTime,
    ) -> List[ScheduledBlock]:
        """Compute the pending blocks for display without persisting anything."""
        return self._layout.layout_blocks(items, anchor)

    async def submit(
        self,
        items: Sequence[CartItem],
        slot: Optional[SelectedSlot],
        client: Optional[Client],
        *,
        notes: Optional[str] = None,
        booking_type: Optional[str] = None,
        booking_approach: Optional[str] = None,
    ) -> List[Appointment]:
        """
        Validate, lay out and persist one appointment per staff group.

        Returns:
            The created appointments in staff-group order

        Raises:
            BookingValidationError: If required input is missing (nothing is persisted)
            BatchSubmissionError: If a backend call fails part way through the batch
        """
        self.validate(items, slot, client)

        drafts = self._layout.build_drafts(
            items,
            slot.start,
            client.id,
            salon_id=self._salon_id,
            notes=notes,
            booking_type=booking_type,
            booking_approach=booking_approach,
        )

        created: List[Appointment] = []

        for draft in drafts:
            try:
                appointment = await self._backend.create_appointment(draft)
            except SalonBookError as exc:
                if isinstance(exc, PartialWriteError):
                    created.append(exc.appointment)
                logger.error(
                    "Failed to create appointment for staff %s (%d of %d created): %s",
                    draft.staff_id or "unassigned",
                    len(created),
                    len(drafts),
                    exc,
                )
                raise BatchSubmissionError(
                    f"Could not create the appointment: {exc}",
                    created=created,
                    failed=draft,
                ) from exc

            logger.info(
                "Created appointment %s for staff %s (%s)",
                appointment.id,
                draft.staff_id or "unassigned",
                draft.time_range,
            )
            created.append(appointment)

        await self._notify(client, created)

        return created

    async def _notify(self, client: Client, appointments: Sequence[Appointment]) -> None:
        if self._notifier is None or not client.email:
            return

        for appointment in appointments:
            try:
                await self._notifier.send_booking_confirmation(client, appointment)
            except NotificationError as exc:
                logger.warning(
                    "Confirmation email for appointment %s was not sent: %s",
                    appointment.id,
                    exc,
                )


class BookingSession:
    """
    State of one booking session: the client, the cart and the picked slot.

    The session is local to one user; nothing is shared between sessions.
    """

    def __init__(self, service: BookingService, client: Optional[Client] = None) -> None:
        self._service = service
        self.client = client
        self.cart = Cart()
        self._anchor: Optional[DateTime] = None

    def add_service(self, service: Service, artist: Optional[Staff] = None) -> CartItem:
        return self.cart.add(service, artist)

    def remove_item(self, index: int) -> CartItem:
        return self.cart.remove(index)

    def pick_slot(self, start: DateTime, end: Optional[DateTime] = None) -> None:
        """
        Set the anchor instant.

        An end picked on the calendar is ignored; the slot end is always
        derived from the cart.
        """
        self._anchor = start

    @property
    def slot(self) -> Optional[SelectedSlot]:
        if self._anchor is None:
            return None
        layout = self._service.layout
        if self.cart.is_empty:
            end = self._anchor.add(minutes=layout.default_duration_minutes)
        else:
            end = layout.span_end(self.cart.items, self._anchor)
        return SelectedSlot(start=self._anchor, end=end)

    def preview(self) -> List[ScheduledBlock]:
        """Pending blocks for the current cart and anchor."""
        if self._anchor is None:
            return []
        return self._service.preview(self.cart.items, self._anchor)

    async def submit(self, **kwargs) -> List[Appointment]:
        """
        Submit the session and clear the cart and slot on success.

        On failure the cart is kept so the user can fix the input.
        """
        appointments = await self._service.submit(
            self.cart.items,
            self.slot,
            self.client,
            **kwargs,
        )
        self.cart.clear()
        self._anchor = None
        return appointments

    def cancel(self) -> None:
        self.cart.clear()
        self._anchor = None
        self.client = None
