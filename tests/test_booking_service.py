"""
Tests for the BookingService submission flow and BookingSession.
"""

import asyncio
from typing import List, Optional

import pendulum
import pytest

from salonbook.domain.exceptions import (
    BackendError,
    BatchSubmissionError,
    BookingValidationError,
    NotificationError,
    PartialWriteError,
)
from salonbook.domain.models import (
    Appointment,
    AppointmentDraft,
    CartItem,
    Client,
    SelectedSlot,
    Service,
    Staff,
)
from salonbook.domain.slot_layout import SequentialLayout
from salonbook.services.booking import BookingService, BookingSession


class StubBackend:
    """Minimal stub matching the create part of BackendProtocol."""

    def __init__(self, fail_on_call: Optional[int] = None, stored_on_failure: bool = False):
        self.fail_on_call = fail_on_call
        self.stored_on_failure = stored_on_failure
        self.calls: List[AppointmentDraft] = []

    async def create_appointment(self, draft: AppointmentDraft) -> Appointment:
        self.calls.append(draft)
        appointment = Appointment(
            id=f"apt_{len(self.calls)}",
            customer_id=draft.customer_id,
            staff_id=draft.staff_id,
            time_range=draft.time_range,
            bill=draft.bill,
            services=draft.services,
        )
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            if self.stored_on_failure:
                raise PartialWriteError("service links rejected", appointment=appointment)
            raise BackendError("insert rejected")
        return appointment


class StubNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[str] = []

    async def send_booking_confirmation(self, client, appointment):
        if self.fail:
            raise NotificationError("smtp down")
        self.sent.append(appointment.id)


CLIENT = Client(id="cus_01", name="Sophia Davis", email="sophia@example.com")
JESSICA = Staff(id="staff_01", name="Jessica Miller")
MICHAEL = Staff(id="staff_02", name="Michael Chen")
HAIRCUT = Service(id="svc_01", name="Haircut", price=85.0, duration_minutes=60)
MANICURE = Service(id="svc_04", name="Manicure", price=45.0, duration_minutes=45)


def _anchor():
    return pendulum.parse("2024-11-25 09:00", tz="Europe/Berlin")


def _slot():
    return SelectedSlot(start=_anchor(), end=_anchor().add(minutes=60))


def _build_service(backend, notifier=None) -> BookingService:
    return BookingService(
        backend=backend,
        layout=SequentialLayout(),
        notifier=notifier,
        salon_id="salon_1",
    )


class TestValidation:
    """Validation happens before any backend call."""

    def test_empty_cart_makes_no_calls(self):
        backend = StubBackend()
        service = _build_service(backend)

        with pytest.raises(BookingValidationError, match="at least one service"):
            asyncio.run(service.submit([], _slot(), CLIENT))

        assert backend.calls == []

    def test_missing_slot_is_reported_first(self):
        backend = StubBackend()
        service = _build_service(backend)

        with pytest.raises(BookingValidationError, match="time slot"):
            asyncio.run(service.submit([], None, None))

        assert backend.calls == []

    def test_missing_client(self):
        backend = StubBackend()
        service = _build_service(backend)

        with pytest.raises(BookingValidationError, match="client"):
            asyncio.run(service.submit([CartItem(HAIRCUT)], _slot(), None))

        assert backend.calls == []


class TestSubmit:
    """Tests for BookingService.submit."""

    def test_one_appointment_per_staff_group(self):
        backend = StubBackend()
        service = _build_service(backend)
        items = [CartItem(HAIRCUT, JESSICA), CartItem(MANICURE, MICHAEL), CartItem(MANICURE, JESSICA)]

        created = asyncio.run(service.submit(items, _slot(), CLIENT, notes="window seat"))

        assert [a.id for a in created] == ["apt_1", "apt_2"]
        assert [d.staff_id for d in backend.calls] == ["staff_01", "staff_02"]
        assert backend.calls[0].end_time.format("HH:mm") == "10:45"
        assert backend.calls[1].end_time.format("HH:mm") == "09:45"
        assert all(d.salon_id == "salon_1" for d in backend.calls)
        assert all(d.notes == "window seat" for d in backend.calls)

    def test_partial_failure_keeps_created_appointments(self):
        """A failure on the second create leaves the first one in place."""
        backend = StubBackend(fail_on_call=2)
        service = _build_service(backend)
        items = [CartItem(HAIRCUT, JESSICA), CartItem(MANICURE, MICHAEL), CartItem(MANICURE)]

        with pytest.raises(BatchSubmissionError) as exc_info:
            asyncio.run(service.submit(items, _slot(), CLIENT))

        error = exc_info.value
        assert [a.id for a in error.created] == ["apt_1"]
        assert error.failed.staff_id == "staff_02"
        assert isinstance(error.__cause__, BackendError)
        # no attempt after the failing draft
        assert len(backend.calls) == 2

    def test_stored_appointment_of_failed_draft_is_reported(self):
        """An appointment stored before its follow-up write failed counts as created."""
        backend = StubBackend(fail_on_call=2, stored_on_failure=True)
        service = _build_service(backend)
        items = [CartItem(HAIRCUT, JESSICA), CartItem(MANICURE, MICHAEL), CartItem(MANICURE)]

        with pytest.raises(BatchSubmissionError) as exc_info:
            asyncio.run(service.submit(items, _slot(), CLIENT))

        error = exc_info.value
        assert [a.id for a in error.created] == ["apt_1", "apt_2"]
        assert error.failed.staff_id == "staff_02"
        assert len(backend.calls) == 2

    def test_confirmations_sent_per_appointment(self):
        backend = StubBackend()
        notifier = StubNotifier()
        service = _build_service(backend, notifier)
        items = [CartItem(HAIRCUT, JESSICA), CartItem(MANICURE, MICHAEL)]

        asyncio.run(service.submit(items, _slot(), CLIENT))

        assert notifier.sent == ["apt_1", "apt_2"]

    def test_notification_failure_does_not_fail_booking(self):
        backend = StubBackend()
        service = _build_service(backend, StubNotifier(fail=True))

        created = asyncio.run(service.submit([CartItem(HAIRCUT)], _slot(), CLIENT))

        assert len(created) == 1

    def test_client_without_email_is_not_notified(self):
        notifier = StubNotifier()
        service = _build_service(StubBackend(), notifier)
        client = Client(id="cus_04", name="Noah Brown")

        asyncio.run(service.submit([CartItem(HAIRCUT)], _slot(), client))

        assert notifier.sent == []


class TestBookingSession:
    """Tests for BookingSession."""

    def test_slot_end_follows_the_cart(self):
        session = BookingSession(_build_service(StubBackend()), client=CLIENT)
        session.pick_slot(_anchor(), _anchor().add(hours=3))

        assert session.slot.end.format("HH:mm") == "09:30"

        session.add_service(HAIRCUT, JESSICA)
        session.add_service(MANICURE, JESSICA)
        session.add_service(MANICURE, MICHAEL)

        assert session.slot.start == _anchor()
        assert session.slot.end.format("HH:mm") == "10:45"

    def test_no_slot_before_picking(self):
        session = BookingSession(_build_service(StubBackend()), client=CLIENT)
        session.add_service(HAIRCUT)

        assert session.slot is None
        assert session.preview() == []

    def test_preview_does_not_persist(self):
        backend = StubBackend()
        session = BookingSession(_build_service(backend), client=CLIENT)
        session.add_service(HAIRCUT, JESSICA)
        session.pick_slot(_anchor())

        blocks = session.preview()

        assert len(blocks) == 1
        assert backend.calls == []

    def test_submit_clears_cart_and_slot(self):
        session = BookingSession(_build_service(StubBackend()), client=CLIENT)
        session.add_service(HAIRCUT, JESSICA)
        session.pick_slot(_anchor())

        created = asyncio.run(session.submit())

        assert len(created) == 1
        assert session.cart.is_empty
        assert session.slot is None

    def test_failed_submit_keeps_cart(self):
        session = BookingSession(_build_service(StubBackend(fail_on_call=1)), client=CLIENT)
        session.add_service(HAIRCUT, JESSICA)
        session.pick_slot(_anchor())

        with pytest.raises(BatchSubmissionError):
            asyncio.run(session.submit())

        assert len(session.cart) == 1
        assert session.slot is not None

    def test_cancel_resets_everything(self):
        session = BookingSession(_build_service(StubBackend()), client=CLIENT)
        session.add_service(HAIRCUT)
        session.pick_slot(_anchor())

        session.cancel()

        assert session.cart.is_empty
        assert session.slot is None
        assert session.client is None
