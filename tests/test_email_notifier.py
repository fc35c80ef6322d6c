"""
Tests for the booking confirmation notifiers.
"""

import asyncio

import pendulum
import pytest
from resend.exceptions import ResendError

from salonbook.adapters import email_notifier
from salonbook.adapters.email_notifier import MockNotifier, ResendNotifier
from salonbook.domain.exceptions import NotificationError
from salonbook.domain.models import Appointment, Client, TimeRange


CLIENT = Client(id="cus_01", name="Sophia <Davis>", email="sophia@example.com")


def _appointment() -> Appointment:
    start = pendulum.parse("2024-11-25 09:00", tz="Europe/Berlin")
    return Appointment(
        id="apt_1",
        customer_id="cus_01",
        staff_name="Jessica Miller",
        time_range=TimeRange(start=start, end=start.add(minutes=90)),
        bill=130.0,
        service_names=("Haircut", "Conditioning"),
    )


def _notifier() -> ResendNotifier:
    return ResendNotifier(api_key="re_test", sender="bookings@salon.test", salon_name="Glow Studio")


class TestResendNotifier:
    """Tests for ResendNotifier."""

    def test_render_escapes_and_formats(self):
        subject, html = _notifier().render(CLIENT, _appointment())

        assert subject == "Your appointment at Glow Studio"
        assert "Sophia &lt;Davis&gt;" in html
        assert "Monday, 25.11.2024 09:00 - 10:30" in html
        assert "<li>Haircut</li>" in html
        assert "130.00" in html

    def test_send_uses_resend(self, monkeypatch):
        sent = []

        def fake_send(params):
            sent.append(params)
            return {"id": "email_1"}

        monkeypatch.setattr(email_notifier.resend.Emails, "send", fake_send)

        asyncio.run(_notifier().send_booking_confirmation(CLIENT, _appointment()))

        assert sent[0]["to"] == ["sophia@example.com"]
        assert sent[0]["from"] == "bookings@salon.test"
        assert email_notifier.resend.api_key == "re_test"

    def test_send_failure_raises_notification_error(self, monkeypatch):
        def failing_send(params):
            raise ResendError(code=500, error_type="application_error", message="boom", suggested_action="retry")

        monkeypatch.setattr(email_notifier.resend.Emails, "send", failing_send)

        with pytest.raises(NotificationError):
            asyncio.run(_notifier().send_booking_confirmation(CLIENT, _appointment()))

    def test_client_without_email(self):
        with pytest.raises(NotificationError):
            asyncio.run(
                _notifier().send_booking_confirmation(Client(id="cus_04", name="Noah"), _appointment())
            )


def test_mock_notifier_records_confirmations():
    notifier = MockNotifier()

    asyncio.run(notifier.send_booking_confirmation(CLIENT, _appointment()))

    assert notifier.sent == [{"to": "sophia@example.com", "appointment_id": "apt_1"}]
