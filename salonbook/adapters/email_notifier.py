"""
Booking confirmation emails sent through the Resend API.
"""

from __future__ import annotations

import asyncio
import logging
from html import escape
from typing import Dict, List, Tuple

import requests
import resend
from resend.exceptions import ResendError

from ..domain.exceptions import NotificationError
from ..domain.models import Appointment, Client

logger = logging.getLogger(__name__)


class ResendNotifier:
    """
    Sends one HTML confirmation email per created appointment.
    """

    def __init__(
        self,
        api_key: str,
        sender: str,
        salon_name: str,
        timezone: str = "Europe/Berlin",
    ):
        self.api_key = api_key
        self.sender = sender
        self.salon_name = salon_name
        self.timezone = timezone

    async def send_booking_confirmation(self, client: Client, appointment: Appointment) -> None:
        await asyncio.to_thread(self._send, client, appointment)

    def _send(self, client: Client, appointment: Appointment) -> None:
        if not client.email:
            raise NotificationError(f"Client {client.name} has no email address")

        subject, html = self.render(client, appointment)
        resend.api_key = self.api_key
        try:
            response = resend.Emails.send(
                {
                    "from": self.sender,
                    "to": [client.email],
                    "subject": subject,
                    "html": html,
                }
            )
        except (ResendError, requests.exceptions.RequestException) as e:
            raise NotificationError(f"Failed to send confirmation to {client.email}: {e}") from e

        logger.info(
            "Confirmation for appointment %s sent to %s (%s)",
            appointment.id,
            client.email,
            response.get("id") if isinstance(response, dict) else response,
        )

    def render(self, client: Client, appointment: Appointment) -> Tuple[str, str]:
        """Return the subject and HTML body of the confirmation."""
        start = appointment.time_range.start.in_timezone(self.timezone)
        end = appointment.time_range.end.in_timezone(self.timezone)
        when = f"{start.format('dddd, DD.MM.YYYY')} {start.format('HH:mm')} - {end.format('HH:mm')}"

        services = "".join(
            f"<li>{escape(name)}</li>" for name in appointment.service_names
        )
        staff = escape(appointment.staff_name) if appointment.staff_name else "Any available stylist"

        subject = f"Your appointment at {self.salon_name}"
        html = f"""
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h2 style="color: #2c3e50;">Appointment confirmed</h2>
  <p>Hello <strong>{escape(client.name)}</strong>,</p>
  <p>Your appointment at <strong>{escape(self.salon_name)}</strong> is booked.</p>
  <p><strong>When:</strong> {escape(when)}<br>
     <strong>With:</strong> {staff}<br>
     <strong>Total:</strong> {appointment.bill:.2f}</p>
  <ul>{services}</ul>
  <p>We look forward to seeing you.</p>
</body>
</html>
"""
        return subject, html


class MockNotifier:
    """
    Notifier that records confirmations instead of sending them.
    """

    def __init__(self) -> None:
        self.sent: List[Dict[str, str]] = []

    async def send_booking_confirmation(self, client: Client, appointment: Appointment) -> None:
        self.sent.append({"to": client.email or "", "appointment_id": appointment.id})
        logger.info("Mock confirmation for appointment %s recorded", appointment.id)
