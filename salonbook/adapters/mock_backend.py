"""
In-memory backend for running the booking flow without a Supabase project.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

import pendulum
from pendulum import Date

from ..domain.exceptions import BackendError
from ..domain.models import (
    Appointment,
    AppointmentDraft,
    Client,
    Service,
    Staff,
    TimeRange,
)

logger = logging.getLogger(__name__)


class MockBackend:
    """
    Mock backend that simulates the Supabase tables in memory.

    Seed data (services, staff, clients and existing appointments) is loaded
    from mock_salon_data.json next to this module, or from ``data_file``.
    Created appointments live only as long as the instance.
    """

    def __init__(
        self,
        data_file: Optional[Path] = None,
        timezone: str = "Europe/Berlin",
        salon_id: str = "mock_salon",
    ):
        """
        Initialize the mock backend.

        Args:
            data_file: Optional path to a JSON seed file
            timezone: IANA timezone used for seeded appointment times
            salon_id: Salon id stamped on created appointments
        """
        self.timezone = timezone
        self.salon_id = salon_id
        self.services: List[Service] = []
        self.staff: List[Staff] = []
        self.clients: List[Client] = []
        self.appointments: Dict[str, Appointment] = {}
        self.create_calls: List[AppointmentDraft] = []
        self._next_id = 1
        self._load_seed_data(data_file or Path(__file__).parent / "mock_salon_data.json")

    def _load_seed_data(self, data_file: Path) -> None:
        """Load seed data from a JSON file."""
        if not data_file.exists():
            return

        with open(data_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        self.services = [
            Service(
                id=row["id"],
                name=row["name"],
                price=float(row["price"]),
                duration_minutes=row.get("duration"),
                category=row.get("category", "Service"),
            )
            for row in data.get("services", [])
        ]
        self.staff = [Staff(id=row["id"], name=row["name"]) for row in data.get("staff", [])]
        self.clients = [
            Client(
                id=row["id"],
                name=row["name"],
                email=row.get("email"),
                phone_number=row.get("phone_number"),
            )
            for row in data.get("clients", [])
        ]

        # Seeded appointments are given as HH:MM offsets relative to today
        today = pendulum.today(self.timezone)
        for row in data.get("appointments", []):
            try:
                day = today.add(days=int(row.get("day_offset", 0)))
                start = pendulum.parse(f"{day.to_date_string()} {row['start']}", tz=self.timezone)
                end = pendulum.parse(f"{day.to_date_string()} {row['end']}", tz=self.timezone)
                appointment = Appointment(
                    id=row["id"],
                    customer_id=row["customer_id"],
                    customer_name=row.get("customer_name"),
                    staff_id=row.get("staff_id"),
                    time_range=TimeRange(start=start, end=end),
                    salon_id=self.salon_id,
                    service_names=tuple(row.get("services", [])),
                )
            except (KeyError, ValueError) as e:
                logger.debug("Skipping invalid seed appointment: %s", e)
                continue
            self.appointments[appointment.id] = appointment

    async def create_appointment(self, draft: AppointmentDraft) -> Appointment:
        self.create_calls.append(draft)

        client = self._find_client(draft.customer_id)
        if client is None:
            raise BackendError(f"Customer not found: {draft.customer_id}")

        names = tuple(self._service_name(line.service_id) for line in draft.services)
        appointment = Appointment(
            id=f"mock_apt_{self._next_id}",
            customer_id=draft.customer_id,
            customer_name=client.name,
            staff_id=draft.staff_id,
            staff_name=self._staff_name(draft.staff_id),
            salon_id=draft.salon_id or self.salon_id,
            time_range=draft.time_range,
            bill=draft.bill,
            services=draft.services,
            service_names=names,
        )
        self._next_id += 1
        self.appointments[appointment.id] = appointment

        logger.info("Mock appointment created: %s (%s)", appointment.id, appointment.time_range)
        return appointment

    async def list_appointments(
        self,
        date_from: Date,
        date_to: Date,
        staff_id: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> List[Appointment]:
        result = []
        for appointment in self.appointments.values():
            day = appointment.time_range.start.date()
            if not date_from <= day <= date_to:
                continue
            if staff_id and appointment.staff_id != staff_id:
                continue
            if customer_id and appointment.customer_id != customer_id:
                continue
            result.append(appointment)
        return sorted(result, key=lambda a: a.time_range.start)

    async def delete_appointment(self, appointment_id: str) -> bool:
        if appointment_id not in self.appointments:
            raise BackendError(f"Appointment not found: {appointment_id}")
        del self.appointments[appointment_id]
        return True

    async def get_client(self, client_id: str) -> Optional[Client]:
        return self._find_client(client_id)

    async def find_client_by_email(self, email: str) -> Optional[Client]:
        for client in self.clients:
            if client.email and client.email.lower() == email.lower():
                return client
        return None

    async def list_services(self) -> List[Service]:
        return [s for s in self.services if s.category != "Promotion"]

    async def list_staff(self) -> List[Staff]:
        return list(self.staff)

    def _find_client(self, client_id: str) -> Optional[Client]:
        for client in self.clients:
            if client.id == client_id:
                return client
        return None

    def _service_name(self, service_id: str) -> str:
        for service in self.services:
            if service.id == service_id:
                return service.name
        return "Unknown Service"

    def _staff_name(self, staff_id: Optional[str]) -> Optional[str]:
        for member in self.staff:
            if member.id == staff_id:
                return member.name
        return None
