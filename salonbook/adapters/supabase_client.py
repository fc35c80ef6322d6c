"""
Supabase (PostgREST) client for appointments, clients, services and staff.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pendulum
import requests
from pendulum import Date, DateTime

from ..domain.exceptions import BackendError, PartialWriteError
from ..domain.models import (
    Appointment,
    AppointmentDraft,
    Client,
    Service,
    ServiceLine,
    Staff,
    TimeRange,
)

logger = logging.getLogger(__name__)

Params = Sequence[Tuple[str, str]]

APPOINTMENT_SELECT = (
    "*,"
    "customer:customers(id,name),"
    "staff:salons_staff(id,name),"
    "services:appointments_services(id,price,service:salons_services(id,name)),"
    "deals:appointments_deals(id,deal:salons_deals(id,title,discounted_price,price))"
)


class SupabaseClient:
    """
    Client for the Supabase REST API.

    Every call is a blocking ``requests`` call; the async methods run them in
    a worker thread so the booking flow can await them one by one.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        salon_id: str,
        access_token: str | None = None,
        timezone: str = "Europe/Berlin",
        timeout: float = 30,
    ):
        """
        Initialize the Supabase client.

        Args:
            url: Project URL, e.g. https://xyz.supabase.co
            api_key: Project anon key
            salon_id: Salon whose rows are read and written
            access_token: Session token of the signed-in user (anon key if omitted)
            timezone: IANA timezone used to interpret stored times
            timeout: Request timeout in seconds
        """
        self.rest_url = f"{url.rstrip('/')}/rest/v1"
        self.salon_id = salon_id
        self.timezone = timezone
        self.timeout = timeout
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Content-Type": "application/json",
        }

    # Async API used by the services

    async def create_appointment(self, draft: AppointmentDraft) -> Appointment:
        return await asyncio.to_thread(self.create_appointment_sync, draft)

    async def list_appointments(
        self,
        date_from: Date,
        date_to: Date,
        staff_id: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> List[Appointment]:
        return await asyncio.to_thread(
            self.list_appointments_sync, date_from, date_to, staff_id, customer_id
        )

    async def delete_appointment(self, appointment_id: str) -> bool:
        return await asyncio.to_thread(self.delete_appointment_sync, appointment_id)

    async def get_client(self, client_id: str) -> Optional[Client]:
        return await asyncio.to_thread(self.get_client_sync, client_id)

    async def find_client_by_email(self, email: str) -> Optional[Client]:
        return await asyncio.to_thread(self.find_client_by_email_sync, email)

    async def list_services(self) -> List[Service]:
        return await asyncio.to_thread(self.list_services_sync)

    async def list_staff(self) -> List[Staff]:
        return await asyncio.to_thread(self.list_staff_sync)

    # Blocking implementations

    def create_appointment_sync(self, draft: AppointmentDraft) -> Appointment:
        """
        Insert an appointment row and its service/deal links.

        Raises:
            BackendError: If the customer does not exist or the appointment insert fails
            PartialWriteError: If the appointment row exists but a link insert
                fails or the returned row cannot be read
        """
        customers = self._request(
            "GET",
            "customers",
            params=[("select", "id,name,auth_id"), ("id", f"eq.{draft.customer_id}")],
        )
        if not customers:
            raise BackendError(f"Customer not found: {draft.customer_id}")
        customer = customers[0]

        now = pendulum.now("UTC").to_iso8601_string()
        row = {
            "customer_id": draft.customer_id,
            "customer_name": customer.get("name"),
            "phone_number": self._customer_phone_number(customer),
            "staff_id": draft.staff_id,
            "salon_id": draft.salon_id or self.salon_id,
            "date": draft.date,
            "start_time": draft.start_time.to_iso8601_string(),
            "end_time": draft.end_time.to_iso8601_string(),
            "bill": draft.bill,
            "status": "upcoming",
            "payment_status": "pending",
            "notes": draft.notes,
            "booking_type": draft.booking_type,
            "booking_approach": draft.booking_approach,
            "is_accepted": False,
            "is_rejected": False,
            "is_set_reminder": False,
            "created_at": now,
            "updated_at": now,
        }

        created = self._request(
            "POST",
            "appointments",
            payload=row,
            prefer="return=representation",
        )
        if not created or not isinstance(created, list) or "id" not in created[0]:
            raise BackendError("Backend did not return the created appointment")
        appointment_row = created[0]

        try:
            appointment = replace(self._parse_appointment(appointment_row), services=draft.services)
        except (KeyError, TypeError, ValueError) as e:
            raise PartialWriteError(
                f"Appointment {appointment_row['id']} was created but could not be read back: {e}",
                appointment=self._appointment_from_draft(appointment_row["id"], draft, customer.get("name")),
            ) from e

        try:
            self._insert_links(appointment.id, draft, now)
        except BackendError as e:
            raise PartialWriteError(
                f"Appointment {appointment.id} was created but its services were not saved: {e}",
                appointment=appointment,
            ) from e

        return appointment

    def _insert_links(self, appointment_id: str, draft: AppointmentDraft, now: str) -> None:
        for line in draft.services:
            if line.category == "Deal":
                self._request(
                    "POST",
                    "appointments_deals",
                    payload={
                        "appointment_id": appointment_id,
                        "deal_id": line.service_id,
                        "created_at": now,
                        "updated_at": now,
                    },
                )
            else:
                self._request(
                    "POST",
                    "appointments_services",
                    payload={
                        "appointment_id": appointment_id,
                        "service_id": line.service_id,
                        "price": line.price,
                        "created_at": now,
                        "updated_at": now,
                    },
                )

    def _customer_phone_number(self, customer: Dict[str, Any]) -> Optional[str]:
        """Phone number of the customer's user account, if there is one."""
        if not customer.get("auth_id"):
            return None
        try:
            users = self._request(
                "GET",
                "users",
                params=[("select", "phone_number"), ("id", f"eq.{customer['auth_id']}")],
            )
        except BackendError as e:
            logger.warning("Could not look up phone number of customer %s: %s", customer.get("id"), e)
            return None
        return users[0].get("phone_number") if users else None

    @staticmethod
    def _appointment_from_draft(
        appointment_id: str,
        draft: AppointmentDraft,
        customer_name: Optional[str],
    ) -> Appointment:
        return Appointment(
            id=str(appointment_id),
            customer_id=draft.customer_id,
            time_range=draft.time_range,
            staff_id=draft.staff_id,
            customer_name=customer_name,
            salon_id=draft.salon_id,
            bill=draft.bill,
            services=draft.services,
        )

    def list_appointments_sync(
        self,
        date_from: Date,
        date_to: Date,
        staff_id: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> List[Appointment]:
        """Fetch appointments of the salon in a date window, ordered by start."""
        params: List[Tuple[str, str]] = [
            ("select", APPOINTMENT_SELECT),
            ("salon_id", f"eq.{self.salon_id}"),
            ("date", f"gte.{date_from.isoformat()}"),
            ("date", f"lte.{date_to.isoformat()}"),
            ("order", "date.asc,start_time.asc"),
        ]
        if staff_id:
            params.append(("staff_id", f"eq.{staff_id}"))
        if customer_id:
            params.append(("customer_id", f"eq.{customer_id}"))

        rows = self._request("GET", "appointments", params=params) or []

        appointments: List[Appointment] = []
        for row in rows:
            try:
                appointments.append(self._parse_appointment(row))
            except (KeyError, ValueError) as e:
                logger.warning("Skipping appointment %s: %s", row.get("id"), e)
        return appointments

    def delete_appointment_sync(self, appointment_id: str) -> bool:
        """Delete the service links first, then the appointment itself."""
        try:
            self._request(
                "DELETE",
                "appointments_services",
                params=[("appointment_id", f"eq.{appointment_id}")],
            )
        except BackendError as e:
            logger.warning("Could not delete services of appointment %s: %s", appointment_id, e)

        self._request("DELETE", "appointments", params=[("id", f"eq.{appointment_id}")])
        return True

    def get_client_sync(self, client_id: str) -> Optional[Client]:
        customers = self._request(
            "GET",
            "customers",
            params=[("select", "id,name,auth_id"), ("id", f"eq.{client_id}")],
        )
        if not customers:
            return None
        customer = customers[0]

        user: Dict[str, Any] = {}
        if customer.get("auth_id"):
            users = self._request(
                "GET",
                "users",
                params=[
                    ("select", "id,email,phone_number,fullname"),
                    ("id", f"eq.{customer['auth_id']}"),
                ],
            )
            user = users[0] if users else {}

        return self._build_client(customer, user)

    def find_client_by_email_sync(self, email: str) -> Optional[Client]:
        users = self._request(
            "GET",
            "users",
            params=[
                ("select", "id,email,phone_number,fullname"),
                ("email", f"eq.{email.lower()}"),
            ],
        )
        if not users:
            return None
        user = users[0]

        customers = self._request(
            "GET",
            "customers",
            params=[("select", "id,name,auth_id"), ("auth_id", f"eq.{user['id']}")],
        )
        if not customers:
            return None

        return self._build_client(customers[0], user)

    def list_services_sync(self) -> List[Service]:
        """Fetch services and deals of the salon. Promotions are not bookable."""
        service_rows = self._request(
            "GET",
            "salons_services",
            params=[
                ("select", "id,name,price,time"),
                ("salon_id", f"eq.{self.salon_id}"),
                ("order", "name.asc"),
            ],
        ) or []
        deal_rows = self._request(
            "GET",
            "salons_deals",
            params=[
                ("select", "id,title,price,discounted_price"),
                ("salon_id", f"eq.{self.salon_id}"),
                ("order", "title.asc"),
            ],
        ) or []

        services = [
            Service(
                id=row["id"],
                name=row["name"],
                price=float(row.get("price") or 0),
                duration_minutes=parse_duration_minutes(row.get("time")),
                category="Service",
            )
            for row in service_rows
        ]
        services.extend(
            Service(
                id=row["id"],
                name=row["title"],
                price=float(row.get("discounted_price") or row.get("price") or 0),
                category="Deal",
            )
            for row in deal_rows
        )
        return services

    def list_staff_sync(self) -> List[Staff]:
        rows = self._request(
            "GET",
            "salons_staff",
            params=[
                ("select", "id,name"),
                ("salon_id", f"eq.{self.salon_id}"),
                ("order", "name.asc"),
            ],
        ) or []
        return [Staff(id=row["id"], name=row.get("name") or "Unknown Staff") for row in rows]

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[Params] = None,
        payload: Optional[Dict[str, Any]] = None,
        prefer: Optional[str] = None,
    ) -> Any:
        """
        Send one PostgREST request and return the decoded JSON body.

        Raises:
            BackendError: If the request fails or the response is not JSON
        """
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer

        logger.debug("%s %s %s", method, table, params or "")

        try:
            response = requests.request(
                method,
                f"{self.rest_url}/{table}",
                headers=headers,
                params=list(params) if params else None,
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise BackendError(f"Supabase request {method} {table} failed: {e}") from e

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"Invalid JSON from Supabase for {table}: {e}") from e

    def _parse_appointment(self, row: Dict[str, Any]) -> Appointment:
        """
        Parse an appointments row (optionally with embedded relations).

        Stored times may be full ISO timestamps or bare HH:MM[:SS] values
        relative to the ``date`` column.
        """
        start = self._parse_time(row["date"], row["start_time"])
        end = self._parse_time(row["date"], row["end_time"])

        customer = row.get("customer") or {}
        staff = row.get("staff") or {}

        lines: List[ServiceLine] = []
        names: List[str] = []
        for link in row.get("services") or []:
            service = link.get("service") or {}
            lines.append(ServiceLine(service_id=service.get("id", ""), price=float(link.get("price") or 0)))
            names.append(service.get("name") or "Unknown Service")
        for link in row.get("deals") or []:
            deal = link.get("deal") or {}
            price = deal.get("discounted_price") or deal.get("price") or 0
            lines.append(ServiceLine(service_id=deal.get("id", ""), price=float(price), category="Deal"))
            names.append(deal.get("title") or "Unknown Deal")

        return Appointment(
            id=row["id"],
            customer_id=row.get("customer_id") or customer.get("id", ""),
            time_range=TimeRange(start=start, end=end),
            staff_id=row.get("staff_id"),
            customer_name=row.get("customer_name") or customer.get("name"),
            staff_name=staff.get("name"),
            salon_id=row.get("salon_id"),
            bill=float(row.get("bill") or 0),
            status=row.get("status") or "upcoming",
            payment_status=row.get("payment_status") or "pending",
            services=tuple(lines),
            service_names=tuple(names),
        )

    def _parse_time(self, date_str: str, value: Optional[str]) -> DateTime:
        if not value:
            raise ValueError("missing start or end time")
        if "T" in value:
            dt = pendulum.parse(value)
        else:
            dt = pendulum.parse(f"{date_str} {value}", tz=self.timezone)
        if not isinstance(dt, DateTime):
            raise ValueError(f"Could not parse datetime: {value}")
        return dt.in_timezone(self.timezone)

    @staticmethod
    def _build_client(customer: Dict[str, Any], user: Dict[str, Any]) -> Client:
        return Client(
            id=customer["id"],
            name=user.get("fullname") or customer.get("name") or "Unknown",
            email=user.get("email"),
            phone_number=user.get("phone_number"),
        )


_HOURS = re.compile(r"(\d+)\s*h")
_MINUTES = re.compile(r"(\d+)\s*m")


def parse_duration_minutes(value: Any) -> Optional[int]:
    """
    Parse the free-text ``time`` column of a service into minutes.

    Accepts plain numbers ("45"), "1h 30m", "90 min". Returns None when the
    value is empty or unparseable, so the default duration applies.
    """
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else None

    text = str(value).strip().lower()
    if not text:
        return None
    if text.isdigit():
        return int(text) or None

    hours = _HOURS.search(text)
    minutes = _MINUTES.search(text)
    if not hours and not minutes:
        return None

    total = (int(hours.group(1)) * 60 if hours else 0) + (int(minutes.group(1)) if minutes else 0)
    return total or None
