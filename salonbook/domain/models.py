"""
Domain models for services, the booking cart and appointment time ranges.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from typing import Iterator, List, Optional, Tuple

from pendulum import DateTime


DEFAULT_DURATION_MINUTES = 30

BOOKABLE_CATEGORIES = ("Service", "Deal")


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass
class OpeningHours:
    """
    Opening hours of the salon, used to build the calendar grid.
    """
    start_time: time
    end_time: time
    closed_weekdays: List[int]  # 0=Monday, 6=Sunday
    timezone: str = "Europe/Berlin"

    def is_open_day(self, dt: DateTime) -> bool:
        """Check if the salon is open on the day of a given datetime."""
        return dt.day_of_week not in self.closed_weekdays

    def get_opening_hours_for_day(self, date: DateTime) -> TimeRange | None:
        """
        Get the opening hours range for a specific day.
        Returns None if the salon is closed that day.
        """
        if not self.is_open_day(date):
            return None

        start = date.set(
            hour=self.start_time.hour,
            minute=self.start_time.minute,
            second=0,
            microsecond=0
        )
        end = date.set(
            hour=self.end_time.hour,
            minute=self.end_time.minute,
            second=0,
            microsecond=0
        )

        return TimeRange(start=start, end=end)


@dataclass(frozen=True)
class Service:
    """A bookable service or deal from the salon catalog."""
    id: str
    name: str
    price: float
    duration_minutes: Optional[int] = None
    category: str = "Service"

    def __post_init__(self):
        if self.duration_minutes is not None and self.duration_minutes <= 0:
            raise ValueError(f"Service {self.name!r} must have a positive duration")

    def effective_duration(self, default: int = DEFAULT_DURATION_MINUTES) -> int:
        """Duration used for scheduling; services without one take the default."""
        if self.duration_minutes is None:
            return default
        return self.duration_minutes


@dataclass(frozen=True)
class Staff:
    id: str
    name: str


@dataclass(frozen=True)
class Client:
    id: str
    name: str
    email: Optional[str] = None
    phone_number: Optional[str] = None


@dataclass(frozen=True)
class CartItem:
    """A pending service selection with an optional preferred staff member."""
    service: Service
    artist: Optional[Staff] = None

    @property
    def staff_id(self) -> Optional[str]:
        return self.artist.id if self.artist else None


class Cart:
    """
    Ordered list of cart items for one booking session.

    Insertion order is the service order used when laying out time blocks.
    """

    def __init__(self) -> None:
        self._items: List[CartItem] = []

    def add(self, service: Service, artist: Optional[Staff] = None) -> CartItem:
        """Append a service (and optional staff member) to the cart."""
        if service.category not in BOOKABLE_CATEGORIES:
            raise ValueError(f"{service.category} {service.name!r} cannot be added to the cart")
        item = CartItem(service=service, artist=artist)
        self._items.append(item)
        return item

    def remove(self, index: int) -> CartItem:
        """Remove the item at ``index`` and return it."""
        if not 0 <= index < len(self._items):
            raise IndexError(f"No cart item at position {index}")
        return self._items.pop(index)

    def clear(self) -> None:
        self._items.clear()

    @property
    def items(self) -> Tuple[CartItem, ...]:
        return tuple(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def total_price(self) -> float:
        return sum(item.service.price for item in self._items)

    def total_duration_minutes(self, default: int = DEFAULT_DURATION_MINUTES) -> int:
        """Sum of all item durations, regardless of staff assignment."""
        return sum(item.service.effective_duration(default) for item in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[CartItem]:
        return iter(self.items)


@dataclass(frozen=True)
class SelectedSlot:
    """
    The anchor picked on the calendar grid or the date/time picker.

    ``end`` is derived from the cart layout, it is never chosen independently.
    """
    start: DateTime
    end: DateTime

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)


@dataclass(frozen=True)
class ScheduledBlock:
    """Time block computed for one cart item (a pending calendar event)."""
    cart_index: int
    service: Service
    staff_id: Optional[str]
    time_range: TimeRange


@dataclass(frozen=True)
class ServiceLine:
    service_id: str
    price: float
    category: str = "Service"


@dataclass(frozen=True)
class AppointmentDraft:
    """
    Appointment payload derived from the cart at submit time.

    One draft is produced per distinct staff member in the cart, including
    the unassigned bucket (``staff_id`` is None).
    """
    customer_id: str
    staff_id: Optional[str]
    services: Tuple[ServiceLine, ...]
    time_range: TimeRange
    salon_id: Optional[str] = None
    notes: Optional[str] = None
    booking_type: Optional[str] = None
    booking_approach: Optional[str] = None

    @property
    def start_time(self) -> DateTime:
        return self.time_range.start

    @property
    def end_time(self) -> DateTime:
        return self.time_range.end

    @property
    def date(self) -> str:
        return self.time_range.start.to_date_string()

    @property
    def bill(self) -> float:
        return sum(line.price for line in self.services)


@dataclass(frozen=True)
class Appointment:
    """An appointment as persisted by the backend."""
    id: str
    customer_id: str
    time_range: TimeRange
    staff_id: Optional[str] = None
    customer_name: Optional[str] = None
    staff_name: Optional[str] = None
    salon_id: Optional[str] = None
    bill: float = 0.0
    status: str = "upcoming"
    payment_status: str = "pending"
    services: Tuple[ServiceLine, ...] = field(default_factory=tuple)
    service_names: Tuple[str, ...] = field(default_factory=tuple)

    def format_display(self) -> str:
        """
        Format the appointment for display.
        Format: Weekday, DD.MM.YYYY | HH:MM - HH:MM (N min)
        """
        start = self.time_range.start
        end = self.time_range.end
        weekday = start.format("dddd")
        date_str = start.format("DD.MM.YYYY")
        duration = self.time_range.duration_minutes()
        return f"{weekday}, {date_str} | {start.format('HH:mm')} - {end.format('HH:mm')} ({duration} min)"
