"""
Calendar reconciliation between persisted appointments and pending blocks.

Pending blocks are shown next to confirmed appointments so overlaps can be
spotted visually. Nothing here prevents a booking from being submitted.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from pendulum import DateTime

from .models import Appointment, OpeningHours, ScheduledBlock, TimeRange


@dataclass(frozen=True)
class CalendarEvent:
    """An entry on the calendar view, either persisted or pending."""
    title: str
    time_range: TimeRange
    staff_id: Optional[str]
    pending: bool = False
    source_id: Optional[str] = None


@dataclass(frozen=True)
class Conflict:
    """A pending event that overlaps an existing appointment."""
    pending: CalendarEvent
    existing: CalendarEvent


class CalendarReconciler:
    """
    Merges persisted appointments with locally computed pending blocks.
    """

    def to_events(self, appointments: Sequence[Appointment]) -> List[CalendarEvent]:
        """Convert persisted appointments into calendar events."""
        events: List[CalendarEvent] = []

        for appointment in appointments:
            services = ", ".join(appointment.service_names) or "Appointment"
            customer = appointment.customer_name or "Unknown"
            events.append(
                CalendarEvent(
                    title=f"{services} - {customer}",
                    time_range=appointment.time_range,
                    staff_id=appointment.staff_id,
                    pending=False,
                    source_id=appointment.id,
                )
            )

        return events

    def pending_events(self, blocks: Sequence[ScheduledBlock]) -> List[CalendarEvent]:
        """Convert pending blocks into calendar events flagged as pending."""
        return [
            CalendarEvent(
                title=f"{block.service.name} (pending)",
                time_range=block.time_range,
                staff_id=block.staff_id,
                pending=True,
            )
            for block in blocks
        ]

    def merge(
        self,
        appointments: Sequence[Appointment],
        blocks: Sequence[ScheduledBlock]
    ) -> List[CalendarEvent]:
        """
        Return one list of events sorted by start time.

        For equal starts, persisted events come before pending ones.
        """
        events = self.to_events(appointments) + self.pending_events(blocks)
        return sorted(events, key=lambda e: (e.time_range.start, e.pending))

    def conflicts(
        self,
        appointments: Sequence[Appointment],
        blocks: Sequence[ScheduledBlock]
    ) -> List[Conflict]:
        """
        List pending events overlapping an existing appointment.

        A pending block assigned to a staff member is only compared with that
        member's appointments; an unassigned block is compared with all.
        """
        existing = self.to_events(appointments)
        found: List[Conflict] = []

        for pending in self.pending_events(blocks):
            for event in existing:
                if pending.staff_id is not None and event.staff_id != pending.staff_id:
                    continue
                if pending.time_range.overlaps(event.time_range):
                    found.append(Conflict(pending=pending, existing=event))

        return found


def build_time_grid(
    day: DateTime,
    opening_hours: OpeningHours,
    step_minutes: int = 30
) -> List[DateTime]:
    """
    Generate the candidate anchor instants shown on the calendar grid.

    Returns an empty list on closed days.
    """
    if step_minutes <= 0:
        raise ValueError("step_minutes must be greater than zero")

    opening = opening_hours.get_opening_hours_for_day(day)
    if opening is None:
        return []

    grid: List[DateTime] = []
    current = opening.start

    while current.add(minutes=step_minutes) <= opening.end:
        grid.append(current)
        current = current.add(minutes=step_minutes)

    return grid
