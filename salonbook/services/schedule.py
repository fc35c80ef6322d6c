"""
Calendar view service: persisted appointments merged with pending blocks.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from pendulum import DateTime

from ..domain.calendar import CalendarEvent, CalendarReconciler, Conflict
from ..domain.models import Appointment, ScheduledBlock
from .booking import BackendProtocol


class ScheduleService:
    """
    Fetches a day's appointments and reconciles them with pending blocks.

    Conflicts are for display only; they never block a submission.
    """

    def __init__(
        self,
        backend: BackendProtocol,
        reconciler: Optional[CalendarReconciler] = None,
    ) -> None:
        self._backend = backend
        self._reconciler = reconciler or CalendarReconciler()

    async def fetch_day(
        self,
        day: DateTime,
        staff_id: Optional[str] = None,
    ) -> List[Appointment]:
        """Fetch the persisted appointments of one day, optionally for one staff member."""
        date = day.date()
        return await self._backend.list_appointments(
            date_from=date,
            date_to=date,
            staff_id=staff_id,
        )

    async def load_day(
        self,
        day: DateTime,
        pending_blocks: Sequence[ScheduledBlock] = (),
        staff_id: Optional[str] = None,
    ) -> List[CalendarEvent]:
        """Return the day's calendar with pending blocks merged in."""
        appointments = await self.fetch_day(day, staff_id=staff_id)
        blocks = [
            block for block in pending_blocks
            if staff_id is None or block.staff_id == staff_id
        ]
        return self._reconciler.merge(appointments, blocks)

    async def find_conflicts(
        self,
        day: DateTime,
        pending_blocks: Sequence[ScheduledBlock],
    ) -> List[Conflict]:
        """List pending blocks that overlap the day's existing appointments."""
        appointments = await self.fetch_day(day)
        return self._reconciler.conflicts(appointments, pending_blocks)
