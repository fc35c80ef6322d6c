"""
Core business logic for laying out a booking cart on the calendar.

Pure domain logic without any external dependencies (no API calls, no
database, no I/O). The same cart and anchor always produce the same blocks.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from pendulum import DateTime

from .models import (
    DEFAULT_DURATION_MINUTES,
    AppointmentDraft,
    CartItem,
    ScheduledBlock,
    ServiceLine,
    TimeRange,
)

StaffKey = Optional[str]  # None is the unassigned bucket


class SequentialLayout:
    """
    Converts an ordered cart sharing one anchor instant into per-staff blocks.

    Algorithm:
    1. Partition cart items by staff id (None for unassigned), keeping the
       order in which each staff member first appears
    2. For each group, walk a cursor starting at the anchor; every item gets
       the block [cursor, cursor + duration) and the cursor moves to its end
    3. Each group becomes exactly one appointment draft spanning its first
       block start to its last block end

    Different staff members all start at the anchor, so parallel staff can
    work at the same time. Existing appointments are not consulted here.
    """

    def __init__(self, default_duration_minutes: int = DEFAULT_DURATION_MINUTES):
        if default_duration_minutes <= 0:
            raise ValueError("default_duration_minutes must be greater than zero")
        self.default_duration_minutes = default_duration_minutes

    def group_by_staff(
        self,
        items: Sequence[CartItem]
    ) -> Dict[StaffKey, List[Tuple[int, CartItem]]]:
        """
        Group cart items by staff member.

        Returns an insertion-ordered dict mapping staff id to
        (cart index, item) pairs in cart order.
        """
        groups: Dict[StaffKey, List[Tuple[int, CartItem]]] = {}

        for index, item in enumerate(items):
            groups.setdefault(item.staff_id, []).append((index, item))

        return groups

    def layout_blocks(
        self,
        items: Sequence[CartItem],
        anchor: DateTime
    ) -> List[ScheduledBlock]:
        """
        Lay out one block per cart item.

        Blocks are returned grouped by staff (first-seen order), and in cart
        order within each group.
        """
        blocks: List[ScheduledBlock] = []

        for staff_id, group in self.group_by_staff(items).items():
            blocks.extend(self._layout_group(staff_id, group, anchor))

        return blocks

    def build_drafts(
        self,
        items: Sequence[CartItem],
        anchor: DateTime,
        customer_id: str,
        *,
        salon_id: Optional[str] = None,
        notes: Optional[str] = None,
        booking_type: Optional[str] = None,
        booking_approach: Optional[str] = None,
    ) -> List[AppointmentDraft]:
        """
        Build one appointment draft per staff group.

        Args:
            items: Cart items in insertion order
            anchor: The user-picked start instant shared by all groups
            customer_id: Backend id of the client being booked
            salon_id: Salon the appointments belong to
            notes: Free text copied onto every draft
            booking_type: Optional booking type tag
            booking_approach: Optional booking approach tag (e.g. walk-in)

        Returns:
            List of AppointmentDraft objects, one per distinct staff key
        """
        drafts: List[AppointmentDraft] = []

        for staff_id, group in self.group_by_staff(items).items():
            blocks = self._layout_group(staff_id, group, anchor)

            drafts.append(
                AppointmentDraft(
                    customer_id=customer_id,
                    staff_id=staff_id,
                    services=tuple(
                        ServiceLine(
                            service_id=block.service.id,
                            price=block.service.price,
                            category=block.service.category,
                        )
                        for block in blocks
                    ),
                    time_range=TimeRange(
                        start=blocks[0].time_range.start,
                        end=blocks[-1].time_range.end,
                    ),
                    salon_id=salon_id,
                    notes=notes,
                    booking_type=booking_type,
                    booking_approach=booking_approach,
                )
            )

        return drafts

    def span_end(
        self,
        items: Sequence[CartItem],
        anchor: DateTime
    ) -> DateTime:
        """
        Return the latest block end across all staff groups.

        This is the derived end of the selected slot. An empty cart ends at
        the anchor itself.
        """
        blocks = self.layout_blocks(items, anchor)
        if not blocks:
            return anchor
        return max(block.time_range.end for block in blocks)

    def _layout_group(
        self,
        staff_id: StaffKey,
        group: List[Tuple[int, CartItem]],
        anchor: DateTime
    ) -> List[ScheduledBlock]:
        """Walk the cursor over one staff group."""
        blocks: List[ScheduledBlock] = []
        cursor = anchor

        for index, item in group:
            duration = item.service.effective_duration(self.default_duration_minutes)
            block_end = cursor.add(minutes=duration)

            blocks.append(
                ScheduledBlock(
                    cart_index=index,
                    service=item.service,
                    staff_id=staff_id,
                    time_range=TimeRange(start=cursor, end=block_end),
                )
            )

            cursor = block_end

        return blocks
