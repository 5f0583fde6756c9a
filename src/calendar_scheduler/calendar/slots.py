"""Free-slot search over a day's busy intervals."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class FreeSlot:
    """A bookable interval inside working hours."""

    start: datetime
    end: datetime
    time_zone: str


def compute_free_slots(
    day_start: datetime,
    day_end: datetime,
    busy: Iterable[tuple[datetime, datetime]],
    duration: timedelta,
    time_zone: str,
) -> list[FreeSlot]:
    """Sweep a cursor across busy intervals and offer one slot per gap.

    Arithmetic happens in UTC so that windows spanning a DST change are
    measured in elapsed time, not wall-clock time.

    Args:
        day_start: Start of the working window (timezone-aware).
        day_end: End of the working window (timezone-aware).
        busy: (start, end) aware intervals sorted by start.
        duration: Length of each offered slot.
        time_zone: IANA zone the slots are expressed in.

    Returns:
        Non-overlapping slots of exactly ``duration``, in ascending order.
    """
    zone = ZoneInfo(time_zone)
    window_end = day_end.astimezone(timezone.utc)
    cursor = day_start.astimezone(timezone.utc)
    slots: list[FreeSlot] = []

    def offer(start: datetime, end: datetime) -> None:
        slots.append(FreeSlot(start.astimezone(zone), end.astimezone(zone), time_zone))

    for busy_start, busy_end in busy:
        busy_start = busy_start.astimezone(timezone.utc)
        busy_end = busy_end.astimezone(timezone.utc)
        if cursor < busy_start:
            slot_end = cursor + duration
            if slot_end <= busy_start and slot_end <= window_end:
                offer(cursor, slot_end)
        # Overlapping intervals never move the cursor backwards
        if cursor < busy_end:
            cursor = busy_end

    if cursor < window_end:
        slot_end = cursor + duration
        if slot_end <= window_end:
            offer(cursor, slot_end)

    return slots
