"""
Free/busy arithmetic shared by the calendar adapters.

All intervals are half-open, so a slot ending exactly when a meeting starts
does not overlap it.
"""

from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, tzinfo

from inbox_agent.models import TimeSlot


def overlaps(slot: TimeSlot, busy: Iterable[TimeSlot]) -> bool:
    """True if ``slot`` intersects any busy interval."""
    return any(slot.overlaps(b) for b in busy)


def compute_free_slots(
    busy: Iterable[TimeSlot],
    window_start: datetime,
    window_end: datetime,
    duration_minutes: int,
) -> list[TimeSlot]:
    """Gaps of at least ``duration_minutes`` between busy intervals.

    Busy intervals may overlap each other or extend outside the window.

    Args:
        busy: Busy intervals in any order
        window_start: Earliest allowed start (normally "now")
        window_end: Latest allowed end
        duration_minutes: Minimum gap length

    Returns:
        Free intervals in chronological order

    Raises:
        ValueError: If ``duration_minutes`` is not positive
    """
    check_duration(duration_minutes)
    needed = timedelta(minutes=duration_minutes)
    free: list[TimeSlot] = []
    cursor = window_start

    for interval in sorted(busy, key=lambda b: b.start):
        if interval.end <= cursor:
            continue
        if interval.start >= window_end:
            break
        if interval.start - cursor >= needed:
            free.append(TimeSlot(cursor, interval.start))
        cursor = max(cursor, interval.end)

    if window_end - cursor >= needed:
        free.append(TimeSlot(cursor, window_end))
    return free


def check_duration(duration_minutes: int) -> None:
    if duration_minutes <= 0:
        raise ValueError(f"Slot duration must be positive, got {duration_minutes} minutes")


def _business_days(start: date, days: int) -> Iterable[date]:
    for offset in range(days):
        day = start + timedelta(days=offset)
        if day.weekday() < 5:
            yield day


def business_hour_slots(
    busy: Iterable[TimeSlot],
    now: datetime,
    days: int,
    duration_minutes: int,
    tz: tzinfo,
    *,
    start_hour: int = 9,
    end_hour: int = 17,
    max_slots: int = 20,
) -> list[TimeSlot]:
    """Hourly candidate slots inside weekday working hours that avoid ``busy``.

    Candidates start on the hour from ``start_hour`` and must end by
    ``end_hour`` in ``tz``. Candidates whose end is not after ``now`` are
    dropped.
    """
    check_duration(duration_minutes)
    busy = list(busy)
    needed = timedelta(minutes=duration_minutes)
    slots: list[TimeSlot] = []

    for day in _business_days(now.astimezone(tz).date(), days):
        day_end = datetime.combine(day, time(end_hour), tzinfo=tz)
        for hour in range(start_hour, end_hour):
            start = datetime.combine(day, time(hour), tzinfo=tz)
            end = start + needed
            if end > day_end:
                break
            if end <= now:
                continue
            candidate = TimeSlot(start, end)
            if overlaps(candidate, busy):
                continue
            slots.append(candidate)
            if len(slots) >= max_slots:
                return slots
    return slots
