"""Tests for inbox_agent/providers/scheduling.py - free/busy arithmetic."""

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from inbox_agent.models import TimeSlot
from inbox_agent.providers.scheduling import business_hour_slots, compute_free_slots, overlaps

MONDAY = datetime(2025, 3, 10, 0, 0, tzinfo=UTC)


def at(day_offset, hour, minute=0):
    return MONDAY + timedelta(days=day_offset, hours=hour, minutes=minute)


class TestTimeSlot:
    def test_rejects_empty_interval(self):
        with pytest.raises(ValueError):
            TimeSlot(at(0, 10), at(0, 10))

    def test_touching_intervals_do_not_overlap(self):
        """Intervals are half-open, so back-to-back slots are compatible."""
        assert not TimeSlot(at(0, 9), at(0, 10)).overlaps(TimeSlot(at(0, 10), at(0, 11)))
        assert TimeSlot(at(0, 9), at(0, 10, 1)).overlaps(TimeSlot(at(0, 10), at(0, 11)))


class TestComputeFreeSlots:
    """Tests for full-day gap computation."""

    def test_gaps_between_meetings(self):
        busy = [TimeSlot(at(0, 10), at(0, 11)), TimeSlot(at(0, 13), at(0, 14))]
        free = compute_free_slots(busy, at(0, 9), at(0, 17), 30)
        assert free == [
            TimeSlot(at(0, 9), at(0, 10)),
            TimeSlot(at(0, 11), at(0, 13)),
            TimeSlot(at(0, 14), at(0, 17)),
        ]

    def test_unsorted_and_overlapping_busy(self):
        busy = [TimeSlot(at(0, 12), at(0, 15)), TimeSlot(at(0, 10), at(0, 13))]
        free = compute_free_slots(busy, at(0, 9), at(0, 16), 30)
        assert free == [TimeSlot(at(0, 9), at(0, 10)), TimeSlot(at(0, 15), at(0, 16))]

    def test_short_gaps_dropped(self):
        busy = [TimeSlot(at(0, 10), at(0, 11)), TimeSlot(at(0, 11, 20), at(0, 12))]
        free = compute_free_slots(busy, at(0, 10), at(0, 12), 30)
        assert free == []

    def test_busy_before_window_ignored(self):
        busy = [TimeSlot(at(0, 7), at(0, 9, 30))]
        free = compute_free_slots(busy, at(0, 9), at(0, 10), 15)
        assert free == [TimeSlot(at(0, 9, 30), at(0, 10))]

    def test_no_slot_intersects_busy(self):
        busy = [TimeSlot(at(0, h), at(0, h, 45)) for h in range(8, 18, 2)]
        for slot in compute_free_slots(busy, at(0, 8), at(0, 18), 30):
            assert not overlaps(slot, busy)

    @pytest.mark.parametrize("duration", [0, -15])
    def test_non_positive_duration_rejected(self, duration):
        """Back-to-back meetings leave zero-length gaps that are never slots."""
        busy = [TimeSlot(at(0, 9), at(0, 10)), TimeSlot(at(0, 10), at(0, 11))]
        with pytest.raises(ValueError, match="positive"):
            compute_free_slots(busy, at(0, 9), at(0, 12), duration)


class TestBusinessHourSlots:
    """Tests for weekday working-hours candidates."""

    def test_hourly_candidates_on_weekdays(self):
        slots = business_hour_slots([], at(0, 0), 1, 60, UTC)
        assert [s.start.hour for s in slots] == [9, 10, 11, 12, 13, 14, 15, 16]
        assert all(s.end <= at(0, 17) for s in slots)

    def test_weekend_skipped(self):
        saturday = MONDAY + timedelta(days=5)
        assert business_hour_slots([], saturday, 2, 30, UTC) == []

    def test_busy_candidates_removed(self):
        busy = [TimeSlot(at(0, 10, 30), at(0, 11, 30))]
        slots = business_hour_slots(busy, at(0, 0), 1, 60, UTC)
        starts = [s.start.hour for s in slots]
        assert 10 not in starts and 11 not in starts
        for slot in slots:
            assert not overlaps(slot, busy)

    def test_past_slots_dropped(self):
        """Slots whose end is not after now are discarded."""
        now = at(0, 13, 30)
        slots = business_hour_slots([], now, 1, 60, UTC)
        assert all(s.end > now for s in slots)
        assert slots[0].start == at(0, 13)

    def test_long_duration_must_fit_day(self):
        slots = business_hour_slots([], at(0, 0), 1, 180, UTC)
        assert [s.start.hour for s in slots] == [9, 10, 11, 12, 13, 14]

    def test_max_slots(self):
        slots = business_hour_slots([], at(0, 0), 14, 30, UTC, max_slots=20)
        assert len(slots) == 20

    def test_timezone_work_hours(self):
        tz = ZoneInfo("America/New_York")
        slots = business_hour_slots([], at(0, 12), 1, 60, tz)
        assert slots[0].start.astimezone(tz).hour == 9

    def test_zero_duration_rejected(self):
        with pytest.raises(ValueError, match="positive"):
            business_hour_slots([], at(0, 8), 1, 0, UTC)
