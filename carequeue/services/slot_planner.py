"""Turns recurring schedule blocks into time slots for one day."""

from collections.abc import Collection, Iterable

from carequeue.schemas.schedules import (
    ScheduleBlock,
    TimeSlot,
    minutes_to_time,
    time_to_minutes,
)


def compute_slots(
    blocks: Iterable[ScheduleBlock],
    booked_slot_times: Collection[str],
    day_of_week: int,
) -> list[TimeSlot]:
    """
    Compute the slots for one doctor on one day.

    Each active block for ``day_of_week`` yields a slot every
    ``slot_duration_minutes + buffer_minutes`` from its start, as long as the
    whole consultation fits before its end. Blocks are not merged, so
    overlapping blocks can produce the same time twice.

    Args:
        blocks: Schedule blocks (validated at configuration time)
        booked_slot_times: HH:MM strings already held by live bookings
        day_of_week: 0 = Sunday ... 6 = Saturday

    Returns:
        Slots sorted by time
    """
    booked = set(booked_slot_times)
    slots: list[TimeSlot] = []

    for block in blocks:
        if not block.is_active or block.day_of_week != day_of_week:
            continue

        step = block.slot_duration_minutes + block.buffer_minutes
        current = time_to_minutes(block.start_time)
        end = time_to_minutes(block.end_time)

        while current + block.slot_duration_minutes <= end:
            label = minutes_to_time(current)
            slots.append(TimeSlot(time=label, available=label not in booked))
            current += step

    slots.sort(key=lambda slot: slot.time)
    return slots


def planner_day_of_week(weekday: int) -> int:
    """Convert ``date.weekday()`` (Monday = 0) to schedule numbering (Sunday = 0)."""
    return (weekday + 1) % 7
