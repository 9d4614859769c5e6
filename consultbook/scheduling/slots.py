"""Slot generator: expand an availability config into one day's candidate slots.

Everything here is pure. Callers supply the configuration snapshot, the set of
times already held by active bookings, and the current civil instant.
"""
from __future__ import annotations

import datetime as _dt
from typing import AbstractSet, Iterator, List, Optional

from consultbook.core.exceptions import SlotInvalidError
from consultbook.scheduling.types import (
    AvailabilityConfig,
    Slot,
    SlotUnavailableReason,
    from_minutes,
    to_minutes,
    weekday_ordinal,
)


def iter_slot_times(config: AvailabilityConfig) -> Iterator[_dt.time]:
    """Yield slot start times from start_time in fixed steps.

    A slot is emitted only if it ends by end_time; a trailing remainder
    shorter than one slot is dropped.
    """
    step = config.slot_duration_minutes
    cursor = to_minutes(config.start_time)
    end = to_minutes(config.end_time)
    while cursor + step <= end:
        yield from_minutes(cursor)
        cursor += step


def overlaps_break(config: AvailabilityConfig, slot_time: _dt.time) -> bool:
    """Half-open overlap of [slot, slot + duration) with [break_start, break_end)."""
    if not config.has_break:
        return False
    start = to_minutes(slot_time)
    end = start + config.slot_duration_minutes
    return start < to_minutes(config.break_end) and end > to_minutes(config.break_start)


def generate_slots(
    config: AvailabilityConfig,
    day: _dt.date,
    booked_times: AbstractSet[_dt.time],
    now: _dt.datetime,
) -> List[Slot]:
    """Return the ordered slots for ``day`` with availability flags.

    Closed days (weekday or one-off date) and days before ``now``'s date yield
    an empty list. On ``now``'s date, any slot starting at or before ``now`` is
    unavailable. booked_times must be read fresh right before display; a slot
    claimed after this call is rejected later by the booking guard.
    """
    if config.is_closed_on(day) or day < now.date():
        return []

    is_today = day == now.date()
    slots: List[Slot] = []
    for slot_time in iter_slot_times(config):
        reason: Optional[SlotUnavailableReason] = None
        if overlaps_break(config, slot_time):
            reason = SlotUnavailableReason.BREAK
        elif slot_time in booked_times:
            reason = SlotUnavailableReason.BOOKED
        elif is_today and _dt.datetime.combine(day, slot_time) <= now:
            reason = SlotUnavailableReason.PAST
        slots.append(Slot(date=day, time=slot_time, available=reason is None, reason=reason))
    return slots


def check_bookable(
    config: AvailabilityConfig,
    day: _dt.date,
    slot_time: _dt.time,
    now: _dt.datetime,
) -> None:
    """Raise SlotInvalidError unless (day, slot_time) is a legal open slot.

    Occupancy is not considered here; that is the booking guard's job.
    """
    details = {
        "resource_id": config.resource_id,
        "date": day.isoformat(),
        "time": slot_time.strftime("%H:%M"),
    }
    if day in config.closed_dates:
        raise SlotInvalidError("Resource is closed on this date", details={**details, "reason": "closed_date"})
    if weekday_ordinal(day) in config.closed_weekdays:
        raise SlotInvalidError("Resource is closed on this weekday", details={**details, "reason": "closed_weekday"})
    if day < now.date():
        raise SlotInvalidError("Date is in the past", details={**details, "reason": "past"})

    for slot in generate_slots(config, day, frozenset(), now):
        if slot.time == slot_time:
            if not slot.available:
                raise SlotInvalidError(
                    "Slot is not available",
                    details={**details, "reason": slot.reason.value},
                )
            return
    raise SlotInvalidError(
        "Time is not a slot in the operating hours",
        details={**details, "reason": "off_grid"},
    )


def reconciliation_reasons(
    config: AvailabilityConfig,
    day: _dt.date,
    slot_time: _dt.time,
) -> List[str]:
    """Why an existing booking at (day, slot_time) would not be offered today.

    Empty when the current configuration still offers the slot. Used to surface
    bookings made under an older configuration; nothing is cancelled.
    """
    reasons: List[str] = []
    if day in config.closed_dates:
        reasons.append("closed_date")
    if weekday_ordinal(day) in config.closed_weekdays:
        reasons.append("closed_weekday")
    if slot_time not in set(iter_slot_times(config)):
        start = to_minutes(slot_time)
        inside = (
            to_minutes(config.start_time) <= start
            and start + config.slot_duration_minutes <= to_minutes(config.end_time)
        )
        reasons.append("off_grid" if inside else "outside_hours")
    if overlaps_break(config, slot_time):
        reasons.append("break")
    return reasons
