"""Core data structures for the scheduling engine."""
from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, Optional

Clock = Callable[[], _dt.datetime]
"""Returns the current civil (naive, local) instant. Injected so tests can pin time."""


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


ACTIVE_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED}
)
"""Statuses that hold a slot exclusively."""

TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED}
)


class SlotUnavailableReason(str, Enum):
    BREAK = "break"
    BOOKED = "booked"
    PAST = "past"


def weekday_ordinal(day: _dt.date) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def parse_time(value: str) -> Optional[_dt.time]:
    """Parse "HH:MM" or "HH:MM:SS"; None when unparseable."""
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return _dt.datetime.strptime(value, fmt).time()
        except (TypeError, ValueError):
            continue
    return None


def to_minutes(t: _dt.time) -> int:
    return t.hour * 60 + t.minute


def from_minutes(minutes: int) -> _dt.time:
    return _dt.time(minutes // 60, minutes % 60)


@dataclass(frozen=True)
class AvailabilityDraft:
    """Operator-submitted configuration, not yet validated."""

    start_time: _dt.time
    end_time: _dt.time
    slot_duration_minutes: int
    break_start: Optional[_dt.time] = None
    break_end: Optional[_dt.time] = None
    closed_weekdays: FrozenSet[int] = frozenset()
    closed_dates: FrozenSet[_dt.date] = frozenset()


@dataclass(frozen=True)
class AvailabilityConfig:
    """Validated, immutable configuration snapshot for one resource.

    Every engine operation reads one snapshot and uses it for the whole call.
    """

    resource_id: str
    start_time: _dt.time
    end_time: _dt.time
    slot_duration_minutes: int
    break_start: Optional[_dt.time] = None
    break_end: Optional[_dt.time] = None
    closed_weekdays: FrozenSet[int] = frozenset()
    closed_dates: FrozenSet[_dt.date] = frozenset()
    is_default: bool = False
    """True when the resource has never saved a configuration."""

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None

    def is_closed_on(self, day: _dt.date) -> bool:
        return day in self.closed_dates or weekday_ordinal(day) in self.closed_weekdays

    @classmethod
    def from_draft(cls, resource_id: str, draft: AvailabilityDraft) -> AvailabilityConfig:
        return cls(
            resource_id=resource_id,
            start_time=draft.start_time,
            end_time=draft.end_time,
            slot_duration_minutes=draft.slot_duration_minutes,
            break_start=draft.break_start,
            break_end=draft.break_end,
            closed_weekdays=frozenset(draft.closed_weekdays),
            closed_dates=frozenset(draft.closed_dates),
        )


@dataclass(frozen=True)
class Slot:
    date: _dt.date
    time: _dt.time
    available: bool
    reason: Optional[SlotUnavailableReason] = None


@dataclass(frozen=True)
class BookingMetadata:
    """Free-form request details captured with a booking."""

    subject_name: str
    subject_grade: Optional[str] = None
    note: Optional[str] = None
    idempotency_key: Optional[str] = None


@dataclass(frozen=True)
class ReconciliationItem:
    """An active booking that the current configuration no longer offers."""

    booking_id: object
    date: _dt.date
    time: _dt.time
    status: BookingStatus
    reasons: tuple = field(default_factory=tuple)
