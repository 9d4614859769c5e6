"""
consultbook.config.scheduling – engine-wide scheduling policy.

Env vars: SCHEDULING_ALLOWED_SLOT_MINUTES, SCHEDULING_DEFAULT_START, SCHEDULING_DEFAULT_END,
SCHEDULING_DEFAULT_SLOT_MINUTES, SCHEDULING_DEFAULT_CLOSED_WEEKDAYS, SCHEDULING_MAX_WRITE_RETRIES.
"""
from __future__ import annotations

import datetime as _dt
import os
from dataclasses import dataclass, field
from typing import FrozenSet


def _parse_hhmm(value: str, name: str) -> _dt.time:
    try:
        return _dt.datetime.strptime(value.strip(), "%H:%M").time()
    except ValueError:
        raise ValueError(f"{name} must be HH:MM, got {value!r}") from None


def _parse_int_set(value: str, name: str) -> FrozenSet[int]:
    items = [p.strip() for p in value.split(",") if p.strip()]
    try:
        return frozenset(int(p) for p in items)
    except ValueError:
        raise ValueError(f"{name} must be a comma-separated list of integers, got {value!r}") from None


@dataclass(frozen=True)
class SchedulingConfig:
    """
    Policy shared by every resource.

    The default_* fields describe the configuration returned for a resource
    that has never saved one: 09:00-18:00, 30-minute slots, no break,
    closed on Sunday (0) and Saturday (6).
    """

    allowed_slot_minutes: FrozenSet[int] = field(default_factory=lambda: frozenset({30, 60}))
    default_start_time: _dt.time = _dt.time(9, 0)
    default_end_time: _dt.time = _dt.time(18, 0)
    default_slot_minutes: int = 30
    default_closed_weekdays: FrozenSet[int] = field(default_factory=lambda: frozenset({0, 6}))
    max_write_retries: int = 2
    """Extra attempts for transient storage failures during a booking insert."""

    def __post_init__(self) -> None:
        if not self.allowed_slot_minutes or any(m <= 0 for m in self.allowed_slot_minutes):
            raise ValueError("allowed_slot_minutes must be a non-empty set of positive integers")
        if self.default_slot_minutes not in self.allowed_slot_minutes:
            raise ValueError(
                f"default_slot_minutes {self.default_slot_minutes} is not in "
                f"allowed_slot_minutes {sorted(self.allowed_slot_minutes)}"
            )
        if self.default_start_time >= self.default_end_time:
            raise ValueError("default_start_time must be before default_end_time")
        if any(d < 0 or d > 6 for d in self.default_closed_weekdays):
            raise ValueError("default_closed_weekdays entries must be 0-6 (0 = Sunday)")
        if not isinstance(self.max_write_retries, int) or self.max_write_retries < 0:
            raise ValueError("max_write_retries must be a non-negative integer")

    @classmethod
    def from_env(cls) -> SchedulingConfig:
        env = os.environ
        return cls(
            allowed_slot_minutes=_parse_int_set(
                env.get("SCHEDULING_ALLOWED_SLOT_MINUTES", "30,60"),
                "SCHEDULING_ALLOWED_SLOT_MINUTES",
            ),
            default_start_time=_parse_hhmm(
                env.get("SCHEDULING_DEFAULT_START", "09:00"), "SCHEDULING_DEFAULT_START"
            ),
            default_end_time=_parse_hhmm(
                env.get("SCHEDULING_DEFAULT_END", "18:00"), "SCHEDULING_DEFAULT_END"
            ),
            default_slot_minutes=int(env.get("SCHEDULING_DEFAULT_SLOT_MINUTES", "30")),
            default_closed_weekdays=_parse_int_set(
                env.get("SCHEDULING_DEFAULT_CLOSED_WEEKDAYS", "0,6"),
                "SCHEDULING_DEFAULT_CLOSED_WEEKDAYS",
            ),
            max_write_retries=int(env.get("SCHEDULING_MAX_WRITE_RETRIES", "2")),
        )


def load_scheduling_config() -> SchedulingConfig:
    return SchedulingConfig.from_env()
