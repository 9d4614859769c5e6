"""Availability config validation and defaults."""
from __future__ import annotations

import datetime as _dt
from typing import AbstractSet, List

from consultbook.config.scheduling import SchedulingConfig
from consultbook.core.exceptions import ValidationError
from consultbook.scheduling.types import AvailabilityConfig, AvailabilityDraft


def default_config(resource_id: str, settings: SchedulingConfig) -> AvailabilityConfig:
    """Configuration used for a resource that has never saved one."""
    return AvailabilityConfig(
        resource_id=resource_id,
        start_time=settings.default_start_time,
        end_time=settings.default_end_time,
        slot_duration_minutes=settings.default_slot_minutes,
        closed_weekdays=frozenset(settings.default_closed_weekdays),
        is_default=True,
    )


def validate_draft(
    draft: AvailabilityDraft,
    *,
    allowed_slot_minutes: AbstractSet[int],
    today: _dt.date,
) -> List[str]:
    """Validate a draft; return soft warnings.

    Raises ValidationError listing every hard error in details["errors"], so
    the operator can fix the form in one pass. Closed dates earlier than
    ``today`` are only a warning.
    """
    errors: List[dict] = []

    def _error(field_name: str, message: str) -> None:
        errors.append({"field": field_name, "message": message})

    aware = [
        name
        for name in ("start_time", "end_time", "break_start", "break_end")
        if getattr(draft, name) is not None and getattr(draft, name).tzinfo is not None
    ]
    if aware:
        for name in aware:
            _error(name, f"{name} must be a local time without a UTC offset")
        raise ValidationError("Invalid availability configuration", details={"errors": errors})

    if draft.start_time >= draft.end_time:
        _error("end_time", "end_time must be after start_time")

    if draft.slot_duration_minutes not in allowed_slot_minutes:
        _error(
            "slot_duration_minutes",
            f"slot_duration_minutes must be one of {sorted(allowed_slot_minutes)}",
        )

    if (draft.break_start is None) != (draft.break_end is None):
        _error("break_end", "break_start and break_end must be set together")
    elif draft.break_start is not None and draft.break_end is not None:
        if draft.break_start >= draft.break_end:
            _error("break_end", "break_end must be after break_start")
        if draft.break_start < draft.start_time or draft.break_end > draft.end_time:
            _error("break_start", "break must lie within the operating hours")

    bad_days = sorted(d for d in draft.closed_weekdays if not 0 <= d <= 6)
    if bad_days:
        _error("closed_weekdays", f"weekday ordinals must be 0-6 (0 = Sunday), got {bad_days}")

    if errors:
        raise ValidationError("Invalid availability configuration", details={"errors": errors})

    warnings: List[str] = []
    past = sorted(d for d in draft.closed_dates if d < today)
    if past:
        warnings.append(
            "closed_dates in the past have no effect: "
            + ", ".join(d.isoformat() for d in past)
        )
    return warnings
