"""Pydantic schemas for availability config and slots."""
from __future__ import annotations

import datetime as _dt
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from consultbook.scheduling.types import (
    AvailabilityConfig,
    AvailabilityDraft,
    ReconciliationItem,
    Slot,
)


def _hhmm(t: Optional[_dt.time]) -> Optional[str]:
    return t.strftime("%H:%M") if t is not None else None


class AvailabilityConfigBody(BaseModel):
    start_time: _dt.time
    end_time: _dt.time
    slot_duration_minutes: int = Field(..., gt=0)
    break_start: Optional[_dt.time] = None
    break_end: Optional[_dt.time] = None
    closed_weekdays: List[int] = Field(default_factory=list, description="0 = Sunday ... 6 = Saturday")
    closed_dates: List[_dt.date] = Field(default_factory=list)

    @field_validator("start_time", "end_time", "break_start", "break_end")
    @classmethod
    def _civil_time(cls, v: Optional[_dt.time]) -> Optional[_dt.time]:
        if v is not None and v.tzinfo is not None:
            raise ValueError("times are local wall-clock times; drop the UTC offset")
        return v

    def to_draft(self) -> AvailabilityDraft:
        return AvailabilityDraft(
            start_time=self.start_time.replace(second=0, microsecond=0),
            end_time=self.end_time.replace(second=0, microsecond=0),
            slot_duration_minutes=self.slot_duration_minutes,
            break_start=self.break_start.replace(second=0, microsecond=0) if self.break_start else None,
            break_end=self.break_end.replace(second=0, microsecond=0) if self.break_end else None,
            closed_weekdays=frozenset(self.closed_weekdays),
            closed_dates=frozenset(self.closed_dates),
        )


class AvailabilityConfigResponse(BaseModel):
    resource_id: str
    start_time: str
    end_time: str
    slot_duration_minutes: int
    break_start: Optional[str] = None
    break_end: Optional[str] = None
    closed_weekdays: List[int]
    closed_dates: List[_dt.date]
    is_default: bool = False

    @classmethod
    def from_config(cls, c: AvailabilityConfig) -> AvailabilityConfigResponse:
        return cls(
            resource_id=c.resource_id,
            start_time=_hhmm(c.start_time),
            end_time=_hhmm(c.end_time),
            slot_duration_minutes=c.slot_duration_minutes,
            break_start=_hhmm(c.break_start),
            break_end=_hhmm(c.break_end),
            closed_weekdays=sorted(c.closed_weekdays),
            closed_dates=sorted(c.closed_dates),
            is_default=c.is_default,
        )


class SlotResponse(BaseModel):
    date: _dt.date
    time: str
    available: bool
    reason: Optional[str] = None

    @classmethod
    def from_slot(cls, s: Slot) -> SlotResponse:
        return cls(
            date=s.date,
            time=_hhmm(s.time),
            available=s.available,
            reason=s.reason.value if s.reason else None,
        )


class ReconciliationResponse(BaseModel):
    booking_id: str
    date: _dt.date
    time: str
    status: str
    reasons: List[str]

    @classmethod
    def from_item(cls, item: ReconciliationItem) -> ReconciliationResponse:
        return cls(
            booking_id=str(item.booking_id),
            date=item.date,
            time=_hhmm(item.time),
            status=item.status.value,
            reasons=list(item.reasons),
        )
