"""Pydantic schemas for bookings."""
from __future__ import annotations

import datetime as _dt
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from consultbook.scheduling.types import BookingMetadata, BookingStatus


class BookingCreate(BaseModel):
    date: _dt.date
    time: _dt.time
    subject_name: str = Field(..., min_length=1, max_length=255)
    subject_grade: Optional[str] = Field(None, max_length=32)
    note: Optional[str] = Field(None, max_length=2000)
    idempotency_key: Optional[str] = Field(
        None,
        max_length=128,
        description="Resend the same key after a timeout to get the original booking back.",
    )

    @field_validator("time")
    @classmethod
    def _civil_time(cls, v: _dt.time) -> _dt.time:
        if v.tzinfo is not None:
            raise ValueError("time is a local wall-clock time; drop the UTC offset")
        return v

    def metadata(self) -> BookingMetadata:
        return BookingMetadata(
            subject_name=self.subject_name,
            subject_grade=self.subject_grade,
            note=self.note,
            idempotency_key=self.idempotency_key,
        )


class BookingResponse(BaseModel):
    id: str
    resource_id: str
    date: _dt.date
    time: str
    requester_id: str
    subject_name: str
    subject_grade: Optional[str] = None
    note: Optional[str] = None
    status: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class TransitionRequest(BaseModel):
    status: BookingStatus


class BookingSummaryResponse(BaseModel):
    resource_id: str
    counts: Dict[str, int]


def to_booking_response(b) -> BookingResponse:
    return BookingResponse(
        id=str(b.id),
        resource_id=b.resource_id,
        date=b.booking_date,
        time=b.booking_time.strftime("%H:%M"),
        requester_id=b.requester_id,
        subject_name=b.subject_name,
        subject_grade=b.subject_grade,
        note=b.note,
        status=getattr(b.status, "value", b.status),
        created_at=b.created_at.isoformat() if b.created_at else None,
        updated_at=b.updated_at.isoformat() if b.updated_at else None,
    )
