"""Booking ORM model."""
from __future__ import annotations

import datetime as _dt
import uuid
from typing import Optional

from sqlalchemy import CheckConstraint, Date, Index, String, Text, Time, text
from sqlalchemy.orm import Mapped, mapped_column

from consultbook.infra.database.models.base import Base, TimestampMixin, _uuid_pk
from consultbook.scheduling.types import ACTIVE_STATUSES, BookingStatus


def _sql_in(statuses) -> str:
    return ", ".join(f"'{s.value}'" for s in sorted(statuses, key=lambda s: s.value))


class Booking(Base, TimestampMixin):
    """A consultation booking on one resource's slot.

    Never deleted: cancellation is a status. The partial unique index lets at
    most one pending/confirmed booking hold a (resource, date, time).
    """

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint(
            f"status IN ({_sql_in(BookingStatus)})",
            name="ck_bookings_status",
        ),
        Index(
            "uq_bookings_active_slot",
            "resource_id",
            "booking_date",
            "booking_time",
            unique=True,
            postgresql_where=text(f"status IN ({_sql_in(ACTIVE_STATUSES)})"),
        ),
        Index(
            "uq_bookings_idempotency_key",
            "resource_id",
            "requester_id",
            "idempotency_key",
            unique=True,
            postgresql_where=text("idempotency_key IS NOT NULL"),
        ),
        Index("ix_bookings_resource_date", "resource_id", "booking_date"),
        Index("ix_bookings_requester_id", "requester_id"),
    )

    id: Mapped[uuid.UUID] = _uuid_pk()
    resource_id: Mapped[str] = mapped_column(String(64), nullable=False)
    booking_date: Mapped[_dt.date] = mapped_column(Date, nullable=False)
    booking_time: Mapped[_dt.time] = mapped_column(Time, nullable=False)
    requester_id: Mapped[str] = mapped_column(String(128), nullable=False)

    # pending | confirmed | completed | cancelled
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=BookingStatus.PENDING.value
    )

    subject_name: Mapped[str] = mapped_column(Text, nullable=False)
    subject_grade: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Client-supplied key, unique per (resource, requester); a retried request
    # for the same slot returns the original booking
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
