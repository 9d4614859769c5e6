"""AvailabilityConfigModel ORM: one scheduling configuration per resource."""
from __future__ import annotations

import datetime as _dt
from typing import List, Optional

from sqlalchemy import Integer, String, Time
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from consultbook.infra.database.models.base import Base, TimestampMixin


class AvailabilityConfigModel(Base, TimestampMixin):
    """
    Operating hours, slot size, break window and closures for one resource.
    closed_weekdays: ordinals 0-6 with 0 = Sunday.
    closed_dates: ISO "YYYY-MM-DD" strings.
    """

    __tablename__ = "availability_configs"

    resource_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    start_time: Mapped[_dt.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[_dt.time] = mapped_column(Time, nullable=False)
    slot_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    break_start: Mapped[Optional[_dt.time]] = mapped_column(Time, nullable=True)
    break_end: Mapped[Optional[_dt.time]] = mapped_column(Time, nullable=True)
    closed_weekdays: Mapped[List[int]] = mapped_column(JSONB, nullable=False, default=list)
    closed_dates: Mapped[List[str]] = mapped_column(JSONB, nullable=False, default=list)
