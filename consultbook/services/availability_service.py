"""AvailabilityService: availability config store, slot listing and reconciliation."""
from __future__ import annotations

import datetime as _dt
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from consultbook.config.scheduling import SchedulingConfig
from consultbook.infra.database.models.availability_config import AvailabilityConfigModel
from consultbook.infra.database.repositories import AvailabilityConfigRepository, BookingRepository
from consultbook.scheduling.slots import generate_slots, reconciliation_reasons
from consultbook.scheduling.types import (
    AvailabilityConfig,
    AvailabilityDraft,
    BookingStatus,
    Clock,
    ReconciliationItem,
    Slot,
)
from consultbook.scheduling.validation import default_config, validate_draft

logger = logging.getLogger(__name__)


def _to_domain(row: AvailabilityConfigModel) -> AvailabilityConfig:
    return AvailabilityConfig(
        resource_id=row.resource_id,
        start_time=row.start_time,
        end_time=row.end_time,
        slot_duration_minutes=row.slot_duration_minutes,
        break_start=row.break_start,
        break_end=row.break_end,
        closed_weekdays=frozenset(row.closed_weekdays or []),
        closed_dates=frozenset(_dt.date.fromisoformat(d) for d in (row.closed_dates or [])),
    )


class AvailabilityService:
    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[SchedulingConfig] = None,
        clock: Clock = _dt.datetime.now,
    ) -> None:
        self._config_repo = AvailabilityConfigRepository(session)
        self._booking_repo = BookingRepository(session)
        self._settings = settings or SchedulingConfig()
        self._clock = clock

    async def get_config(self, resource_id: str) -> AvailabilityConfig:
        """Return the resource's configuration snapshot, or the default if none was saved."""
        row = await self._config_repo.get_for_resource(resource_id)
        if row is None:
            return default_config(resource_id, self._settings)
        return _to_domain(row)

    async def save_config(self, resource_id: str, draft: AvailabilityDraft) -> AvailabilityConfig:
        """Validate and persist a configuration; nothing is written if validation fails.

        Existing bookings are left untouched even if the new hours no longer
        offer their slot; see list_reconciliation().
        """
        warnings = validate_draft(
            draft,
            allowed_slot_minutes=self._settings.allowed_slot_minutes,
            today=self._clock().date(),
        )
        for warning in warnings:
            logger.warning(
                "AvailabilityService: %s", warning, extra={"resource_id": resource_id}
            )

        row = await self._config_repo.upsert(
            resource_id,
            {
                "start_time": draft.start_time,
                "end_time": draft.end_time,
                "slot_duration_minutes": draft.slot_duration_minutes,
                "break_start": draft.break_start,
                "break_end": draft.break_end,
                "closed_weekdays": sorted(draft.closed_weekdays),
                "closed_dates": sorted(d.isoformat() for d in draft.closed_dates),
            },
        )
        logger.info(
            "AvailabilityService: saved config for %s (%s-%s, %d min)",
            resource_id, draft.start_time, draft.end_time, draft.slot_duration_minutes,
            extra={"resource_id": resource_id},
        )
        return _to_domain(row)

    async def get_slots(self, resource_id: str, day: _dt.date) -> List[Slot]:
        """Slots for one day against a fresh read of the active bookings."""
        config = await self.get_config(resource_id)
        booked = await self._booking_repo.booked_times(resource_id, day)
        return generate_slots(config, day, booked, self._clock())

    async def list_reconciliation(
        self,
        resource_id: str,
        from_date: Optional[_dt.date] = None,
    ) -> List[ReconciliationItem]:
        """Active bookings from ``from_date`` (default today) that the current
        configuration would no longer offer. Read-only."""
        config = await self.get_config(resource_id)
        start = from_date or self._clock().date()
        items: List[ReconciliationItem] = []
        for booking in await self._booking_repo.list_active(resource_id, date_from=start):
            reasons = reconciliation_reasons(config, booking.booking_date, booking.booking_time)
            if reasons:
                items.append(
                    ReconciliationItem(
                        booking_id=booking.id,
                        date=booking.booking_date,
                        time=booking.booking_time,
                        status=BookingStatus(booking.status),
                        reasons=tuple(reasons),
                    )
                )
        return items
