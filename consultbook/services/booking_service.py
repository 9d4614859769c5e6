"""BookingService: the booking ledger and its conflict guard.

request_booking() is the only way a booking is created. For a given
(resource, date) it runs under one asyncio.Lock from SlotLockRegistry, and
the insert itself is backed by the partial unique index on active bookings,
so two concurrent requests for the same slot can never both succeed, whether
they race inside one process or across several.
"""
from __future__ import annotations

import asyncio
import datetime as _dt
import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from consultbook.config.scheduling import SchedulingConfig
from consultbook.core.exceptions import (
    ConflictError,
    NotFoundError,
    SlotInvalidError,
    SlotTakenError,
    StorageError,
    ValidationError,
)
from consultbook.infra.database.models.booking import Booking
from consultbook.infra.database.repositories import BookingRepository
from consultbook.scheduling.events import BOOKING_CREATED, BookingEvent, BookingEventBus
from consultbook.scheduling.locks import SlotLockRegistry
from consultbook.scheduling.slots import check_bookable
from consultbook.scheduling.types import BookingMetadata, BookingStatus, Clock
from consultbook.services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

_RETRY_BACKOFF_SECONDS = 0.05


class BookingService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        locks: SlotLockRegistry,
        events: Optional[BookingEventBus] = None,
        settings: Optional[SchedulingConfig] = None,
        clock: Clock = _dt.datetime.now,
    ) -> None:
        self._session = session
        self._repo = BookingRepository(session)
        self._settings = settings or SchedulingConfig()
        self._availability = AvailabilityService(session, self._settings, clock)
        self._locks = locks
        self._events = events or BookingEventBus()
        self._clock = clock

    async def request_booking(
        self,
        resource_id: str,
        booking_date: _dt.date,
        booking_time: _dt.time,
        requester_id: str,
        metadata: BookingMetadata,
    ) -> Booking:
        """Claim one slot and return the new pending booking.

        Raises:
            ValidationError: subject_name is blank.
            SlotInvalidError: the slot is closed, off-grid, in the break or past
                under the configuration read inside the critical section.
            SlotTakenError: an active booking already holds the slot.
            ConflictError: the requester already used idempotency_key for a
                different slot.

        A repeated call by the same requester with the same idempotency_key
        and slot returns the original booking instead of inserting again.
        """
        if not (metadata.subject_name or "").strip():
            raise ValidationError(
                "subject_name is required",
                details={"errors": [{"field": "subject_name", "message": "must not be blank"}]},
            )
        log_ctx = {"resource_id": resource_id, "requester_id": requester_id}
        slot_desc = f"{resource_id} {booking_date.isoformat()} {booking_time.strftime('%H:%M')}"

        async with self._locks.hold(resource_id, booking_date):
            if metadata.idempotency_key:
                replay = await self._replay(
                    resource_id, booking_date, booking_time, requester_id,
                    metadata.idempotency_key, slot_desc, log_ctx,
                )
                if replay is not None:
                    return replay

            config = await self._availability.get_config(resource_id)
            try:
                check_bookable(config, booking_date, booking_time, self._clock())
            except SlotInvalidError as exc:
                logger.info(
                    "BookingService: slot invalid %s (%s)", slot_desc, exc.details.get("reason"),
                    extra=log_ctx,
                )
                raise

            holder = await self._repo.find_active(resource_id, booking_date, booking_time)
            if holder is not None:
                raise self._slot_taken(slot_desc, log_ctx, holder_id=holder.id)

            booking = await self._claim_with_retry(
                {
                    "resource_id": resource_id,
                    "booking_date": booking_date,
                    "booking_time": booking_time,
                    "requester_id": requester_id,
                    "subject_name": metadata.subject_name.strip(),
                    "subject_grade": metadata.subject_grade,
                    "note": metadata.note,
                    "status": BookingStatus.PENDING.value,
                    "idempotency_key": metadata.idempotency_key,
                },
                slot_desc,
            )
            if booking is None:
                # Unique index rejected the row: another process won the slot,
                # or a concurrent retry with the same key landed first.
                if metadata.idempotency_key:
                    replay = await self._replay(
                        resource_id, booking_date, booking_time, requester_id,
                        metadata.idempotency_key, slot_desc, log_ctx,
                    )
                    if replay is not None:
                        return replay
                raise self._slot_taken(slot_desc, log_ctx, holder_id=None)

            await self._session.commit()

        logger.info(
            "BookingService: created booking %s for %s", booking.id, slot_desc,
            extra={**log_ctx, "booking_id": str(booking.id)},
        )
        self._events.publish(BookingEvent.from_booking(BOOKING_CREATED, booking))
        return booking

    async def _replay(
        self,
        resource_id: str,
        booking_date: _dt.date,
        booking_time: _dt.time,
        requester_id: str,
        key: str,
        slot_desc: str,
        log_ctx: dict,
    ) -> Optional[Booking]:
        """The requester's earlier booking under ``key``, if it claimed this same slot."""
        previous = await self._repo.get_by_idempotency_key(resource_id, requester_id, key)
        if previous is None:
            return None
        if (previous.booking_date, previous.booking_time) != (booking_date, booking_time):
            logger.info(
                "BookingService: idempotency key reused for %s (key held by %s)", slot_desc, previous.id,
                extra={**log_ctx, "booking_id": str(previous.id)},
            )
            raise ConflictError(
                "Idempotency key was already used for a different request",
                code="IDEMPOTENCY_KEY_REUSED",
                details={"idempotency_key": key, "slot": slot_desc},
            )
        logger.info(
            "BookingService: idempotent replay of %s for %s", previous.id, slot_desc,
            extra={**log_ctx, "booking_id": str(previous.id)},
        )
        return previous

    @staticmethod
    def _slot_taken(slot_desc: str, log_ctx: dict, *, holder_id: Optional[UUID]) -> SlotTakenError:
        logger.warning(
            "BookingService: slot taken %s (holder=%s)", slot_desc, holder_id or "concurrent insert",
            extra=log_ctx,
        )
        return SlotTakenError(
            "This slot has just been booked; please pick another time",
            details={"slot": slot_desc},
        )

    async def _claim_with_retry(self, data: dict, slot_desc: str) -> Optional[Booking]:
        """Insert, retrying transient storage failures a bounded number of times.

        Uniqueness conflicts are not retried; they come back as None.
        """
        attempts = self._settings.max_write_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await self._repo.claim(data)
            except OperationalError as exc:
                if attempt == attempts:
                    raise StorageError(
                        "Could not store the booking, please try again",
                        details={"slot": slot_desc, "attempts": attempts},
                        cause=exc,
                    ) from exc
                logger.warning(
                    "BookingService: transient storage failure for %s (attempt %d/%d): %s",
                    slot_desc, attempt, attempts, exc,
                )
                await asyncio.sleep(_RETRY_BACKOFF_SECONDS * attempt)
        return None

    async def get_booking(self, id: UUID) -> Booking:
        booking = await self._repo.get_by_id(id)
        if booking is None:
            raise NotFoundError("Booking not found", details={"booking_id": str(id)})
        return booking

    async def list_bookings(
        self,
        resource_id: str,
        *,
        date_from: Optional[_dt.date] = None,
        date_to: Optional[_dt.date] = None,
        status: Optional[BookingStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Booking]:
        if date_from and date_to and date_from > date_to:
            raise ValidationError(
                "date_from must not be after date_to",
                details={"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
            )
        return await self._repo.list_for_resource(
            resource_id,
            date_from=date_from,
            date_to=date_to,
            status=status,
            skip=skip,
            limit=limit,
        )

    async def list_for_requester(
        self,
        requester_id: str,
        *,
        status: Optional[BookingStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Booking]:
        return await self._repo.list_for_requester(requester_id, status=status, skip=skip, limit=limit)

    async def day_schedule(self, resource_id: str, day: _dt.date) -> List[Booking]:
        """Active bookings on one day, in slot order."""
        return await self._repo.list_active(resource_id, date_from=day, date_to=day)

    async def count_by_status(self, resource_id: str) -> Dict[str, int]:
        return await self._repo.count_by_status(resource_id)
