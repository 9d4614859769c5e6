"""Booking repository: slot occupancy queries, guarded insert, compare-and-set status."""
from __future__ import annotations

import datetime as _dt
from typing import Any, Dict, List, Optional, Set
from uuid import UUID

from sqlalchemy import func, select, update as sa_update
from sqlalchemy.exc import IntegrityError

from consultbook.infra.database.models.booking import Booking
from consultbook.infra.database.repositories.base import BaseRepository
from consultbook.scheduling.types import ACTIVE_STATUSES, BookingStatus

_ACTIVE = sorted(s.value for s in ACTIVE_STATUSES)


class BookingRepository(BaseRepository[Booking]):
    model = Booking

    async def find_active(
        self,
        resource_id: str,
        booking_date: _dt.date,
        booking_time: _dt.time,
    ) -> Optional[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.resource_id == resource_id)
            .where(Booking.booking_date == booking_date)
            .where(Booking.booking_time == booking_time)
            .where(Booking.status.in_(_ACTIVE))
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def booked_times(self, resource_id: str, booking_date: _dt.date) -> Set[_dt.time]:
        stmt = (
            select(Booking.booking_time)
            .where(Booking.resource_id == resource_id)
            .where(Booking.booking_date == booking_date)
            .where(Booking.status.in_(_ACTIVE))
        )
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def get_by_idempotency_key(
        self, resource_id: str, requester_id: str, key: str
    ) -> Optional[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.resource_id == resource_id)
            .where(Booking.requester_id == requester_id)
            .where(Booking.idempotency_key == key)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def claim(self, data: Dict[str, Any]) -> Optional[Booking]:
        """Insert a booking inside a savepoint.

        Returns None when a unique index rejects the row (the slot, or the
        idempotency key, is already held), leaving the outer transaction usable.
        """
        instance = Booking(**data)
        try:
            async with self.session.begin_nested():
                self.session.add(instance)
                await self.session.flush()
        except IntegrityError:
            return None
        await self.session.refresh(instance)
        return instance

    async def transition_status(
        self,
        id: UUID,
        current: BookingStatus,
        target: BookingStatus,
    ) -> Optional[Booking]:
        """Move ``id`` from ``current`` to ``target`` only if it is still ``current``.

        Returns None when another writer changed the status first.
        """
        stmt = (
            sa_update(Booking)
            .where(Booking.id == id)
            .where(Booking.status == current.value)
            .values(status=target.value, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.session.get(Booking, id, populate_existing=True)

    async def list_for_resource(
        self,
        resource_id: str,
        *,
        date_from: Optional[_dt.date] = None,
        date_to: Optional[_dt.date] = None,
        status: Optional[BookingStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Booking]:
        stmt = select(Booking).where(Booking.resource_id == resource_id)
        if date_from is not None:
            stmt = stmt.where(Booking.booking_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Booking.booking_date <= date_to)
        if status is not None:
            stmt = stmt.where(Booking.status == status.value)
        stmt = (
            stmt.order_by(Booking.booking_date, Booking.booking_time, Booking.created_at)
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_requester(
        self,
        requester_id: str,
        *,
        status: Optional[BookingStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Booking]:
        stmt = select(Booking).where(Booking.requester_id == requester_id)
        if status is not None:
            stmt = stmt.where(Booking.status == status.value)
        stmt = stmt.order_by(Booking.created_at.desc()).offset(skip).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_active(
        self,
        resource_id: str,
        *,
        date_from: _dt.date,
        date_to: Optional[_dt.date] = None,
    ) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.resource_id == resource_id)
            .where(Booking.booking_date >= date_from)
            .where(Booking.status.in_(_ACTIVE))
        )
        if date_to is not None:
            stmt = stmt.where(Booking.booking_date <= date_to)
        stmt = stmt.order_by(Booking.booking_date, Booking.booking_time)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_status(self, resource_id: str) -> Dict[str, int]:
        stmt = (
            select(Booking.status, func.count())
            .where(Booking.resource_id == resource_id)
            .group_by(Booking.status)
        )
        result = await self.session.execute(stmt)
        counts = {s.value: 0 for s in BookingStatus}
        for status, n in result.all():
            counts[status] = n
        return counts
