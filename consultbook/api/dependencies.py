"""FastAPI dependency providers."""
from __future__ import annotations

import datetime as _dt
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from consultbook.core.exceptions import ForbiddenError, UnauthorizedError
from consultbook.scheduling.types import Clock
from consultbook.services import (
    AvailabilityService,
    BookingService,
    LifecycleService,
    StaticOperatorDirectory,
)


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a transactional AsyncSession from the app-level session factory."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_clock(request: Request) -> Clock:
    return getattr(request.app.state, "clock", _dt.datetime.now)


@dataclass(frozen=True)
class Actor:
    """Caller identity as vouched for by the upstream auth gateway."""

    actor_id: str
    operators: StaticOperatorDirectory

    async def require_operator(self, resource_id: str) -> None:
        if not await self.operators.is_operator(self.actor_id, resource_id):
            raise ForbiddenError(
                "Only the resource's operator may do this",
                details={"resource_id": resource_id},
            )


def get_actor(
    x_actor_id: Optional[str] = Header(default=None),
    x_operator_of: Optional[str] = Header(default=None),
) -> Actor:
    actor_id = (x_actor_id or "").strip()
    if not actor_id:
        raise UnauthorizedError("X-Actor-Id header is required")
    resources = (x_operator_of or "").split(",")
    return Actor(actor_id=actor_id, operators=StaticOperatorDirectory(actor_id, resources))


def get_availability_service(
    request: Request,
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> AvailabilityService:
    return AvailabilityService(session, request.app.state.scheduling, clock)


def get_booking_service(
    request: Request,
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> BookingService:
    state = request.app.state
    return BookingService(
        session,
        locks=state.slot_locks,
        events=state.booking_events,
        settings=state.scheduling,
        clock=clock,
    )


def get_lifecycle_service(
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> LifecycleService:
    return LifecycleService(
        session,
        operators=actor.operators,
        events=request.app.state.booking_events,
    )
