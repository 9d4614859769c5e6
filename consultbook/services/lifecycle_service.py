"""LifecycleService: apply operator/requester status transitions to bookings."""
from __future__ import annotations

import logging
from typing import Optional, Set, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from consultbook.core.exceptions import (
    InvalidTransitionError,
    NotAuthorizedError,
    NotFoundError,
    ValidationError,
)
from consultbook.infra.database.models.booking import Booking
from consultbook.infra.database.repositories import BookingRepository
from consultbook.scheduling.events import BOOKING_STATUS_CHANGED, BookingEvent, BookingEventBus
from consultbook.scheduling.lifecycle import ActorRole, check_transition
from consultbook.scheduling.types import BookingStatus
from consultbook.services.authorization import OperatorDirectory

logger = logging.getLogger(__name__)


def _parse_status(value: Union[str, BookingStatus]) -> BookingStatus:
    try:
        return BookingStatus(value)
    except ValueError:
        raise ValidationError(
            f"Unknown booking status {value!r}",
            details={"allowed": [s.value for s in BookingStatus]},
        ) from None


class LifecycleService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        operators: OperatorDirectory,
        events: Optional[BookingEventBus] = None,
    ) -> None:
        self._session = session
        self._repo = BookingRepository(session)
        self._operators = operators
        self._events = events or BookingEventBus()

    async def _roles_for(self, actor_id: str, booking: Booking) -> Set[ActorRole]:
        roles: Set[ActorRole] = set()
        if await self._operators.is_operator(actor_id, booking.resource_id):
            roles.add(ActorRole.OPERATOR)
        if actor_id == booking.requester_id:
            roles.add(ActorRole.REQUESTER)
        return roles

    async def transition(
        self,
        booking_id: UUID,
        target: Union[str, BookingStatus],
        actor_id: str,
    ) -> Booking:
        """Move a booking along one lifecycle edge.

        Raises NotFoundError, InvalidTransitionError (not an edge, terminal
        state, or the status changed underneath us) or NotAuthorizedError.
        Cancelling frees the slot for new requests.
        """
        target_status = _parse_status(target)
        booking = await self._repo.get_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found", details={"booking_id": str(booking_id)})

        current = BookingStatus(booking.status)
        log_ctx = {
            "booking_id": str(booking_id),
            "resource_id": booking.resource_id,
            "actor_id": actor_id,
        }
        roles = await self._roles_for(actor_id, booking)
        try:
            check_transition(current, target_status, roles)
        except (InvalidTransitionError, NotAuthorizedError) as exc:
            logger.info(
                "LifecycleService: rejected %s -> %s on %s: %s",
                current.value, target_status.value, booking_id, exc.code,
                extra=log_ctx,
            )
            raise

        updated = await self._repo.transition_status(booking.id, current, target_status)
        if updated is None:
            logger.info(
                "LifecycleService: %s changed concurrently, %s -> %s not applied",
                booking_id, current.value, target_status.value,
                extra=log_ctx,
            )
            raise InvalidTransitionError(
                "Booking status changed while processing; reload and try again",
                details={
                    "from": current.value,
                    "to": target_status.value,
                    "reason": "concurrent_update",
                },
            )
        await self._session.commit()

        logger.info(
            "LifecycleService: %s %s -> %s by %s",
            booking_id, current.value, target_status.value, actor_id,
            extra=log_ctx,
        )
        self._events.publish(
            BookingEvent.from_booking(
                BOOKING_STATUS_CHANGED,
                updated,
                previous_status=current.value,
                actor_id=actor_id,
            )
        )
        return updated
