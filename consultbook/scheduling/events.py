"""Booking lifecycle events for the surrounding system (notifications, webhooks).

publish() never waits for delivery: each subscriber runs as its own task, and
a failing subscriber is logged without touching the booking operation that
emitted the event.
"""
from __future__ import annotations

import asyncio
import datetime as _dt
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

BOOKING_CREATED = "booking.created"
BOOKING_STATUS_CHANGED = "booking.status_changed"


@dataclass(frozen=True)
class BookingEvent:
    name: str
    booking_id: str
    resource_id: str
    status: str
    previous_status: Optional[str] = None
    actor_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_booking(
        cls,
        name: str,
        booking: Any,
        *,
        previous_status: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> BookingEvent:
        return cls(
            name=name,
            booking_id=str(booking.id),
            resource_id=booking.resource_id,
            status=_status_value(booking.status),
            previous_status=previous_status,
            actor_id=actor_id,
            data=booking_payload(booking),
        )


def _status_value(status: Any) -> str:
    return getattr(status, "value", status)


def _iso(value: Optional[Any]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def booking_payload(booking: Any) -> Dict[str, Any]:
    """Flat JSON-safe dict of a booking's persisted fields."""
    booking_time: Optional[_dt.time] = booking.booking_time
    return {
        "id": str(booking.id),
        "resource_id": booking.resource_id,
        "date": _iso(booking.booking_date),
        "time": booking_time.strftime("%H:%M") if booking_time is not None else None,
        "requester_id": booking.requester_id,
        "subject_name": booking.subject_name,
        "subject_grade": booking.subject_grade,
        "note": booking.note,
        "status": _status_value(booking.status),
        "created_at": _iso(booking.created_at),
        "updated_at": _iso(booking.updated_at),
    }


Subscriber = Callable[[BookingEvent], Awaitable[None]]


class BookingEventBus:
    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []
        # Strong references: the loop only keeps weak ones to running tasks
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def publish(self, event: BookingEvent) -> None:
        """Hand ``event`` to every subscriber in the background and return at once."""
        for subscriber in list(self._subscribers):
            task = asyncio.create_task(subscriber(event))
            self._pending.add(task)
            task.add_done_callback(
                lambda done, sub=subscriber: self._finished(done, sub, event)
            )

    def _finished(self, task: asyncio.Task, subscriber: Subscriber, event: BookingEvent) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning(
                "BookingEventBus: delivery of %s to %r was cancelled", event.name, subscriber,
                extra={"booking_id": event.booking_id, "event": event.name},
            )
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(
                "BookingEventBus: subscriber %r failed for %s: %s",
                subscriber, event.name, exc,
                extra={"booking_id": event.booking_id, "event": event.name},
            )

    async def drain(self) -> None:
        """Wait for deliveries still in flight (shutdown, tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
