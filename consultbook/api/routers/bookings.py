"""Bookings API: request a slot, list, look up, and transition bookings."""

import datetime as _dt
import os
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from consultbook.api.dependencies import (
    Actor,
    get_actor,
    get_booking_service,
    get_lifecycle_service,
)
from consultbook.api.schemas.bookings import (
    BookingCreate,
    BookingResponse,
    BookingSummaryResponse,
    TransitionRequest,
    to_booking_response,
)
from consultbook.core.exceptions import ForbiddenError
from consultbook.scheduling.types import BookingStatus
from consultbook.services import BookingService, LifecycleService

router = APIRouter(tags=["bookings"])

limiter = Limiter(key_func=get_remote_address)
_BOOKING_RATE_LIMIT = os.environ.get("BOOKING_RATE_LIMIT", "30/minute")


@router.post(
    "/resources/{resource_id}/bookings",
    response_model=BookingResponse,
    status_code=201,
)
@limiter.limit(_BOOKING_RATE_LIMIT)
async def request_booking(
    request: Request,
    resource_id: str,
    body: BookingCreate,
    actor: Actor = Depends(get_actor),
    svc: BookingService = Depends(get_booking_service),
):
    """Claim a slot. 409 SLOT_TAKEN / SLOT_INVALID both mean: pick another slot."""
    booking = await svc.request_booking(
        resource_id,
        body.date,
        body.time.replace(second=0, microsecond=0),
        actor.actor_id,
        body.metadata(),
    )
    return to_booking_response(booking)


@router.get("/resources/{resource_id}/bookings", response_model=List[BookingResponse])
async def list_bookings(
    resource_id: str,
    date_from: Optional[_dt.date] = Query(default=None),
    date_to: Optional[_dt.date] = Query(default=None),
    status: Optional[BookingStatus] = Query(default=None),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    svc: BookingService = Depends(get_booking_service),
):
    await actor.require_operator(resource_id)
    items = await svc.list_bookings(
        resource_id, date_from=date_from, date_to=date_to, status=status, skip=skip, limit=limit,
    )
    return [to_booking_response(b) for b in items]


@router.get("/resources/{resource_id}/bookings/summary", response_model=BookingSummaryResponse)
async def booking_summary(
    resource_id: str,
    actor: Actor = Depends(get_actor),
    svc: BookingService = Depends(get_booking_service),
):
    await actor.require_operator(resource_id)
    return BookingSummaryResponse(resource_id=resource_id, counts=await svc.count_by_status(resource_id))


@router.get("/resources/{resource_id}/schedule", response_model=List[BookingResponse])
async def day_schedule(
    resource_id: str,
    date: _dt.date = Query(...),
    actor: Actor = Depends(get_actor),
    svc: BookingService = Depends(get_booking_service),
):
    """Active bookings for one day in slot order."""
    await actor.require_operator(resource_id)
    return [to_booking_response(b) for b in await svc.day_schedule(resource_id, date)]


@router.get("/requesters/{requester_id}/bookings", response_model=List[BookingResponse])
async def list_requester_bookings(
    requester_id: str,
    status: Optional[BookingStatus] = Query(default=None),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    svc: BookingService = Depends(get_booking_service),
):
    if actor.actor_id != requester_id:
        raise ForbiddenError("Requesters may only list their own bookings")
    items = await svc.list_for_requester(requester_id, status=status, skip=skip, limit=limit)
    return [to_booking_response(b) for b in items]


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: BookingService = Depends(get_booking_service),
):
    booking = await svc.get_booking(booking_id)
    if booking.requester_id != actor.actor_id:
        await actor.require_operator(booking.resource_id)
    return to_booking_response(booking)


@router.post("/bookings/{booking_id}/transition", response_model=BookingResponse)
async def transition_booking(
    booking_id: uuid.UUID,
    body: TransitionRequest,
    actor: Actor = Depends(get_actor),
    svc: LifecycleService = Depends(get_lifecycle_service),
):
    """Apply one lifecycle edge (confirm, complete, cancel)."""
    booking = await svc.transition(booking_id, body.status, actor.actor_id)
    return to_booking_response(booking)
