"""Availability API: per-resource config, day slots, reconciliation."""
from __future__ import annotations

import datetime as _dt
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from consultbook.api.dependencies import Actor, get_actor, get_availability_service
from consultbook.api.schemas.availability import (
    AvailabilityConfigBody,
    AvailabilityConfigResponse,
    ReconciliationResponse,
    SlotResponse,
)
from consultbook.services import AvailabilityService

router = APIRouter(prefix="/resources", tags=["availability"])


@router.get("/{resource_id}/availability-config", response_model=AvailabilityConfigResponse)
async def get_availability_config(
    resource_id: str,
    svc: AvailabilityService = Depends(get_availability_service),
):
    """Current configuration; the documented default when none has been saved."""
    return AvailabilityConfigResponse.from_config(await svc.get_config(resource_id))


@router.put("/{resource_id}/availability-config", response_model=AvailabilityConfigResponse)
async def save_availability_config(
    resource_id: str,
    body: AvailabilityConfigBody,
    actor: Actor = Depends(get_actor),
    svc: AvailabilityService = Depends(get_availability_service),
):
    await actor.require_operator(resource_id)
    config = await svc.save_config(resource_id, body.to_draft())
    return AvailabilityConfigResponse.from_config(config)


@router.get("/{resource_id}/slots", response_model=List[SlotResponse])
async def list_slots(
    resource_id: str,
    date: _dt.date = Query(...),
    svc: AvailabilityService = Depends(get_availability_service),
):
    """Slots for one day. Empty on closed or past days."""
    return [SlotResponse.from_slot(s) for s in await svc.get_slots(resource_id, date)]


@router.get("/{resource_id}/reconciliation", response_model=List[ReconciliationResponse])
async def list_reconciliation(
    resource_id: str,
    from_date: Optional[_dt.date] = Query(default=None),
    actor: Actor = Depends(get_actor),
    svc: AvailabilityService = Depends(get_availability_service),
):
    """Active bookings the current hours no longer offer, for manual follow-up."""
    await actor.require_operator(resource_id)
    items = await svc.list_reconciliation(resource_id, from_date)
    return [ReconciliationResponse.from_item(i) for i in items]
