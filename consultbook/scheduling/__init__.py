"""Scheduling domain: slot generation, config validation, lifecycle, locks, events.

Nothing in this package touches the database.
"""
from consultbook.scheduling.events import (
    BOOKING_CREATED,
    BOOKING_STATUS_CHANGED,
    BookingEvent,
    BookingEventBus,
)
from consultbook.scheduling.lifecycle import TRANSITIONS, ActorRole, check_transition
from consultbook.scheduling.locks import SlotLockRegistry
from consultbook.scheduling.slots import check_bookable, generate_slots, reconciliation_reasons
from consultbook.scheduling.types import (
    ACTIVE_STATUSES,
    AvailabilityConfig,
    AvailabilityDraft,
    BookingMetadata,
    BookingStatus,
    Clock,
    ReconciliationItem,
    Slot,
    SlotUnavailableReason,
)
from consultbook.scheduling.validation import default_config, validate_draft

__all__ = [
    "ACTIVE_STATUSES",
    "ActorRole",
    "AvailabilityConfig",
    "AvailabilityDraft",
    "BOOKING_CREATED",
    "BOOKING_STATUS_CHANGED",
    "BookingEvent",
    "BookingEventBus",
    "BookingMetadata",
    "BookingStatus",
    "Clock",
    "ReconciliationItem",
    "Slot",
    "SlotLockRegistry",
    "SlotUnavailableReason",
    "TRANSITIONS",
    "check_bookable",
    "check_transition",
    "default_config",
    "generate_slots",
    "reconciliation_reasons",
    "validate_draft",
]
