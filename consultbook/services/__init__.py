"""Service layer: availability config store, booking ledger, lifecycle manager, notifications."""
from consultbook.services.authorization import OperatorDirectory, StaticOperatorDirectory
from consultbook.services.availability_service import AvailabilityService
from consultbook.services.booking_service import BookingService
from consultbook.services.booking_webhook_service import BookingWebhookNotifier
from consultbook.services.lifecycle_service import LifecycleService

__all__ = [
    "AvailabilityService",
    "BookingService",
    "LifecycleService",
    "BookingWebhookNotifier",
    "OperatorDirectory",
    "StaticOperatorDirectory",
]
