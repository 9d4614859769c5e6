"""Repositories for the consultbook database."""
from consultbook.infra.database.repositories.availability_config import (
    AvailabilityConfigRepository,
)
from consultbook.infra.database.repositories.base import BaseRepository
from consultbook.infra.database.repositories.booking import BookingRepository

__all__ = [
    "BaseRepository",
    "AvailabilityConfigRepository",
    "BookingRepository",
]
