"""
consultbook.infra.database.models – SQLAlchemy 2.0 ORM models.

Exports Base, mixins, and all model classes.
"""
from consultbook.infra.database.models.availability_config import AvailabilityConfigModel
from consultbook.infra.database.models.base import Base, TimestampMixin, _uuid_pk
from consultbook.infra.database.models.booking import Booking

__all__ = [
    "Base",
    "TimestampMixin",
    "_uuid_pk",
    "AvailabilityConfigModel",
    "Booking",
]
