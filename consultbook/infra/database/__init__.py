"""
consultbook.infra.database – PostgreSQL async engine, session, models and repositories.

Public API
──────────
  build_engine, build_session_factory, ensure_database_exists, init_db, close_engine
  Base, AvailabilityConfigModel, Booking (models)
  BaseRepository, AvailabilityConfigRepository, BookingRepository
"""
from consultbook.infra.database.engine import (
    build_engine,
    build_session_factory,
    close_engine,
    ensure_database_exists,
    init_db,
)
from consultbook.infra.database.models import AvailabilityConfigModel, Base, Booking
from consultbook.infra.database.repositories import (
    AvailabilityConfigRepository,
    BaseRepository,
    BookingRepository,
)

__all__ = [
    "build_engine",
    "build_session_factory",
    "ensure_database_exists",
    "init_db",
    "close_engine",
    "Base",
    "AvailabilityConfigModel",
    "Booking",
    "BaseRepository",
    "AvailabilityConfigRepository",
    "BookingRepository",
]
