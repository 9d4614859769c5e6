"""consultbook FastAPI application, entry point.

Start with:
    uvicorn consultbook.api.main:app --reload --host 0.0.0.0 --port 8000

Identity comes from the upstream auth gateway via X-Actor-Id / X-Operator-Of.
Set BOOKING_WEBHOOK_URL and BOOKING_WEBHOOK_SECRET to push booking events out.
"""
from __future__ import annotations

import datetime as _dt
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from consultbook.config import load_scheduling_config, load_webhook_config
from consultbook.core.exceptions import ProjectError
from consultbook.core.logger import configure
from consultbook.infra.database.engine import (
    build_engine,
    build_session_factory,
    close_engine,
    ensure_database_exists,
    init_db,
)
from consultbook.scheduling import BookingEventBus, SlotLockRegistry
from consultbook.services import BookingWebhookNotifier

logger = logging.getLogger(__name__)


def _build_event_bus() -> BookingEventBus:
    bus = BookingEventBus()
    webhook_cfg = load_webhook_config()
    if webhook_cfg.enabled:
        bus.subscribe(BookingWebhookNotifier(webhook_cfg))
        logger.info("API: booking webhook enabled (%s)", webhook_cfg.url)
    return bus


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ── Startup ──────────────────────────────────────────────────
    configure()

    await ensure_database_exists()
    engine = build_engine()
    session_factory = build_session_factory(engine)
    await init_db()

    app.state.session_factory = session_factory
    app.state.scheduling = load_scheduling_config()
    app.state.slot_locks = SlotLockRegistry()
    app.state.booking_events = _build_event_bus()
    app.state.clock = _dt.datetime.now
    logger.info(
        "API: scheduling ready (allowed slot minutes %s)",
        sorted(app.state.scheduling.allowed_slot_minutes),
    )

    yield

    # ── Shutdown ─────────────────────────────────────────────────
    await app.state.booking_events.drain()
    await close_engine()
    logger.info("API: engine disposed")


app = FastAPI(
    title="consultbook API",
    version="1.0.0",
    description="Consultation scheduling: availability, slots, bookings and their lifecycle.",
    lifespan=lifespan,
)

# Booking creation is rate limited per client address (BOOKING_RATE_LIMIT, default 30/minute)
from consultbook.api.routers import availability, bookings  # noqa: E402

app.state.limiter = bookings.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(ProjectError)
async def project_error_handler(request: Request, exc: ProjectError):
    if exc.http_status >= 500:
        logger.error("API: %s on %s: %s", exc.code, request.url.path, exc, exc_info=exc.cause)
    body = exc.to_dict(include_cause=False)
    body.pop("http_status", None)
    return JSONResponse(status_code=exc.http_status, content=body)


_allowed_origins = os.environ.get(
    "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
).split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Optional API key ─────────────────────────────────────────────
# With ADMIN_API_KEY set, every /api/v1/* request must carry X-Api-Key.
_ADMIN_API_KEY = os.environ.get("ADMIN_API_KEY", "").strip() or None


@app.middleware("http")
async def api_key_middleware(request: Request, call_next):
    if _ADMIN_API_KEY and request.url.path.startswith("/api/v1"):
        if request.headers.get("X-Api-Key") != _ADMIN_API_KEY:
            return JSONResponse(
                status_code=401,
                content={"message": "Unauthorized: set X-Api-Key header", "code": "UNAUTHORIZED"},
            )
    return await call_next(request)


app.include_router(availability.router, prefix="/api/v1")
app.include_router(bookings.router, prefix="/api/v1")


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
