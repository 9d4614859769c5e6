"""Tests for BookingService: the conflict guard, idempotency, retries and events.

The repository is replaced by an in-memory ledger that yields to the event loop
on every call, so concurrent requests really interleave.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

from sqlalchemy.exc import OperationalError

from consultbook.config.scheduling import SchedulingConfig
from consultbook.core.exceptions import (
    ConflictError,
    NotFoundError,
    SlotInvalidError,
    SlotTakenError,
    StorageError,
    ValidationError,
)
from consultbook.scheduling.events import BOOKING_CREATED, BOOKING_STATUS_CHANGED, BookingEventBus
from consultbook.scheduling.locks import SlotLockRegistry
from consultbook.scheduling.types import AvailabilityConfig, BookingMetadata, BookingStatus
from consultbook.services.authorization import StaticOperatorDirectory
from consultbook.services.booking_service import BookingService
from consultbook.services.lifecycle_service import LifecycleService

MONDAY = dt.date(2026, 10, 19)
NOW = dt.datetime(2026, 10, 19, 8, 0)
SLOT = dt.time(10, 30)

CONFIG = AvailabilityConfig(
    resource_id="r1",
    start_time=dt.time(9, 0),
    end_time=dt.time(12, 0),
    slot_duration_minutes=30,
    break_start=dt.time(10, 0),
    break_end=dt.time(10, 30),
    closed_weekdays=frozenset({0, 6}),
)


def _run(coro):
    return asyncio.run(coro)


class FakeLedger:
    """In-memory stand-in for BookingRepository with the same uniqueness rules."""

    def __init__(self):
        self.rows = {}
        self.claims = 0

    def _active(self, resource_id, day, t):
        for row in self.rows.values():
            if (
                (row.resource_id, row.booking_date, row.booking_time) == (resource_id, day, t)
                and BookingStatus(row.status).is_active
            ):
                return row
        return None

    async def get_by_id(self, id):
        await asyncio.sleep(0)
        return self.rows.get(id)

    async def get_by_idempotency_key(self, resource_id, requester_id, key):
        await asyncio.sleep(0)
        for row in self.rows.values():
            if (row.resource_id, row.requester_id, row.idempotency_key) == (resource_id, requester_id, key):
                return row
        return None

    async def find_active(self, resource_id, day, t):
        await asyncio.sleep(0)
        return self._active(resource_id, day, t)

    async def claim(self, data):
        await asyncio.sleep(0)
        self.claims += 1
        if self._active(data["resource_id"], data["booking_date"], data["booking_time"]):
            return None
        if data.get("idempotency_key") and any(
            (r.resource_id, r.requester_id, r.idempotency_key)
            == (data["resource_id"], data["requester_id"], data["idempotency_key"])
            for r in self.rows.values()
        ):
            return None
        row = SimpleNamespace(id=uuid4(), created_at=NOW, updated_at=None, **data)
        self.rows[row.id] = row
        return row

    async def transition_status(self, id, current, target):
        await asyncio.sleep(0)
        row = self.rows.get(id)
        if row is None or row.status != current.value:
            return None
        row.status = target.value
        row.updated_at = NOW
        return row


def _session():
    session = MagicMock()
    session.commit = AsyncMock()
    return session


def _booking_service(ledger, locks=None, events=None, settings=None):
    svc = BookingService(
        _session(),
        locks=locks if locks is not None else SlotLockRegistry(),
        events=events,
        settings=settings,
        clock=lambda: NOW,
    )
    svc._repo = ledger
    svc._availability.get_config = AsyncMock(return_value=CONFIG)
    return svc


def _meta(**kwargs):
    defaults = {"subject_name": "Ada", "subject_grade": "5"}
    defaults.update(kwargs)
    return BookingMetadata(**defaults)


class TestNoDoubleBooking(unittest.TestCase):
    def _race(self, n, shared_locks):
        ledger = FakeLedger()
        locks = SlotLockRegistry()

        async def scenario():
            services = [
                _booking_service(ledger, locks if shared_locks else SlotLockRegistry())
                for _ in range(n)
            ]
            return await asyncio.gather(
                *(
                    svc.request_booking("r1", MONDAY, SLOT, f"parent-{i}", _meta())
                    for i, svc in enumerate(services)
                ),
                return_exceptions=True,
            )

        results = _run(scenario())
        return ledger, locks, results

    def test_concurrent_requests_yield_exactly_one_booking(self):
        ledger, locks, results = self._race(10, shared_locks=True)

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        self.assertEqual(len(winners), 1)
        self.assertEqual(len(losers), 9)
        self.assertTrue(all(isinstance(e, SlotTakenError) for e in losers))
        self.assertEqual(len(ledger.rows), 1)
        self.assertEqual(winners[0].status, "pending")
        self.assertEqual(len(locks), 0)

    def test_storage_guard_holds_without_shared_lock(self):
        ledger, _, results = self._race(6, shared_locks=False)

        winners = [r for r in results if not isinstance(r, Exception)]
        self.assertEqual(len(winners), 1)
        self.assertTrue(all(isinstance(r, SlotTakenError) for r in results if r not in winners))
        self.assertEqual(len(ledger.rows), 1)

    def test_different_slots_do_not_conflict(self):
        ledger = FakeLedger()

        async def scenario():
            a = _booking_service(ledger)
            b = _booking_service(ledger)
            return await asyncio.gather(
                a.request_booking("r1", MONDAY, dt.time(9, 0), "p1", _meta()),
                b.request_booking("r1", MONDAY, dt.time(9, 30), "p2", _meta()),
            )

        first, second = _run(scenario())
        self.assertNotEqual(first.id, second.id)
        self.assertEqual(len(ledger.rows), 2)


class TestRequestBooking(unittest.TestCase):
    def test_creates_pending_booking_and_commits(self):
        ledger = FakeLedger()
        svc = _booking_service(ledger)

        booking = _run(svc.request_booking("r1", MONDAY, SLOT, "p1", _meta(subject_name="  Ada  ")))

        self.assertEqual(booking.status, BookingStatus.PENDING.value)
        self.assertEqual(booking.subject_name, "Ada")
        self.assertEqual(booking.requester_id, "p1")
        svc._session.commit.assert_awaited_once()

    def test_blank_subject_is_rejected_before_claim(self):
        ledger = FakeLedger()
        svc = _booking_service(ledger)

        with self.assertRaises(ValidationError):
            _run(svc.request_booking("r1", MONDAY, SLOT, "p1", _meta(subject_name="   ")))
        self.assertEqual(ledger.claims, 0)

    def test_invalid_slot_is_rejected_before_claim(self):
        ledger = FakeLedger()
        svc = _booking_service(ledger)

        with self.assertRaises(SlotInvalidError) as ctx:
            _run(svc.request_booking("r1", MONDAY, dt.time(10, 0), "p1", _meta()))
        self.assertEqual(ctx.exception.details["reason"], "break")
        self.assertEqual(ledger.claims, 0)

    def test_slot_taken_is_logged_distinctly(self):
        ledger = FakeLedger()
        _run(_booking_service(ledger).request_booking("r1", MONDAY, SLOT, "p1", _meta()))

        with self.assertLogs("consultbook.services.booking_service", level="WARNING") as logs:
            with self.assertRaises(SlotTakenError) as ctx:
                _run(_booking_service(ledger).request_booking("r1", MONDAY, SLOT, "p2", _meta()))
        self.assertEqual(ctx.exception.code, "SLOT_TAKEN")
        self.assertEqual(ctx.exception.http_status, 409)
        self.assertTrue(any("slot taken" in line for line in logs.output))

    def test_lost_insert_race_is_slot_taken(self):
        ledger = FakeLedger()
        svc = _booking_service(ledger)
        ledger.claim = AsyncMock(return_value=None)

        with self.assertRaises(SlotTakenError):
            _run(svc.request_booking("r1", MONDAY, SLOT, "p1", _meta()))
        svc._session.commit.assert_not_awaited()

    def test_idempotency_key_replays_original(self):
        ledger = FakeLedger()
        first = _run(_booking_service(ledger).request_booking("r1", MONDAY, SLOT, "p1", _meta(idempotency_key="k1")))
        second = _run(_booking_service(ledger).request_booking("r1", MONDAY, SLOT, "p1", _meta(idempotency_key="k1")))

        self.assertEqual(first.id, second.id)
        self.assertEqual(len(ledger.rows), 1)
        self.assertEqual(ledger.claims, 1)

    def test_idempotency_key_of_another_requester_is_not_replayed(self):
        ledger = FakeLedger()
        alice = _run(_booking_service(ledger).request_booking(
            "r1", MONDAY, dt.time(9, 0), "alice", _meta(idempotency_key="k1", note="private"),
        ))

        mallory = _run(_booking_service(ledger).request_booking(
            "r1", MONDAY, dt.time(11, 0), "mallory", _meta(idempotency_key="k1"),
        ))

        self.assertNotEqual(mallory.id, alice.id)
        self.assertEqual(mallory.requester_id, "mallory")
        self.assertEqual(mallory.booking_time, dt.time(11, 0))
        self.assertIsNone(mallory.note)
        self.assertEqual(len(ledger.rows), 2)

    def test_idempotency_key_reused_for_another_slot_is_a_conflict(self):
        ledger = FakeLedger()
        _run(_booking_service(ledger).request_booking("r1", MONDAY, dt.time(9, 0), "p1", _meta(idempotency_key="k1")))

        with self.assertRaises(ConflictError) as ctx:
            _run(_booking_service(ledger).request_booking(
                "r1", MONDAY, dt.time(11, 0), "p1", _meta(idempotency_key="k1"),
            ))
        self.assertEqual(ctx.exception.code, "IDEMPOTENCY_KEY_REUSED")
        self.assertEqual(ctx.exception.http_status, 409)
        self.assertEqual(len(ledger.rows), 1)
        self.assertEqual(ledger.claims, 1)

    def test_cancellation_frees_the_slot(self):
        ledger = FakeLedger()
        booking = _run(_booking_service(ledger).request_booking("r1", MONDAY, SLOT, "p1", _meta()))

        lifecycle = LifecycleService(_session(), operators=StaticOperatorDirectory("nobody"))
        lifecycle._repo = ledger
        _run(lifecycle.transition(booking.id, BookingStatus.CANCELLED, "p1"))

        again = _run(_booking_service(ledger).request_booking("r1", MONDAY, SLOT, "p2", _meta()))
        self.assertNotEqual(again.id, booking.id)
        self.assertEqual(ledger.rows[booking.id].status, "cancelled")
        self.assertEqual(again.status, "pending")


class TestTransientStorageFailures(unittest.TestCase):
    @staticmethod
    def _op_error():
        return OperationalError("INSERT INTO bookings", {}, Exception("could not serialize access"))

    def test_transient_failure_is_retried(self):
        ledger = FakeLedger()
        svc = _booking_service(ledger)
        row = SimpleNamespace(
            id=uuid4(), resource_id="r1", booking_date=MONDAY, booking_time=SLOT, requester_id="p1",
            subject_name="Ada", subject_grade=None, note=None, status="pending",
            idempotency_key=None, created_at=NOW, updated_at=None,
        )
        ledger.claim = AsyncMock(side_effect=[self._op_error(), row])

        booking = _run(svc.request_booking("r1", MONDAY, SLOT, "p1", _meta()))

        self.assertIs(booking, row)
        self.assertEqual(ledger.claim.await_count, 2)

    def test_retries_are_bounded(self):
        ledger = FakeLedger()
        svc = _booking_service(ledger, settings=SchedulingConfig(max_write_retries=1))
        ledger.claim = AsyncMock(side_effect=self._op_error())

        with self.assertRaises(StorageError) as ctx:
            _run(svc.request_booking("r1", MONDAY, SLOT, "p1", _meta()))
        self.assertEqual(ledger.claim.await_count, 2)
        self.assertEqual(ctx.exception.code, "STORAGE_ERROR")
        self.assertEqual(ctx.exception.http_status, 503)
        self.assertIsInstance(ctx.exception.cause, OperationalError)


class TestBookingEvents(unittest.TestCase):
    def test_created_and_status_changed_are_published(self):
        ledger = FakeLedger()
        bus = BookingEventBus()
        seen = []

        async def record(event):
            seen.append(event)

        bus.subscribe(record)
        lifecycle = LifecycleService(_session(), operators=StaticOperatorDirectory("op", ["r1"]), events=bus)
        lifecycle._repo = ledger

        async def scenario():
            booking = await _booking_service(ledger, events=bus).request_booking("r1", MONDAY, SLOT, "p1", _meta())
            await bus.drain()
            await lifecycle.transition(booking.id, "confirmed", "op")
            await bus.drain()

        _run(scenario())

        self.assertEqual([e.name for e in seen], [BOOKING_CREATED, BOOKING_STATUS_CHANGED])
        self.assertEqual(seen[0].data["time"], "10:30")
        self.assertEqual(seen[1].previous_status, "pending")
        self.assertEqual(seen[1].status, "confirmed")
        self.assertEqual(seen[1].actor_id, "op")

    def test_failing_subscriber_does_not_fail_booking(self):
        ledger = FakeLedger()
        bus = BookingEventBus()
        bus.subscribe(AsyncMock(side_effect=RuntimeError("mail server down")))

        async def scenario():
            booking = await _booking_service(ledger, events=bus).request_booking("r1", MONDAY, SLOT, "p1", _meta())
            await bus.drain()
            return booking

        with self.assertLogs("consultbook.scheduling.events", level="WARNING") as logs:
            booking = _run(scenario())

        self.assertIn(booking.id, ledger.rows)
        self.assertIn("mail server down", logs.output[0])

    def test_slow_subscriber_does_not_delay_booking(self):
        ledger = FakeLedger()
        bus = BookingEventBus()
        release = asyncio.Event()
        delivered = []

        async def slow_webhook(event):
            await release.wait()
            delivered.append(event.name)

        bus.subscribe(slow_webhook)

        async def scenario():
            booking = await asyncio.wait_for(
                _booking_service(ledger, events=bus).request_booking("r1", MONDAY, SLOT, "p1", _meta()),
                timeout=1,
            )
            self.assertEqual(delivered, [])
            self.assertEqual(bus.pending_count, 1)
            release.set()
            await bus.drain()
            return booking

        booking = _run(scenario())

        self.assertIn(booking.id, ledger.rows)
        self.assertEqual(delivered, [BOOKING_CREATED])
        self.assertEqual(bus.pending_count, 0)


class TestQueries(unittest.TestCase):
    def test_get_booking_not_found(self):
        svc = _booking_service(FakeLedger())
        with self.assertRaises(NotFoundError):
            _run(svc.get_booking(uuid4()))

    def test_list_bookings_rejects_inverted_range(self):
        svc = _booking_service(FakeLedger())
        svc._repo.list_for_resource = AsyncMock()
        with self.assertRaises(ValidationError):
            _run(svc.list_bookings("r1", date_from=MONDAY, date_to=MONDAY - dt.timedelta(days=1)))
        svc._repo.list_for_resource.assert_not_called()

    def test_day_schedule_reads_active_bookings_for_one_day(self):
        svc = _booking_service(FakeLedger())
        svc._repo.list_active = AsyncMock(return_value=[])
        _run(svc.day_schedule("r1", MONDAY))
        svc._repo.list_active.assert_awaited_once_with("r1", date_from=MONDAY, date_to=MONDAY)


if __name__ == "__main__":
    unittest.main()
