"""Tests for BookingEventBus and the outbound booking webhook."""
from __future__ import annotations

import asyncio
import datetime as dt
import hashlib
import hmac
import json
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import httpx

from consultbook.config.webhook import WebhookConfig
from consultbook.scheduling.events import (
    BOOKING_CREATED,
    BOOKING_STATUS_CHANGED,
    BookingEvent,
    BookingEventBus,
)
from consultbook.services.booking_webhook_service import BookingWebhookNotifier, build_payload, sign

CONFIG = WebhookConfig(url="https://hooks.example.test/bookings", secret="s3cret", timeout_seconds=2)


def _run(coro):
    return asyncio.run(coro)


def _fake_booking(**kwargs):
    defaults = {
        "id": uuid4(),
        "resource_id": "r1",
        "booking_date": dt.date(2026, 10, 20),
        "booking_time": dt.time(10, 30),
        "requester_id": "parent-1",
        "subject_name": "Ada",
        "subject_grade": "5",
        "note": None,
        "status": "pending",
        "created_at": dt.datetime(2026, 10, 19, 8, 0),
        "updated_at": None,
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def _mock_client(response=None, error=None):
    """Patchable stand-in for httpx.AsyncClient used as an async context manager."""
    client = MagicMock()
    client.post = AsyncMock(return_value=response, side_effect=error)
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=client)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=ctx), client


class TestBookingEvent(unittest.TestCase):
    def test_from_booking_payload(self):
        booking = _fake_booking()
        event = BookingEvent.from_booking(BOOKING_CREATED, booking)
        self.assertEqual(event.booking_id, str(booking.id))
        self.assertEqual(event.status, "pending")
        self.assertEqual(event.data["date"], "2026-10-20")
        self.assertEqual(event.data["time"], "10:30")
        self.assertEqual(event.data["created_at"], "2026-10-19T08:00:00")
        self.assertIsNone(event.data["updated_at"])


class TestBookingEventBus(unittest.TestCase):
    def test_every_subscriber_sees_event_despite_failures(self):
        bus = BookingEventBus()
        broken = AsyncMock(side_effect=RuntimeError("boom"))
        healthy = AsyncMock()
        bus.subscribe(broken)
        bus.subscribe(healthy)
        event = BookingEvent.from_booking(BOOKING_CREATED, _fake_booking())

        async def scenario():
            bus.publish(event)
            self.assertEqual(bus.pending_count, 2)
            await bus.drain()

        with self.assertLogs("consultbook.scheduling.events", level="WARNING") as logs:
            _run(scenario())

        broken.assert_awaited_once_with(event)
        healthy.assert_awaited_once_with(event)
        self.assertEqual(len(logs.output), 1)
        self.assertIn("boom", logs.output[0])
        self.assertEqual(bus.pending_count, 0)

    def test_publish_returns_before_delivery(self):
        bus = BookingEventBus()
        started = []

        async def subscriber(event):
            started.append(event.name)

        bus.subscribe(subscriber)
        event = BookingEvent.from_booking(BOOKING_CREATED, _fake_booking())

        async def scenario():
            bus.publish(event)
            before = list(started)
            await bus.drain()
            return before

        self.assertEqual(_run(scenario()), [])
        self.assertEqual(started, [BOOKING_CREATED])

    def test_unsubscribe(self):
        bus = BookingEventBus()
        sub = AsyncMock()
        bus.subscribe(sub)
        bus.unsubscribe(sub)
        bus.unsubscribe(sub)
        self.assertEqual(bus.subscriber_count, 0)


class TestWebhookNotifier(unittest.TestCase):
    def test_sign_matches_hmac_sha256(self):
        body = b'{"event":"booking.created"}'
        expected = hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()
        self.assertEqual(sign(body, "s3cret"), f"sha256={expected}")

    def test_payload_shape(self):
        event = BookingEvent.from_booking(
            BOOKING_STATUS_CHANGED, _fake_booking(status="confirmed"),
            previous_status="pending", actor_id="op-1",
        )
        payload = build_payload(event)
        self.assertEqual(payload["event"], BOOKING_STATUS_CHANGED)
        self.assertEqual(payload["previous_status"], "pending")
        self.assertEqual(payload["actor_id"], "op-1")
        self.assertEqual(payload["data"]["status"], "confirmed")
        self.assertIn("timestamp", payload)

    def test_posts_signed_body(self):
        factory, client = _mock_client(response=SimpleNamespace(status_code=200))
        event = BookingEvent.from_booking(BOOKING_CREATED, _fake_booking())

        with patch("consultbook.services.booking_webhook_service.httpx.AsyncClient", factory):
            _run(BookingWebhookNotifier(CONFIG)(event))

        factory.assert_called_once_with(timeout=2)
        url = client.post.call_args.args[0]
        body = client.post.call_args.kwargs["content"]
        headers = client.post.call_args.kwargs["headers"]
        self.assertEqual(url, CONFIG.url)
        self.assertEqual(headers["X-Consultbook-Event"], BOOKING_CREATED)
        self.assertEqual(headers["X-Consultbook-Signature"], sign(body, "s3cret"))
        self.assertEqual(json.loads(body)["data"]["resource_id"], "r1")

    def test_delivery_failure_is_logged_not_raised(self):
        factory, _ = _mock_client(error=httpx.ConnectError("refused"))
        event = BookingEvent.from_booking(BOOKING_CREATED, _fake_booking())

        with patch("consultbook.services.booking_webhook_service.httpx.AsyncClient", factory):
            with self.assertLogs("consultbook.services.booking_webhook_service", level="WARNING") as logs:
                _run(BookingWebhookNotifier(CONFIG)(event))
        self.assertIn("failed", logs.output[0])

    def test_http_error_status_is_logged(self):
        factory, _ = _mock_client(response=SimpleNamespace(status_code=502))
        event = BookingEvent.from_booking(BOOKING_CREATED, _fake_booking())

        with patch("consultbook.services.booking_webhook_service.httpx.AsyncClient", factory):
            with self.assertLogs("consultbook.services.booking_webhook_service", level="WARNING") as logs:
                _run(BookingWebhookNotifier(CONFIG)(event))
        self.assertIn("502", logs.output[0])

    def test_requires_url_and_secret(self):
        with self.assertRaises(ValueError):
            BookingWebhookNotifier(WebhookConfig(url="https://x.test"))
        with self.assertRaises(ValueError):
            WebhookConfig(url="ftp://x.test", secret="s")


if __name__ == "__main__":
    unittest.main()
