"""BookingWebhookNotifier: outbound HMAC-signed webhook for booking events.

Outbound security model
-----------------------
Every event body is signed with HMAC-SHA256 using the configured secret.
The hex digest is sent in the ``X-Consultbook-Signature: sha256=<hex>``
header so the receiver can verify authenticity.

Typical verification (Python):
    import hashlib, hmac
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    assert hmac.compare_digest(expected, received_sig.removeprefix("sha256="))

Events fired
------------
- ``booking.created``         a slot was claimed (status pending)
- ``booking.status_changed``  a lifecycle transition was applied
"""
from __future__ import annotations

import datetime as _dt
import hashlib
import hmac
import json
import logging
from typing import Any, Dict

import httpx

from consultbook.config.webhook import WebhookConfig
from consultbook.scheduling.events import BookingEvent

logger = logging.getLogger(__name__)


def build_payload(event: BookingEvent) -> Dict[str, Any]:
    return {
        "event": event.name,
        "timestamp": _dt.datetime.now(_dt.timezone.utc).isoformat(),
        "previous_status": event.previous_status,
        "actor_id": event.actor_id,
        "data": event.data,
    }


def sign(body: bytes, secret: str) -> str:
    """Return ``sha256=<hex>`` HMAC signature for *body* using *secret*."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


class BookingWebhookNotifier:
    """BookingEventBus subscriber that POSTs each event to the configured URL.

    Delivery failures are logged; they never reach the booking operation.
    """

    def __init__(self, config: WebhookConfig) -> None:
        if not config.enabled:
            raise ValueError("BookingWebhookNotifier requires BOOKING_WEBHOOK_URL and BOOKING_WEBHOOK_SECRET")
        self._config = config

    async def __call__(self, event: BookingEvent) -> None:
        body = json.dumps(build_payload(event), ensure_ascii=False).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-Consultbook-Signature": sign(body, self._config.secret or ""),
            "X-Consultbook-Event": event.name,
        }
        try:
            async with httpx.AsyncClient(timeout=self._config.timeout_seconds) as client:
                resp = await client.post(self._config.url or "", content=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning(
                "BookingWebhook: %s → %s failed: %s", event.name, self._config.url, exc,
                extra={"booking_id": event.booking_id, "event": event.name},
            )
            return
        if resp.status_code >= 400:
            logger.warning(
                "BookingWebhook: %s → %s returned HTTP %d",
                event.name, self._config.url, resp.status_code,
                extra={"booking_id": event.booking_id, "event": event.name},
            )
        else:
            logger.info(
                "BookingWebhook: %s dispatched → %s (%d)",
                event.name, self._config.url, resp.status_code,
            )
