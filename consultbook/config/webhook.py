"""
consultbook.config.webhook – optional outbound booking-event webhook.

Env vars: BOOKING_WEBHOOK_URL, BOOKING_WEBHOOK_SECRET, BOOKING_WEBHOOK_TIMEOUT.
Both URL and secret must be set for the webhook to be enabled.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class WebhookConfig:
    url: Optional[str] = None
    secret: Optional[str] = None
    timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        if self.url and not (self.url.startswith("http://") or self.url.startswith("https://")):
            raise ValueError(f"BOOKING_WEBHOOK_URL must be an http(s) URL, got {self.url!r}")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

    @property
    def enabled(self) -> bool:
        return bool(self.url and self.secret)

    @classmethod
    def from_env(cls) -> WebhookConfig:
        return cls(
            url=(os.environ.get("BOOKING_WEBHOOK_URL") or "").strip() or None,
            secret=(os.environ.get("BOOKING_WEBHOOK_SECRET") or "").strip() or None,
            timeout_seconds=float(os.environ.get("BOOKING_WEBHOOK_TIMEOUT", "10")),
        )


def load_webhook_config() -> WebhookConfig:
    return WebhookConfig.from_env()
