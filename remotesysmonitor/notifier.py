"""Slack-compatible webhook delivery for the rendered report."""

from __future__ import annotations

import logging
from datetime import datetime

import httpx

from remotesysmonitor.report import FAILURE_GLYPHS

logger = logging.getLogger(__name__)

WEBHOOK_ENV = "SLACK_HOOK_URL"


class DeliveryError(RuntimeError):
    pass


def make_pretty_timestamp(now: datetime | None = None) -> str:
    now = now or datetime.now().astimezone()
    return now.strftime("%d/%b/%y %H:%M %Z").strip()


def build_message(body: str, timestamp: str) -> str:
    message = f"{timestamp}\n{body}"
    if any(glyph in body for glyph in FAILURE_GLYPHS):
        message = f"@all\n{message}"
    return message


class SlackNotifier:
    def __init__(self, webhook_url: str, timeout: float = 10.0) -> None:
        if not webhook_url:
            raise ValueError("webhook_url must be non-empty")
        self.webhook_url = webhook_url
        self.timeout = timeout

    def send(self, body: str) -> None:
        payload = {"text": build_message(body, make_pretty_timestamp())}
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as exc:
            raise DeliveryError(f"webhook request failed: {type(exc).__name__}: {exc}") from exc
        if not resp.is_success:
            raise DeliveryError(f"webhook returned {resp.status_code}: {resp.text[:200]}")
        logger.info("report posted to webhook")
