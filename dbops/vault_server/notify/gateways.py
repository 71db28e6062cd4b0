"""
Notification gateway implementations.

- LoggingNotifier: writes the notification to the log (default)
- WebhookNotifier: POSTs the notification as JSON to a configured URL
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import NotificationConfig
from ..model import utcnow
from .base import NotificationGateway, NotificationKind

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Gateway that only logs notifications."""

    async def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None:
        level = logging.INFO if kind == NotificationKind.SUCCESS else logging.ERROR
        logger.log(level, f"Backup {kind.value}", extra={"notification": payload})


class WebhookNotifier:
    """Gateway that POSTs JSON notifications to a webhook.

    The request body is {"kind", "sent_at", "payload"}. Any non-2xx answer
    raises httpx.HTTPStatusError, which safe_notify() logs.

    Attributes:
        url: Webhook endpoint
        timeout_seconds: Request timeout

    Example:
        >>> notifier = WebhookNotifier("https://hooks.example.com/backup")
        >>> await notifier.notify(NotificationKind.FAILURE, {"error": "boom"})
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None:
        body = {
            "kind": kind.value,
            "sent_at": utcnow().isoformat(),
            "payload": payload,
        }
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds, transport=self._transport
        ) as client:
            response = await client.post(url=self.url, json=body)
            response.raise_for_status()

        logger.info(
            f"Webhook notification sent ({kind.value})",
            extra={"status_code": response.status_code},
        )


def create_notifier(config: NotificationConfig) -> NotificationGateway:
    """Webhook gateway when a URL is configured, logging gateway otherwise."""
    if config.webhook_url:
        return WebhookNotifier(config.webhook_url, timeout_seconds=config.timeout_seconds)
    return LoggingNotifier()
