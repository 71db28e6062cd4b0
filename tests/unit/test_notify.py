"""
Unit tests for notification gateways.

Tests cover:
- Webhook request body
- Webhook HTTP errors
- Best-effort delivery via safe_notify
- Gateway selection from configuration
"""

import json
import logging

import httpx
import pytest

from dbops.vault_server.config import NotificationConfig
from dbops.vault_server.notify import (
    LoggingNotifier,
    NotificationKind,
    WebhookNotifier,
    create_notifier,
    safe_notify,
)


class FailingNotifier:
    async def notify(self, kind, payload):
        raise RuntimeError("smtp down")


class TestWebhookNotifier:
    """Tests for WebhookNotifier."""

    @pytest.mark.asyncio
    async def test_posts_json(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(202)

        notifier = WebhookNotifier(
            "https://hooks.example.com/backup", transport=httpx.MockTransport(handler)
        )

        await notifier.notify(NotificationKind.SUCCESS, {"snapshot_id": "backup-1-abc"})

        assert len(requests) == 1
        assert requests[0].method == "POST"
        assert str(requests[0].url) == "https://hooks.example.com/backup"
        body = json.loads(requests[0].content)
        assert body["kind"] == "success"
        assert body["payload"] == {"snapshot_id": "backup-1-abc"}
        assert "sent_at" in body

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        notifier = WebhookNotifier(
            "https://hooks.example.com/backup",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )

        with pytest.raises(httpx.HTTPStatusError):
            await notifier.notify(NotificationKind.FAILURE, {"error": "boom"})


class TestSafeNotify:
    """Gateway failures never propagate."""

    @pytest.mark.asyncio
    async def test_failure_is_swallowed(self, caplog):
        with caplog.at_level(logging.ERROR):
            delivered = await safe_notify(FailingNotifier(), NotificationKind.FAILURE, {})

        assert delivered is False
        assert "smtp down" in caplog.text

    @pytest.mark.asyncio
    async def test_webhook_error_is_swallowed(self):
        notifier = WebhookNotifier(
            "https://hooks.example.com/backup",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )

        assert await safe_notify(notifier, NotificationKind.SUCCESS, {}) is False

    @pytest.mark.asyncio
    async def test_no_gateway(self):
        assert await safe_notify(None, NotificationKind.SUCCESS, {}) is False

    @pytest.mark.asyncio
    async def test_logging_notifier(self, caplog):
        with caplog.at_level(logging.INFO):
            delivered = await safe_notify(
                LoggingNotifier(), NotificationKind.SUCCESS, {"snapshot_id": "backup-1-abc"}
            )

        assert delivered is True
        assert "Backup success" in caplog.text


class TestCreateNotifier:
    def test_webhook_when_configured(self):
        notifier = create_notifier(
            NotificationConfig(webhook_url="https://hooks.example.com/backup", timeout_seconds=3)
        )

        assert isinstance(notifier, WebhookNotifier)
        assert notifier.timeout_seconds == 3

    def test_logging_by_default(self):
        assert isinstance(create_notifier(NotificationConfig()), LoggingNotifier)
