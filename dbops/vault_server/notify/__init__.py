"""
Notification module for the vault server.

Backup outcomes are pushed to a NotificationGateway on a best-effort basis.
"""

from .base import NotificationGateway, NotificationKind, safe_notify
from .gateways import LoggingNotifier, WebhookNotifier, create_notifier

__all__ = [
    "LoggingNotifier",
    "NotificationGateway",
    "NotificationKind",
    "WebhookNotifier",
    "create_notifier",
    "safe_notify",
]
