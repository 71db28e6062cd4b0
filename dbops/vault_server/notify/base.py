"""
Notification gateway protocol.

Backup runs report their outcome to a gateway. Delivery is best effort: a
gateway failure is logged and never changes the outcome of the backup.

How to change safely:
    - Payloads must stay JSON serializable
    - Add new kinds additively, receivers switch on the value
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from enum import Enum
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@runtime_checkable
class NotificationGateway(Protocol):
    """Receiver of backup outcome notifications."""

    @abstractmethod
    async def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None:
        """Deliver one notification.

        Args:
            kind: success or failure
            payload: JSON-serializable details of the run
        """
        ...


async def safe_notify(
    gateway: NotificationGateway | None,
    kind: NotificationKind,
    payload: dict[str, Any],
) -> bool:
    """Deliver a notification, swallowing and logging any gateway error.

    Returns:
        True if the gateway accepted the notification
    """
    if gateway is None:
        return False
    try:
        await gateway.notify(kind, payload)
    except Exception as e:
        logger.error(f"Failed to send {kind.value} notification: {e}", exc_info=True)
        return False
    return True
