# Overview: Post-commit event publishing for downstream consumers (dashboards, receipts).

"""
Notification Publisher

Events are published only after the owning transaction has committed. Delivery
is best effort: a failing publisher is logged and never turns a committed
sale into an error response.
"""

from __future__ import annotations

import logging
from collections import deque


logger = logging.getLogger(__name__)


EVENT_SALE_CREATED = "sale_created"
EVENT_SALE_VOIDED = "sale_voided"


class NotificationPublisher:
    def publish(self, event: str, payload: dict) -> None:
        raise NotImplementedError


class LoggingPublisher(NotificationPublisher):
    """Default publisher: writes each event to the application log."""

    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logger

    def publish(self, event: str, payload: dict) -> None:
        self.log.info("event=%s payload=%s", event, payload)


class InMemoryPublisher(NotificationPublisher):
    """Keeps the most recent events in memory."""

    def __init__(self, maxlen: int = 100):
        self.events: deque[tuple[str, dict]] = deque(maxlen=maxlen)

    def publish(self, event: str, payload: dict) -> None:
        self.events.append((event, dict(payload)))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def clear(self) -> None:
        self.events.clear()


def safe_publish(publisher: NotificationPublisher | None, event: str, payload: dict) -> bool:
    """Publish and swallow delivery failures. Returns True when delivered."""
    if publisher is None:
        return False
    try:
        publisher.publish(event, payload)
        return True
    except Exception:
        logger.exception("Failed to publish %s event", event)
        return False
