"""
Notification Sink

The ledger core emits notifications but never renders them. A UI layer
subscribes to a NotificationCenter (or supplies its own sink) and
decides how to show them.
"""

from abc import ABC, abstractmethod
from collections import deque
from typing import Callable, Optional

import structlog

from fluxcash.models.notification import (
    Notification,
    NotificationCategory,
    NotificationSeverity,
)


logger = structlog.get_logger(__name__)

Subscriber = Callable[[Notification], None]


class NotificationSink(ABC):
    """Anything that accepts notifications from the core."""

    @abstractmethod
    def emit(self, notification: Notification) -> None:
        pass

    def notify(
        self,
        title: str,
        message: str,
        severity: NotificationSeverity = NotificationSeverity.INFO,
        category: NotificationCategory = NotificationCategory.SYSTEM,
    ) -> Notification:
        """Build and emit a notification in one call."""
        notification = Notification(
            title=title,
            message=message,
            severity=severity,
            category=category,
        )
        self.emit(notification)
        return notification


class NotificationCenter(NotificationSink):
    """
    In-process notification hub.

    Keeps a bounded history (newest first) and fans each notification out
    to subscribers. A failing subscriber is logged and skipped so one bad
    listener cannot silence the others.
    """

    def __init__(self, max_history: int = 100):
        self._history: deque[Notification] = deque(maxlen=max_history)
        self._subscribers: list[Subscriber] = []

    def emit(self, notification: Notification) -> None:
        self._history.appendleft(notification)
        for subscriber in list(self._subscribers):
            try:
                subscriber(notification)
            except Exception as e:
                logger.warning(
                    "notification_subscriber_failed",
                    error=str(e),
                    notification_id=notification.id,
                )

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a subscriber; returns a function that unsubscribes it."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    @property
    def notifications(self) -> list[Notification]:
        return list(self._history)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._history if not n.read)

    def find(
        self,
        category: Optional[NotificationCategory] = None,
        severity: Optional[NotificationSeverity] = None,
    ) -> list[Notification]:
        return [
            n for n in self._history
            if (category is None or n.category == category)
            and (severity is None or n.severity == severity)
        ]

    def mark_as_read(self, notification_id: str) -> None:
        for notification in self._history:
            if notification.id == notification_id:
                notification.read = True

    def mark_all_as_read(self) -> None:
        for notification in self._history:
            notification.read = True

    def clear(self) -> None:
        self._history.clear()
