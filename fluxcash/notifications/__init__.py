"""Notification sink package."""

from fluxcash.notifications.sink import NotificationCenter, NotificationSink

__all__ = ["NotificationCenter", "NotificationSink"]
