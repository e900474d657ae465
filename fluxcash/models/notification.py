"""
Notification Models

Structured events the core emits for a UI layer to display:
remote-write failures, level-ups, session problems.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


class NotificationSeverity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationCategory(str, Enum):
    FINANCIAL = "financial"
    GAMIFICATION = "gamification"
    SYSTEM = "system"
    SECURITY = "security"


class Notification(BaseModel):
    """A single user-facing notification."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., max_length=500)
    severity: NotificationSeverity = NotificationSeverity.INFO
    category: NotificationCategory = NotificationCategory.SYSTEM
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    read: bool = False
