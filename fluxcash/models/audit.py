"""
Audit Models for FluxCash

Every mutation, sync round-trip and progression change is recorded as an
AuditEvent. This provides:
1. Traceability of optimistic writes and their remote outcome
2. Debugging information when local and remote state drift
3. A history of XP grants and level-ups

DESIGN DECISION: Audit events are append-only and correlate through the
pending-operation id, so an add and its later confirmation or failure can
be joined in the log.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger mutations
    ENTITY_ADDED = "entity_added"
    ENTITY_UPDATED = "entity_updated"
    ENTITY_REMOVED = "entity_removed"

    # Remote sync
    REMOTE_WRITE_CONFIRMED = "remote_write_confirmed"
    REMOTE_WRITE_FAILED = "remote_write_failed"
    ID_RECONCILED = "id_reconciled"
    SESSION_INVALIDATED = "session_invalidated"

    # Loading
    LOAD_STARTED = "load_started"
    LOAD_COMPLETED = "load_completed"
    LOAD_FAILED = "load_failed"
    SECONDARY_FETCH_FAILED = "secondary_fetch_failed"
    STALE_RESULT_DISCARDED = "stale_result_discarded"
    CACHE_HYDRATED = "cache_hydrated"
    CACHE_CORRUPTED = "cache_corrupted"

    # Progression
    XP_GRANTED = "xp_granted"
    LEVEL_UP = "level_up"
    MISSION_COMPLETED = "mission_completed"

    # Session lifecycle
    SIGNED_OUT = "signed_out"
    DATA_RESET = "data_reset"
    EXPORT_COMPLETED = "export_completed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """A single audit event."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Entity kind (e.g. 'transactions', 'profiles')"
    )
    entity_id: Optional[str] = None

    # Pending-operation id, joins a write with its outcome
    correlation_id: Optional[str] = None
    user_id: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": self.correlation_id,
            "user_id": self.user_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entity_added("transactions", tx.id, op_id)
        event = AuditEventBuilder.remote_write_failed("transactions", tx.id, "insert", str(e), op_id)
    """

    @staticmethod
    def entity_added(kind: str, entity_id: str, correlation_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_ADDED,
            entity_type=kind,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Optimistic insert into {kind}",
            is_user_action=True,
        )

    @staticmethod
    def entity_updated(
        kind: str,
        entity_id: str,
        fields: list[str],
        correlation_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_UPDATED,
            entity_type=kind,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Local update of {kind}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def entity_removed(kind: str, entity_id: str, correlation_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_REMOVED,
            entity_type=kind,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Local removal from {kind}",
            is_user_action=True,
        )

    @staticmethod
    def remote_write_confirmed(
        kind: str,
        entity_id: str,
        action: str,
        correlation_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_WRITE_CONFIRMED,
            severity=AuditSeverity.DEBUG,
            entity_type=kind,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Remote {action} confirmed",
            details={"action": action},
        )

    @staticmethod
    def remote_write_failed(
        kind: str,
        entity_id: str,
        action: str,
        error_message: str,
        correlation_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_WRITE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=kind,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Remote {action} failed; local change kept",
            details={"action": action},
            error_message=error_message,
        )

    @staticmethod
    def id_reconciled(
        kind: str,
        temp_id: str,
        server_id: str,
        correlation_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ID_RECONCILED,
            severity=AuditSeverity.DEBUG,
            entity_type=kind,
            entity_id=server_id,
            correlation_id=correlation_id,
            description="Temporary id replaced by server id",
            details={"temp_id": temp_id, "server_id": server_id},
        )

    @staticmethod
    def session_invalidated(user_id: Optional[str], error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_INVALIDATED,
            severity=AuditSeverity.CRITICAL,
            user_id=user_id,
            description="Remote rejected the session; sync is suspended",
            error_message=error_message,
        )

    @staticmethod
    def load_started(user_id: str, generation: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAD_STARTED,
            user_id=user_id,
            description="Ledger load started",
            details={"generation": generation},
        )

    @staticmethod
    def load_completed(user_id: str, generation: int, counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAD_COMPLETED,
            user_id=user_id,
            description="Ledger load completed",
            details={"generation": generation, "counts": counts},
        )

    @staticmethod
    def load_failed(user_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="transactions",
            user_id=user_id,
            description="Critical transaction fetch failed",
            error_message=error_message,
        )

    @staticmethod
    def secondary_fetch_failed(kind: str, user_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SECONDARY_FETCH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=kind,
            user_id=user_id,
            description=f"Fetch of {kind} failed; left empty",
            error_message=error_message,
        )

    @staticmethod
    def stale_result_discarded(kind: str, generation: int, current: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_RESULT_DISCARDED,
            severity=AuditSeverity.DEBUG,
            entity_type=kind,
            description="Result of a superseded load discarded",
            details={"generation": generation, "current_generation": current},
        )

    @staticmethod
    def cache_hydrated(user_id: str, kinds: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CACHE_HYDRATED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            description="Warm start from local cache",
            details={"kinds": kinds},
        )

    @staticmethod
    def cache_corrupted(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CACHE_CORRUPTED,
            severity=AuditSeverity.WARNING,
            description=f"Ignoring malformed cache entry {key}",
            details={"key": key},
            error_message=error_message,
        )

    @staticmethod
    def xp_granted(user_id: str, amount: int, xp: int, reason: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.XP_GRANTED,
            entity_type="profiles",
            entity_id=user_id,
            user_id=user_id,
            description=f"+{amount} XP",
            details={"amount": amount, "xp": xp, "reason": reason},
        )

    @staticmethod
    def level_up(user_id: str, old_level: int, new_level: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEVEL_UP,
            entity_type="profiles",
            entity_id=user_id,
            user_id=user_id,
            description=f"Level {old_level} -> {new_level}",
            details={"old_level": old_level, "new_level": new_level},
        )

    @staticmethod
    def mission_completed(user_id: str, mission_id: str, day_key: str, xp: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MISSION_COMPLETED,
            entity_type="mission",
            entity_id=mission_id,
            user_id=user_id,
            description=f"Mission {mission_id} completed",
            details={"day_key": day_key, "xp": xp},
            is_user_action=True,
        )

    @staticmethod
    def signed_out(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_OUT,
            user_id=user_id,
            description="Ledger cleared and cache purged on sign-out",
            is_user_action=True,
        )

    @staticmethod
    def data_reset(user_id: str, deleted: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_RESET,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            description="All user data reset",
            details={"remote_deletes_scheduled": deleted},
            is_user_action=True,
        )

    @staticmethod
    def export_completed(user_id: str, fmt: str, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_COMPLETED,
            user_id=user_id,
            description=f"Exported {count} transactions as {fmt}",
            details={"format": fmt, "count": count},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
