"""
Data Models Package

This package contains all Pydantic models used by the FluxCash ledger core.
"""

from fluxcash.models.ledger import (
    XP_PER_LEVEL,
    AIRule,
    CardBrand,
    CreditCard,
    Debt,
    EntityKind,
    FinancialGoal,
    LedgerRecord,
    OperationAction,
    OperationStatus,
    PendingOperation,
    SyncState,
    Transaction,
    TransactionType,
    UserProgression,
    level_for_xp,
)
from fluxcash.models.insights import (
    ActivityDay,
    BurnDay,
    CategoryTotal,
    LedgerAggregates,
    MonthlyFlow,
    TunnelBucket,
    WeeklyBurn,
)
from fluxcash.models.mission import Belt, BeltProgress, Mission, MissionType
from fluxcash.models.notification import (
    Notification,
    NotificationCategory,
    NotificationSeverity,
)
from fluxcash.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "XP_PER_LEVEL",
    "AIRule",
    "CardBrand",
    "CreditCard",
    "Debt",
    "EntityKind",
    "FinancialGoal",
    "LedgerRecord",
    "OperationAction",
    "OperationStatus",
    "PendingOperation",
    "SyncState",
    "Transaction",
    "TransactionType",
    "UserProgression",
    "level_for_xp",
    # Insight models
    "ActivityDay",
    "BurnDay",
    "CategoryTotal",
    "LedgerAggregates",
    "MonthlyFlow",
    "TunnelBucket",
    "WeeklyBurn",
    # Mission models
    "Belt",
    "BeltProgress",
    "Mission",
    "MissionType",
    # Notification models
    "Notification",
    "NotificationCategory",
    "NotificationSeverity",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
