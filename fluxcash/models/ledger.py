"""
Core Ledger Models for FluxCash

These models define the schemas for every entity the ledger store owns.
They are designed to:
1. Normalize values at the boundary (amount sign, whitespace)
2. Round-trip through the local cache as JSON
3. Convert to and from remote records (snake_case payloads)
4. Carry a local-only sync marker that never leaves the client

DESIGN DECISION: `type` is the authoritative source for the sign of a
transaction amount. Expenses are always stored negative and incomes
positive, whatever sign the caller passed.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


XP_PER_LEVEL = 500


def level_for_xp(xp: int) -> int:
    """Level is a step function of XP: floor(xp / 500) + 1."""
    if xp < 0:
        raise ValueError("XP cannot be negative")
    return xp // XP_PER_LEVEL + 1


# =============================================================================
# ENUMS
# =============================================================================

class EntityKind(str, Enum):
    """
    Remote collections and cache namespaces.

    The values double as remote table names and cache key prefixes.
    """
    TRANSACTIONS = "transactions"
    CARDS = "credit_cards"
    GOALS = "financial_goals"
    DEBTS = "debts"
    RULES = "ai_rules"
    PROFILES = "profiles"
    XP_HISTORY = "xp_history"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class SyncState(str, Enum):
    """
    Local sync marker on ledger entities.

    FAILED means the change is applied locally but the remote rejected it.
    """
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


class OperationAction(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class OperationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class CardBrand(str, Enum):
    MASTERCARD = "mastercard"
    VISA = "visa"
    ELO = "elo"


# =============================================================================
# LEDGER ENTITIES
# =============================================================================

class LedgerRecord(BaseModel):
    """
    Base for every entity held by the ledger store.

    Subclasses list remote key renames in REMOTE_ALIASES
    ({model_field: remote_key}).
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    REMOTE_ALIASES: ClassVar[dict[str, str]] = {}
    LOCAL_ONLY: ClassVar[set[str]] = {"id", "sync_state"}

    id: str = Field(..., min_length=1, description="Server-assigned or temporary id")
    sync_state: SyncState = Field(
        default=SyncState.SYNCED,
        description="Local-only sync marker"
    )

    def to_record(self, user_id: str) -> dict[str, Any]:
        """Convert to a remote insert payload (no id, no sync marker)."""
        payload = self.model_dump(mode="json", exclude=self.LOCAL_ONLY)
        payload = {self.REMOTE_ALIASES.get(k, k): v for k, v in payload.items()}
        payload["user_id"] = user_id
        return payload

    @classmethod
    def remote_patch(cls, patch: dict[str, Any]) -> dict[str, Any]:
        """Rename patch keys to their remote names and drop local-only ones."""
        return {
            cls.REMOTE_ALIASES.get(k, k): v
            for k, v in patch.items()
            if k not in cls.LOCAL_ONLY
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "LedgerRecord":
        """Build from an authoritative remote record."""
        reverse = {v: k for k, v in cls.REMOTE_ALIASES.items()}
        data = {reverse.get(k, k): v for k, v in record.items()}
        data["id"] = str(data["id"])
        data["sync_state"] = SyncState.SYNCED
        return cls.model_validate(data)


class Transaction(LedgerRecord):
    """
    A single income or expense entry.

    `installment` is a free-form "k/n" descriptor (installment k of n).
    `icon` and `color_class` are presentation hints ignored by the core.
    """
    REMOTE_ALIASES: ClassVar[dict[str, str]] = {"timestamp": "date_iso"}

    title: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., description="Signed amount; sign follows `type`")
    type: TransactionType
    category: str = Field(default="Geral")
    account: str = Field(default="")
    timestamp: Optional[datetime] = None
    is_recurring: bool = False
    installment: Optional[str] = Field(
        default=None,
        max_length=20,
        description="Installment descriptor, e.g. '2/10'"
    )
    icon: str = "receipt"
    color_class: str = ""
    notes: Optional[str] = Field(default=None, max_length=1000)
    tags: list[str] = Field(default_factory=list)

    @field_validator("installment")
    @classmethod
    def blank_installment_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @model_validator(mode="after")
    def sign_follows_type(self) -> "Transaction":
        """Expenses are negative, incomes positive."""
        magnitude = abs(self.amount)
        self.amount = -magnitude if self.type == TransactionType.EXPENSE else magnitude
        return self

    @property
    def is_expense(self) -> bool:
        return self.type == TransactionType.EXPENSE

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME


class CreditCard(LedgerRecord):
    """A credit card; `bill` is the amount due in the current period."""

    name: str = Field(..., min_length=1, max_length=100)
    brand: CardBrand = CardBrand.MASTERCARD
    color: str = ""
    limit: Decimal = Field(default=Decimal("0"), ge=0)
    bill: Decimal = Field(default=Decimal("0"), ge=0)
    due_date: str = ""
    last_digits: str = Field(default="", max_length=4)


class FinancialGoal(LedgerRecord):
    """A savings goal."""

    name: str = Field(..., min_length=1, max_length=100)
    target: Decimal = Field(..., ge=0)
    current: Decimal = Field(default=Decimal("0"), ge=0)
    deadline: str = ""
    icon: str = "savings"
    color: str = ""

    @property
    def progress(self) -> float:
        if self.target <= 0:
            return 0.0
        return min(1.0, float(self.current / self.target))


class Debt(LedgerRecord):
    """A debt paid in installments."""

    name: str = Field(..., min_length=1, max_length=100)
    bank: str = ""
    total_installments: int = Field(..., ge=1)
    paid_installments: int = Field(default=0, ge=0)
    original_debt: Decimal = Field(default=Decimal("0"), ge=0)
    current_balance: Decimal = Field(default=Decimal("0"), ge=0)
    value_parcel: Decimal = Field(default=Decimal("0"), ge=0)
    color: str = ""

    @model_validator(mode="after")
    def validate_installments(self) -> "Debt":
        if self.paid_installments > self.total_installments:
            raise ValueError("Paid installments cannot exceed total installments")
        return self

    @property
    def is_paid_off(self) -> bool:
        return self.paid_installments >= self.total_installments


class AIRule(LedgerRecord):
    """User-defined keyword -> category rule."""

    keyword: str = Field(..., min_length=1, max_length=100)
    category: str = Field(..., min_length=1, max_length=100)


# =============================================================================
# PROGRESSION
# =============================================================================

class UserProgression(BaseModel):
    """
    XP and level of the signed-in user.

    `level` is always re-derived from `xp`; a stored level that
    disagrees is corrected on validation.
    """
    model_config = ConfigDict(extra="ignore")

    user_id: str = Field(..., min_length=1)
    name: str = Field(default="", max_length=100)
    profession: str = Field(default="", max_length=100)
    xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    has_onboarding: bool = False

    @model_validator(mode="after")
    def level_follows_xp(self) -> "UserProgression":
        self.level = level_for_xp(self.xp)
        return self

    def to_record(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "profession": self.profession,
            "xp": self.xp,
            "level": self.level,
            "has_onboarding": self.has_onboarding,
        }

    @classmethod
    def from_record(cls, user_id: str, record: dict[str, Any]) -> "UserProgression":
        return cls.model_validate({**record, "user_id": user_id})


# =============================================================================
# SYNC BOOKKEEPING
# =============================================================================

class PendingOperation(BaseModel):
    """
    One remote write issued by the ledger store.

    Every optimistic mutation gets one of these so a failed sync is
    visible instead of silently trusted.
    """
    op_id: str
    kind: EntityKind
    action: OperationAction
    entity_id: str
    status: OperationStatus = OperationStatus.PENDING
    error: Optional[str] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status == OperationStatus.PENDING
