"""
Aggregate Result Models

Value objects returned by the aggregate engine. They hold no behaviour
and are rebuilt from the ledger every time its inputs change.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class CategoryTotal(BaseModel):
    """Absolute expense total of one category."""
    model_config = ConfigDict(frozen=True)

    name: str
    total: Decimal = Field(..., ge=0)
    percentage: int = Field(..., ge=0, le=100, description="Share of all expenses")


class TunnelBucket(BaseModel):
    """
    One month of the installment projection.

    offset 0 is the current month (outstanding card bills);
    offset k is k months ahead.
    """
    model_config = ConfigDict(frozen=True)

    offset: int = Field(..., ge=0)
    total: Decimal = Field(..., ge=0)
    high_risk: bool = False


class BurnDay(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    total: Decimal = Field(..., ge=0)
    is_today: bool = False


class WeeklyBurn(BaseModel):
    """Expense burn of the last 7 days against the 7 days before."""
    model_config = ConfigDict(frozen=True)

    days: list[BurnDay]
    current_total: Decimal
    previous_total: Decimal
    trend_percent: int

    @property
    def is_improving(self) -> bool:
        """Spending less than the previous week."""
        return self.trend_percent <= 0


class MonthlyFlow(BaseModel):
    """Income, expense and net of one calendar month."""
    model_config = ConfigDict(frozen=True)

    month: date = Field(..., description="First day of the month")
    income: Decimal
    expense: Decimal
    net: Decimal


class ActivityDay(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    has_transaction: bool
    is_today: bool = False


class LedgerAggregates(BaseModel):
    """Everything the dashboard and the mission engine read from the ledger."""
    model_config = ConfigDict(frozen=True)

    period: date = Field(..., description="First day of the active reporting month")
    today: date
    income: Decimal
    expenses: Decimal
    balance: Decimal
    net_worth: Decimal
    categories: list[CategoryTotal]
    tunnel: list[TunnelBucket]
    weekly_burn: WeeklyBurn
    monthly_flow: list[MonthlyFlow]
    activity: list[ActivityDay]
    has_transaction_today: bool
