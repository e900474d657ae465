"""
Aggregates Package

Pure ledger derivations and the memoising engine that bundles them.
"""

from fluxcash.aggregates.functions import (
    activity_calendar,
    balance,
    category_ranking,
    has_transaction_on,
    in_period,
    installment_tunnel,
    month_start,
    monthly_flow,
    net_worth,
    parse_installment,
    period_expenses,
    period_income,
    remaining_installments,
    shift_month,
    weekly_burn,
)
from fluxcash.aggregates.engine import AggregateEngine

__all__ = [
    "AggregateEngine",
    "activity_calendar",
    "balance",
    "category_ranking",
    "has_transaction_on",
    "in_period",
    "installment_tunnel",
    "month_start",
    "monthly_flow",
    "net_worth",
    "parse_installment",
    "period_expenses",
    "period_income",
    "remaining_installments",
    "shift_month",
    "weekly_burn",
]
