"""
Aggregate Functions

Pure, deterministic derivations over the ledger. None of these functions
mutate their inputs or read the clock: "today" and the reporting period
are always passed in.

Conventions:
- Income totals sum the (positive) amounts of income transactions
- Expense totals sum the absolute amounts of expense transactions
- Balance is the all-time signed sum, never period-scoped
"""

import re
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from fluxcash.models.insights import (
    ActivityDay,
    BurnDay,
    CategoryTotal,
    MonthlyFlow,
    TunnelBucket,
    WeeklyBurn,
)
from fluxcash.models.ledger import CreditCard, FinancialGoal, Transaction


ZERO = Decimal("0")

_INSTALLMENT = re.compile(r"^\s*(\d+)\s*/\s*(\d+)\s*$")


def _round_percent(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _day_of(ts: Optional[datetime]) -> Optional[date]:
    return ts.date() if ts is not None else None


# =============================================================================
# PERIODS
# =============================================================================

def month_start(day: date) -> date:
    return day.replace(day=1)


def shift_month(period: date, months: int) -> date:
    """First day of the month `months` away from `period`."""
    index = period.year * 12 + (period.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def in_period(ts: Optional[datetime], period: date) -> bool:
    """Whether a timestamp falls in the calendar month of `period`."""
    if ts is None:
        return False
    return ts.year == period.year and ts.month == period.month


# =============================================================================
# PERIOD TOTALS
# =============================================================================

def period_income(transactions: Iterable[Transaction], period: date) -> Decimal:
    return sum(
        (t.amount for t in transactions if t.is_income and in_period(t.timestamp, period)),
        ZERO,
    )


def period_expenses(transactions: Iterable[Transaction], period: date) -> Decimal:
    return sum(
        (abs(t.amount) for t in transactions if t.is_expense and in_period(t.timestamp, period)),
        ZERO,
    )


def balance(transactions: Iterable[Transaction]) -> Decimal:
    """All-time signed sum."""
    return sum((t.amount for t in transactions), ZERO)


def net_worth(
    current_balance: Decimal,
    goals: Iterable[FinancialGoal],
    cards: Iterable[CreditCard],
) -> Decimal:
    """Cash plus goal savings, minus outstanding card bills."""
    saved = sum((g.current for g in goals), ZERO)
    owed = sum((c.bill for c in cards), ZERO)
    return current_balance + saved - owed


# =============================================================================
# CATEGORIES
# =============================================================================

def category_ranking(
    transactions: Iterable[Transaction],
    top_n: Optional[int] = None,
) -> list[CategoryTotal]:
    """
    Expense categories by absolute total, largest first.

    Ties keep first-seen order. Percentages are shares of all
    expenses, not just of the returned top N.
    """
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for t in transactions:
        if t.is_expense:
            totals[t.category] += abs(t.amount)

    grand_total = sum(totals.values(), ZERO)
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    if top_n is not None:
        ranked = ranked[:top_n]

    return [
        CategoryTotal(
            name=name,
            total=total,
            percentage=_round_percent(total * 100 / grand_total) if grand_total > 0 else 0,
        )
        for name, total in ranked
    ]


# =============================================================================
# INSTALLMENT TUNNEL
# =============================================================================

def parse_installment(descriptor: Optional[str]) -> Optional[tuple[int, int]]:
    """Parse "k/n" into (k, n); None if malformed."""
    if not descriptor:
        return None
    match = _INSTALLMENT.match(descriptor)
    if not match:
        return None
    current, total = int(match.group(1)), int(match.group(2))
    if total <= 0:
        return None
    return current, total


def remaining_installments(descriptor: Optional[str]) -> int:
    parsed = parse_installment(descriptor)
    if parsed is None:
        return 0
    current, total = parsed
    return max(0, total - current)


def installment_tunnel(
    transactions: Iterable[Transaction],
    cards: Iterable[CreditCard],
    income: Decimal,
    horizon: int = 5,
    risk_fraction: float = 0.5,
) -> list[TunnelBucket]:
    """
    Project installment commitments into future months.

    Bucket 0 holds the current outstanding card bills. An expense with
    installment "k/n" adds its per-installment amount to each of the
    next n - k buckets, capped at `horizon`.
    """
    projection = [ZERO] * (horizon + 1)
    projection[0] = sum((c.bill for c in cards), ZERO)

    for t in transactions:
        if not t.is_expense:
            continue
        remaining = remaining_installments(t.installment)
        for offset in range(1, min(remaining, horizon) + 1):
            projection[offset] += abs(t.amount)

    threshold = income * Decimal(str(risk_fraction))
    return [
        TunnelBucket(
            offset=offset,
            total=total,
            high_risk=income > 0 and total > threshold,
        )
        for offset, total in enumerate(projection)
    ]


# =============================================================================
# TIME SERIES
# =============================================================================

def has_transaction_on(transactions: Iterable[Transaction], day: date) -> bool:
    return any(_day_of(t.timestamp) == day for t in transactions)


def weekly_burn(transactions: Sequence[Transaction], today: date) -> WeeklyBurn:
    """
    Daily expenses of the last 7 days (oldest first) and the trend
    against the 7 days before them.
    """
    start_current = today - timedelta(days=6)
    start_previous = start_current - timedelta(days=7)

    buckets = {start_current + timedelta(days=i): ZERO for i in range(7)}
    current_total = ZERO
    previous_total = ZERO

    for t in transactions:
        day = _day_of(t.timestamp)
        if not t.is_expense or day is None:
            continue
        value = abs(t.amount)
        if start_current <= day <= today:
            buckets[day] += value
            current_total += value
        elif start_previous <= day < start_current:
            previous_total += value

    if previous_total > 0:
        trend = _round_percent((current_total - previous_total) * 100 / previous_total)
    else:
        trend = 100 if current_total > 0 else 0

    return WeeklyBurn(
        days=[BurnDay(day=d, total=v, is_today=(d == today)) for d, v in buckets.items()],
        current_total=current_total,
        previous_total=previous_total,
        trend_percent=trend,
    )


def monthly_flow(
    transactions: Iterable[Transaction],
    today: date,
    months: int = 6,
) -> list[MonthlyFlow]:
    """Income, expense and net for the trailing `months` months, oldest first."""
    current = month_start(today)
    keys = [shift_month(current, -i) for i in range(months - 1, -1, -1)]
    income = {k: ZERO for k in keys}
    expense = {k: ZERO for k in keys}

    for t in transactions:
        if t.timestamp is None:
            continue
        key = date(t.timestamp.year, t.timestamp.month, 1)
        if key not in income:
            continue
        if t.is_income:
            income[key] += t.amount
        else:
            expense[key] += abs(t.amount)

    return [
        MonthlyFlow(month=k, income=income[k], expense=expense[k], net=income[k] - expense[k])
        for k in keys
    ]


def activity_calendar(
    transactions: Iterable[Transaction],
    today: date,
    days: int = 14,
) -> list[ActivityDay]:
    """Which of the last `days` days have at least one transaction, oldest first."""
    active = {_day_of(t.timestamp) for t in transactions}
    window = [today - timedelta(days=i) for i in range(days - 1, -1, -1)]
    return [
        ActivityDay(day=d, has_transaction=d in active, is_today=(d == today))
        for d in window
    ]
