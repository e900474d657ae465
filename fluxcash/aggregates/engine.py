"""
Aggregate Engine

Bundles the pure aggregate functions into one memoised snapshot.

DESIGN DECISION: The snapshot is keyed by the ledger's collection
versions plus the reporting period and the current day. Reading it twice
without a mutation in between costs nothing; any mutation, period change
or day rollover produces a fresh snapshot.
"""

from typing import TYPE_CHECKING, Hashable, Optional

from fluxcash.aggregates import functions
from fluxcash.clock import Clock
from fluxcash.config.settings import InsightSettings
from fluxcash.models.insights import LedgerAggregates
from fluxcash.models.ledger import EntityKind

if TYPE_CHECKING:
    from fluxcash.ledger.store import LedgerStore


class AggregateEngine:
    """Memoised derivations over a LedgerStore."""

    def __init__(
        self,
        store: "LedgerStore",
        settings: Optional[InsightSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self._store = store
        self._settings = settings or InsightSettings()
        self._clock = clock or store.clock
        self._key: Optional[Hashable] = None
        self._snapshot: Optional[LedgerAggregates] = None
        self.recomputations = 0

    def key(self) -> Hashable:
        """Everything a snapshot depends on."""
        return (
            self._store.version(EntityKind.TRANSACTIONS),
            self._store.version(EntityKind.CARDS),
            self._store.version(EntityKind.GOALS),
            self._store.period,
            self._clock.today(),
        )

    def snapshot(self) -> LedgerAggregates:
        key = self.key()
        if self._snapshot is None or key != self._key:
            self._snapshot = self._compute()
            self._key = key
            self.recomputations += 1
        return self._snapshot

    def _compute(self) -> LedgerAggregates:
        store = self._store
        transactions = store.transactions
        cards = store.cards
        period = store.period
        today = self._clock.today()

        income = functions.period_income(transactions, period)
        expenses = functions.period_expenses(transactions, period)
        current_balance = functions.balance(transactions)

        return LedgerAggregates(
            period=period,
            today=today,
            income=income,
            expenses=expenses,
            balance=current_balance,
            net_worth=functions.net_worth(current_balance, store.goals, cards),
            categories=functions.category_ranking(transactions, self._settings.top_categories),
            tunnel=functions.installment_tunnel(
                transactions,
                cards,
                income,
                horizon=self._settings.tunnel_horizon,
                risk_fraction=self._settings.tunnel_risk_fraction,
            ),
            weekly_burn=functions.weekly_burn(transactions, today),
            monthly_flow=functions.monthly_flow(transactions, today),
            activity=functions.activity_calendar(transactions, today),
            has_transaction_today=functions.has_transaction_on(transactions, today),
        )
