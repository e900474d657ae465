"""
Mission Catalog

The fixed, ordered list of mission templates. A template with no guard
is evergreen; the others appear only while their guard holds for the
current aggregates.
"""

from decimal import Decimal
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from fluxcash.config.settings import InsightSettings
from fluxcash.models.insights import LedgerAggregates
from fluxcash.models.mission import Mission, MissionType


Guard = Callable[[LedgerAggregates, InsightSettings], bool]


class MissionTemplate(BaseModel):
    """Static description of a mission plus its eligibility rules."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str
    title: str
    description: str
    category: str
    xp: int = Field(..., ge=0)
    type: MissionType
    icon: str = ""
    action_label: Optional[str] = None

    # None means always eligible
    guard: Optional[Guard] = None
    # Completed without an explicit complete() call when this holds
    auto_complete: Optional[Callable[[LedgerAggregates], bool]] = None

    def is_eligible(self, aggregates: LedgerAggregates, settings: InsightSettings) -> bool:
        return self.guard is None or self.guard(aggregates, settings)

    def build(self, aggregates: LedgerAggregates, completed: bool) -> Mission:
        done = completed or (self.auto_complete is not None and self.auto_complete(aggregates))
        return Mission(
            id=self.id,
            title=self.title,
            description=self.description,
            category=self.category,
            xp=self.xp,
            type=self.type,
            icon=self.icon,
            action_label=self.action_label,
            is_completed=done,
        )


def _spending_brake(aggregates: LedgerAggregates, settings: InsightSettings) -> bool:
    ratio = Decimal(str(settings.defense_mode_ratio))
    return aggregates.income > 0 and aggregates.expenses > aggregates.income * ratio


def _free_capital(aggregates: LedgerAggregates, settings: InsightSettings) -> bool:
    return aggregates.balance > Decimal(str(settings.invest_balance_threshold))


DEFAULT_CATALOG: tuple[MissionTemplate, ...] = (
    MissionTemplate(
        id="daily_log",
        title="Check-in da Riqueza",
        description="Milionários sabem para onde vai cada centavo. Registre 1 movimentação hoje.",
        category="Hábito",
        xp=100,
        type=MissionType.HABIT,
        icon="edit_square",
        action_label="Registrar Agora",
        auto_complete=lambda aggregates: aggregates.has_transaction_today,
    ),
    MissionTemplate(
        id="defense_mode",
        title="Modo Defesa Ativo",
        description='Você atingiu 40% da renda mensal. A missão é: "Gasto Zero" hoje.',
        category="Proteção",
        xp=250,
        type=MissionType.SAVING,
        icon="shield_lock",
        action_label="Confirmar Economia",
        guard=_spending_brake,
    ),
    MissionTemplate(
        id="invest_now",
        title="O Dinheiro não Dorme",
        description="Capital livre detectado. Invista R$ 100 em uma meta ou CDB.",
        category="Ataque",
        xp=500,
        type=MissionType.INVESTING,
        icon="rocket_launch",
        action_label="Ver Carteira",
        guard=_free_capital,
    ),
    MissionTemplate(
        id="review_week",
        title="Visão de Águia",
        description='Abra a aba "Analytics" e analise sua maior categoria de gasto.',
        category="Sabedoria",
        xp=150,
        type=MissionType.LEARNING,
        icon="query_stats",
        action_label="Ir para Analytics",
    ),
)
