"""
Progression Rules

Levels are a fixed step function of XP. Belts are the named tiers of the
progression guide, each with a real-world goal and a piece of advice.
"""

from fluxcash.models.ledger import XP_PER_LEVEL, level_for_xp
from fluxcash.models.mission import Belt, BeltProgress


# Span used for the progress bar once the last belt is reached
LAST_BELT_SPAN = 10000

BELTS: tuple[Belt, ...] = (
    Belt(
        rank=1,
        name="Faixa Branca",
        min_xp=0,
        requirement="Registrar gastos por 7 dias seguidos.",
        wisdom="A consciência precede o controle. Você não pode gerenciar o que não mede.",
    ),
    Belt(
        rank=2,
        name="Faixa Amarela",
        min_xp=1000,
        requirement="Saldo positivo no fim do mês.",
        wisdom="Gastar menos do que ganha é a lei fundamental da riqueza.",
    ),
    Belt(
        rank=3,
        name="Faixa Azul",
        min_xp=3000,
        requirement="Reserva de Emergência (3 meses).",
        wisdom="A segurança financeira elimina a ansiedade e permite decisões inteligentes.",
    ),
    Belt(
        rank=4,
        name="Faixa Roxa",
        min_xp=6000,
        requirement="Investir 20% da renda mensal.",
        wisdom='Pague-se primeiro. O seu "eu" do futuro agradecerá.',
    ),
    Belt(
        rank=5,
        name="Faixa Preta",
        min_xp=15000,
        requirement="Patrimônio Líquido > R$ 1 Milhão.",
        wisdom="Liberdade. O dinheiro agora trabalha para você, não o contrário.",
    ),
)


def xp_to_next_level(xp: int) -> int:
    """XP still missing for the next level."""
    return level_for_xp(xp) * XP_PER_LEVEL - xp


def belt_for_xp(xp: int) -> Belt:
    if xp < 0:
        raise ValueError("XP cannot be negative")
    current = BELTS[0]
    for belt in BELTS:
        if xp >= belt.min_xp:
            current = belt
    return current


def belt_progress(xp: int) -> BeltProgress:
    """Current belt, the next one, and how far along the way the user is."""
    current = belt_for_xp(xp)
    following = [b for b in BELTS if b.rank == current.rank + 1]
    next_belt = following[0] if following else None

    xp_in_belt = xp - current.min_xp
    xp_needed = next_belt.min_xp - current.min_xp if next_belt else LAST_BELT_SPAN
    percent = min(100.0, max(0.0, xp_in_belt / xp_needed * 100))

    return BeltProgress(
        current=current,
        next=next_belt,
        xp_in_belt=xp_in_belt,
        xp_needed=xp_needed,
        percent=percent,
    )


__all__ = [
    "BELTS",
    "LAST_BELT_SPAN",
    "XP_PER_LEVEL",
    "belt_for_xp",
    "belt_progress",
    "level_for_xp",
    "xp_to_next_level",
]
