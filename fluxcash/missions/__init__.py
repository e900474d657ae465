"""
Missions Package

Mission catalog, the engine that derives and completes missions, and the
XP/level/belt progression rules.
"""

from fluxcash.missions.catalog import DEFAULT_CATALOG, MissionTemplate
from fluxcash.missions.engine import MissionEngine
from fluxcash.missions.progression import (
    BELTS,
    belt_for_xp,
    belt_progress,
    level_for_xp,
    xp_to_next_level,
)

__all__ = [
    "BELTS",
    "DEFAULT_CATALOG",
    "MissionEngine",
    "MissionTemplate",
    "belt_for_xp",
    "belt_progress",
    "level_for_xp",
    "xp_to_next_level",
]
