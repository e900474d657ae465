"""
Mission Models

Missions are derived, never persisted. Only the fact that a mission id
was completed on a given day is stored (see fluxcash.missions.engine).
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class MissionType(str, Enum):
    HABIT = "habit"
    SAVING = "saving"
    INVESTING = "investing"
    LEARNING = "learning"
    SECURITY = "security"


class Mission(BaseModel):
    """A gamified task tied to the current financial aggregates."""

    id: str = Field(..., min_length=1, description="Stable id from the catalog")
    title: str
    description: str
    category: str = Field(..., description="Display group, e.g. 'Habit', 'Defense'")
    xp: int = Field(..., ge=0, description="XP granted on completion")
    type: MissionType
    icon: str = ""
    action_label: Optional[str] = None
    is_completed: bool = False


class Belt(BaseModel):
    """A named XP tier from the progression guide."""

    rank: int = Field(..., ge=1)
    name: str
    min_xp: int = Field(..., ge=0)
    requirement: str
    wisdom: str


class BeltProgress(BaseModel):
    """Where a given XP total sits between two belts."""

    current: Belt
    next: Optional[Belt] = None
    xp_in_belt: int = Field(..., ge=0)
    xp_needed: int = Field(..., ge=1)
    percent: float = Field(..., ge=0.0, le=100.0)
