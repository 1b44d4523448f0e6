"""Mission Template — immutable, pre-authored mission definitions."""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class Personality(str, Enum):
    ANALYTICAL = "ANALYTICAL"
    AGGRESSIVE = "AGGRESSIVE"
    DIPLOMATIC = "DIPLOMATIC"
    ADAPTIVE = "ADAPTIVE"


class ApproachType(str, Enum):
    """Risk tier chosen at deploy time."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ThreatLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RateRange(BaseModel):
    """Closed numeric interval a uniform draw is taken from."""

    model_config = ConfigDict(frozen=True)

    min: float
    max: float


class MissionApproach(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ApproachType
    name: str
    description: str
    success_rate: RateRange
    timeline_shift: RateRange


class CompatibilityRule(BaseModel):
    """Which personalities the mission favours, and by how much."""

    model_config = ConfigDict(frozen=True)

    preferred: List[Personality]
    bonus: float
    penalty: float                          # Negative


class NarrativeTemplates(BaseModel):
    """Static phase narratives. `{unit_name}` is substituted at render time."""

    model_config = ConfigDict(frozen=True)

    success: str
    failure: str


class MissionPhase(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase_id: int = Field(ge=1, le=5)
    name: str
    duration_percent: int = Field(ge=0, le=100)
    narrative_templates: NarrativeTemplates


class MissionBriefing(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    current_balance: int                    # Oneirocom control, percent
    threat_level: ThreatLevel


class MissionTemplate(BaseModel):
    """
    A pre-authored mission. Loaded once from the catalog, never mutated.

    `sequence` defines unlock order: a mission with sequence N requires a
    completed deployment of mission N-1 by the same agent.
    """

    model_config = ConfigDict(frozen=True)

    mission_id: str
    sequence: int = Field(ge=1)
    title: str
    date: str
    location: str
    description: str
    duration_ms: int = Field(gt=0)          # Total wall-clock duration
    briefing: MissionBriefing
    approaches: List[MissionApproach]
    compatibility: CompatibilityRule
    phases: List[MissionPhase]

    def get_phase(self, phase_id: int) -> MissionPhase:
        for phase in self.phases:
            if phase.phase_id == phase_id:
                return phase
        raise KeyError(phase_id)
