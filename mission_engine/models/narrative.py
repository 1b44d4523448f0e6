"""Narrative Context — everything the text collaborator may use for one phase."""

from typing import List, Optional

from pydantic import BaseModel

from mission_engine.models.agent import Unit
from mission_engine.models.deployment import PhaseOutcome
from mission_engine.models.mission import ApproachType, MissionTemplate


class NarrativeContext(BaseModel):
    template: MissionTemplate
    unit: Unit
    approach: ApproachType
    phase_id: int
    phase_success: bool
    previous_phases: List[PhaseOutcome] = []
    agent_codename: Optional[str] = None


class NarrativeResult(BaseModel):
    """
    Result of narrating a phase. Never an exception: when the collaborator
    fails, `fallback` is True, `error` carries the reason and `text` holds
    the static template narrative.
    """

    text: str
    fallback: bool = False
    error: Optional[str] = None
