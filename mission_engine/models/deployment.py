"""Deployment — the mutable simulation instance and its derived views."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from mission_engine.models.mission import ApproachType


class DeploymentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


class PhaseStatus(str, Enum):
    """Client-visible state of a single phase."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


class MissionCompatibility(BaseModel):
    """Base success probability of a unit on a mission, with its components."""

    overall: float = Field(ge=0.10, le=0.95)
    personality_bonus: float
    experience_bonus: float
    level_bonus: float


class PhaseOutcome(BaseModel):
    """Precomputed outcome of one phase. Only narrative and completed_at change later."""

    phase_id: int = Field(ge=1, le=5)
    success: bool
    narrative: Optional[str] = None
    completed_at: Optional[datetime] = None


class MissionRewards(BaseModel):
    timeline_points: int
    experience: int
    lore_fragments: List[str] = []


class MissionResult(BaseModel):
    """Written exactly once, when the deployment completes."""

    overall_success: bool
    final_narrative: str
    timeline_shift: int
    rewards: MissionRewards


class Deployment(BaseModel):
    """
    One unit assigned to one mission + approach.

    Phase outcomes are generated atomically at creation and only revealed
    as time passes. `current_phase` is an advisory display cache; the
    authoritative value is recomputed from elapsed time.
    """

    deployment_id: str
    mission_id: str
    agent_id: str
    unit_id: str
    approach: ApproachType
    deployed_at: datetime
    completes_at: datetime
    duration_ms: int = Field(gt=0)
    final_success_rate: float = Field(ge=0, le=1)
    compatibility: MissionCompatibility
    phase_outcomes: List[PhaseOutcome] = Field(min_length=5, max_length=5)
    status: DeploymentStatus = DeploymentStatus.ACTIVE
    current_phase: int = Field(ge=0, le=5, default=0)
    result: Optional[MissionResult] = None
    completed_at: Optional[datetime] = None
    updated_at: datetime
    version: int = 0                        # Bumped on every conditional write


class DeploymentProgress(BaseModel):
    """Time-derived progress. Pure function of (deployment, now)."""

    progress: float = Field(ge=0, le=1)
    progress_percent: int
    time_remaining_ms: int
    current_phase: int = Field(ge=1, le=5)
    is_complete: bool


class ClientPhaseView(BaseModel):
    """What a client may see of a phase. Outcome fields stay empty until revealed."""

    phase_id: int
    status: PhaseStatus
    success: Optional[bool] = None
    narrative: Optional[str] = None
    completed_at: Optional[datetime] = None


class DeploymentClientState(BaseModel):
    deployment_id: str
    mission_id: str
    status: DeploymentStatus
    current_phase: int
    deployed_at: datetime
    completes_at: datetime
    phases: List[ClientPhaseView]
    result: Optional[MissionResult] = None


class CompletionOutcome(BaseModel):
    """Return value of complete(). `applied` is False for the losing caller."""

    deployment: Deployment
    applied: bool
