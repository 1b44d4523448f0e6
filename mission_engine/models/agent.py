"""Agent and Unit — the player's profile and its deployable assets."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from mission_engine.models.mission import Personality


class AgentRank(str, Enum):
    """Rank tiers, derived purely from timeline points."""
    OBSERVER = "OBSERVER"
    FIELD_AGENT = "FIELD_AGENT"
    SENIOR_AGENT = "SENIOR_AGENT"
    ARCHITECT = "ARCHITECT"


class Agent(BaseModel):
    """The player's persistent profile. Owns 0..N units."""

    agent_id: str
    account_id: str
    codename: Optional[str] = None
    timeline_points: int = Field(ge=0, default=0)
    rank: AgentRank = AgentRank.OBSERVER
    created_at: datetime


class Unit(BaseModel):
    """A deployable Proxim8. `is_deployed` mirrors having an ACTIVE deployment."""

    unit_id: str
    agent_id: str
    nft_id: str
    name: str
    personality: Personality
    level: int = Field(ge=1, default=1)
    experience: int = Field(ge=0, default=0)
    is_deployed: bool = False
    last_mission_at: Optional[datetime] = None
    created_at: datetime


class AgentStats(BaseModel):
    """Aggregated mission record of an agent."""

    agent_id: str
    rank: AgentRank
    timeline_points: int
    next_rank_threshold: Optional[int] = None   # None at the top rank
    total_missions: int = 0
    active_missions: int = 0
    completed_missions: int = 0
    successful_missions: int = 0
    success_rate: float = 0.0
    total_timeline_shift: int = 0
    unit_count: int = 0
