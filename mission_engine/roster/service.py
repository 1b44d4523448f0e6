"""
Roster Service — agents, their units, and per-agent aggregates.
"""

import logging
from typing import Dict, List, Optional, Union
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from mission_engine.catalog.registry import MissionCatalog
from mission_engine.errors import ConflictError, NotFoundError, ValidationError
from mission_engine.models.agent import Agent, AgentStats, Unit
from mission_engine.models.deployment import DeploymentStatus, MissionCompatibility
from mission_engine.models.mission import Personality
from mission_engine.progression.ranks import next_rank_threshold
from mission_engine.runtime.clock import Clock, SystemClock
from mission_engine.scoring.compatibility import (
    calculate_compatibility,
    rank_units_for_mission,
)
from mission_engine.store.game_store import GameStore

logger = logging.getLogger(__name__)


class RosterService:
    """Owns agent and unit records outside of deployments."""

    def __init__(
        self,
        store: GameStore,
        catalog: MissionCatalog,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.clock = clock or SystemClock()

    # --- Agents ---

    def create_agent(self, account_id: str, codename: Optional[str] = None) -> Agent:
        if self.store.get_agent_by_account(account_id) is not None:
            raise ConflictError(f"Agent already exists for account {account_id}")
        agent = Agent(
            agent_id=f"agent_{uuid4().hex[:12]}",
            account_id=account_id,
            codename=codename,
            created_at=self.clock.now(),
        )
        self.store.create_agent(agent)
        logger.info("Created agent %s for account %s", agent.agent_id, account_id)
        return agent

    def get_or_create_agent(self, account_id: str, codename: Optional[str] = None) -> Agent:
        agent = self.store.get_agent_by_account(account_id)
        if agent is not None:
            return agent
        return self.create_agent(account_id, codename)

    def get_agent(self, agent_id: str) -> Agent:
        agent = self.store.get_agent(agent_id)
        if agent is None:
            raise NotFoundError(f"Agent not found: {agent_id}")
        return agent

    # --- Units ---

    def add_unit(
        self,
        agent_id: str,
        nft_id: str,
        name: str,
        personality: Union[Personality, str],
    ) -> Unit:
        """Register a unit for an agent. One unit per NFT per agent."""
        self.get_agent(agent_id)
        try:
            unit = Unit(
                unit_id=f"unit_{uuid4().hex[:12]}",
                agent_id=agent_id,
                nft_id=nft_id,
                name=name,
                personality=personality,
                created_at=self.clock.now(),
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid unit for NFT {nft_id}: {e}") from e
        self.store.create_unit(unit)
        logger.info("Added unit %s (%s) to agent %s", unit.unit_id, name, agent_id)
        return unit

    def available_units(self, agent_id: str) -> List[Unit]:
        return self.store.list_units(agent_id, deployed=False)

    def deployed_units(self, agent_id: str) -> List[dict]:
        """Deployed units, each with its ACTIVE deployment (None if out of sync)."""
        active = {
            d.unit_id: d
            for d in self.store.list_deployments(
                agent_id=agent_id, status=DeploymentStatus.ACTIVE
            )
        }
        return [
            {"unit": unit, "deployment": active.get(unit.unit_id)}
            for unit in self.store.list_units(agent_id, deployed=True)
        ]

    def personality_distribution(self, agent_id: str) -> Dict[Personality, int]:
        distribution = {p: 0 for p in Personality}
        for unit in self.store.list_units(agent_id):
            distribution[unit.personality] += 1
        return distribution

    # --- Aggregates ---

    def agent_stats(self, agent_id: str) -> AgentStats:
        agent = self.get_agent(agent_id)
        deployments = self.store.list_deployments(agent_id=agent_id)

        completed = [d for d in deployments if d.status == DeploymentStatus.COMPLETED]
        successful = [d for d in completed if d.result and d.result.overall_success]

        return AgentStats(
            agent_id=agent.agent_id,
            rank=agent.rank,
            timeline_points=agent.timeline_points,
            next_rank_threshold=next_rank_threshold(agent.rank),
            total_missions=len(deployments),
            active_missions=sum(1 for d in deployments if d.status == DeploymentStatus.ACTIVE),
            completed_missions=len(completed),
            successful_missions=len(successful),
            success_rate=len(successful) / len(completed) if completed else 0.0,
            total_timeline_shift=sum(d.result.timeline_shift for d in completed if d.result),
            unit_count=len(self.store.list_units(agent_id)),
        )

    def suggest_unit_for_mission(
        self, agent_id: str, mission_id: str
    ) -> Optional[dict]:
        """Best available unit for the mission, or None when every unit is busy."""
        template = self.catalog.get(mission_id)
        ranked = rank_units_for_mission(self.available_units(agent_id), template)
        if not ranked:
            return None
        unit, compatibility = ranked[0]
        return {"unit": unit, "compatibility": compatibility}

    def compatibility_for(self, unit_id: str, mission_id: str) -> MissionCompatibility:
        """Score a stored unit against a catalog mission."""
        unit = self.store.get_unit(unit_id)
        if unit is None:
            raise NotFoundError(f"Unit not found: {unit_id}")
        return calculate_compatibility(unit, self.catalog.get(mission_id))
