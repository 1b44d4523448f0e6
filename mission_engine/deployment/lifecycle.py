"""
Deployment Lifecycle Manager — owns every deployment state transition.

States:
  ACTIVE → COMPLETED   (complete(), exactly once, rewards applied)
  ACTIVE → ABANDONED   (abandon(), no rewards)

Behavioral Contract:
- deploy() and complete() validate every precondition before writing; a
  failed call leaves no partial state behind.
- Phase outcomes are generated once, at deploy time. Afterwards they are
  only revealed (by elapsed time) and narrated, never re-rolled.
- Read views (get_progress, should_reveal_phase, get_client_state) are pure
  functions of the deployment and the clock.
- complete() is safe to race: the status compare-and-swap in the store
  lets exactly one caller apply rewards; the others get applied=False.
"""

import logging
import math
from datetime import timedelta
from typing import List, Optional, Union
from uuid import uuid4

from mission_engine.catalog.registry import MissionCatalog
from mission_engine.errors import ConflictError, NotFoundError, ValidationError
from mission_engine.models.agent import Agent, Unit
from mission_engine.models.deployment import (
    ClientPhaseView,
    CompletionOutcome,
    Deployment,
    DeploymentClientState,
    DeploymentProgress,
    DeploymentStatus,
    MissionResult,
    MissionRewards,
    PhaseOutcome,
    PhaseStatus,
)
from mission_engine.models.mission import ApproachType, MissionTemplate
from mission_engine.models.narrative import NarrativeContext
from mission_engine.models.scheduler import EngineConfig
from mission_engine.narrative.generator import NarrativeService
from mission_engine.progression.ranks import apply_level_up, calculate_rank
from mission_engine.runtime.clock import Clock, SystemClock
from mission_engine.runtime.random_source import (
    RandomSource,
    SeededRandomSource,
    uniform,
)
from mission_engine.scoring.compatibility import calculate_compatibility, clamp
from mission_engine.scoring.outcomes import PHASE_COUNT, generate_phase_outcomes
from mission_engine.store.game_store import GameStore

logger = logging.getLogger(__name__)

# Fraction of the mission duration after which each phase is revealed.
PHASE_REVEAL_THRESHOLDS = [0.2, 0.45, 0.7, 0.9, 1.0]

MAJORITY_SUCCESS = 3
SUCCESS_MULTIPLIER = 1.0
PARTIAL_MULTIPLIER = 0.5
EXPERIENCE_PER_SEQUENCE = 50


def is_overall_success(outcomes: List[PhaseOutcome]) -> bool:
    """Majority rule over the five phases."""
    return sum(1 for p in outcomes if p.success) >= MAJORITY_SUCCESS


def lore_fragment_for(mission_id: str) -> str:
    return f"lore_fragment_{mission_id}"


class DeploymentManager:
    """Creates, reveals, completes and abandons deployments."""

    def __init__(
        self,
        store: GameStore,
        catalog: MissionCatalog,
        narrative: Optional[NarrativeService] = None,
        clock: Optional[Clock] = None,
        rng: Optional[RandomSource] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.narrative = narrative or NarrativeService()
        self.clock = clock or SystemClock()
        self.rng = rng or SeededRandomSource()
        self.config = config or EngineConfig()

    # --- Access gating ---

    def can_access_mission(self, agent_id: str, mission_id: str) -> bool:
        """First mission is always open; later ones need the previous one completed."""
        template = self.catalog.find(mission_id)
        if template is None:
            return False
        previous = self.catalog.previous(template)
        if previous is None:
            return True
        return self.store.has_completed_mission(agent_id, previous.mission_id)

    def mission_board(self, agent_id: str) -> List[dict]:
        """Every template with the agent's unlock and completion state."""
        board = []
        for template in self.catalog.list():
            board.append({
                "mission": template,
                "unlocked": self.can_access_mission(agent_id, template.mission_id),
                "completed": self.store.has_completed_mission(agent_id, template.mission_id),
            })
        return board

    # --- Deploy ---

    def deploy(
        self,
        agent_id: str,
        mission_id: str,
        unit_id: str,
        approach: Union[ApproachType, str],
    ) -> Deployment:
        """
        Put a unit on a mission.

        Raises ValidationError (bad approach), NotFoundError (agent, unit or
        mission missing, or unit not owned by agent), ConflictError (unit
        already deployed, prerequisite mission incomplete).
        """
        try:
            approach_type = ApproachType(approach)
        except ValueError:
            raise ValidationError(f"Invalid approach: {approach}")

        template = self.catalog.get(mission_id)

        agent = self.store.get_agent(agent_id)
        if agent is None:
            raise NotFoundError(f"Agent not found: {agent_id}")

        unit = self.store.get_unit(unit_id)
        if unit is None or unit.agent_id != agent_id:
            raise NotFoundError(f"Unit {unit_id} not found or not owned by agent {agent_id}")

        if unit.is_deployed:
            raise ConflictError("Unit already deployed")

        if not self.can_access_mission(agent_id, mission_id):
            raise ConflictError(
                "Prerequisite mission incomplete: complete the previous mission first"
            )

        compatibility = calculate_compatibility(unit, template)
        draw = generate_phase_outcomes(
            template, compatibility.overall, approach_type, self.rng
        )

        deployed_at = self.clock.now()
        deployment = Deployment(
            deployment_id=f"{self.config.deployment_id_prefix}_{uuid4().hex[:12]}",
            mission_id=mission_id,
            agent_id=agent_id,
            unit_id=unit_id,
            approach=approach_type,
            deployed_at=deployed_at,
            completes_at=deployed_at + timedelta(milliseconds=template.duration_ms),
            duration_ms=template.duration_ms,
            final_success_rate=draw.final_rate,
            compatibility=compatibility,
            phase_outcomes=draw.outcomes,
            status=DeploymentStatus.ACTIVE,
            current_phase=0,
            updated_at=deployed_at,
        )

        with self.store.transaction():
            if self.store.claim_unit(unit_id, deployed_at) is None:
                raise ConflictError("Unit already deployed")
            self.store.create_deployment(deployment)

        logger.info(
            "Deployed unit %s on %s (%s), success rate %.3f, completes at %s",
            unit_id,
            mission_id,
            approach_type.value,
            draw.final_rate,
            deployment.completes_at.isoformat(),
        )
        return deployment

    # --- Read views ---

    def get_deployment(self, deployment_id: str) -> Deployment:
        deployment = self.store.get_deployment(deployment_id)
        if deployment is None:
            raise NotFoundError(f"Deployment not found: {deployment_id}")
        return deployment

    def _elapsed_fraction(self, deployment: Deployment) -> float:
        elapsed_ms = (self.clock.now() - deployment.deployed_at).total_seconds() * 1000
        return elapsed_ms / deployment.duration_ms

    def get_progress(self, deployment: Deployment) -> DeploymentProgress:
        now = self.clock.now()
        progress = clamp(self._elapsed_fraction(deployment), 0.0, 1.0)
        remaining_ms = (deployment.completes_at - now).total_seconds() * 1000
        return DeploymentProgress(
            progress=progress,
            progress_percent=round(progress * 100),
            time_remaining_ms=max(0, int(remaining_ms)),
            current_phase=min(PHASE_COUNT, math.floor(progress * PHASE_COUNT) + 1),
            is_complete=progress >= 1,
        )

    def should_reveal_phase(self, deployment: Deployment, phase_id: int) -> bool:
        if not 1 <= phase_id <= PHASE_COUNT:
            raise ValidationError(f"Invalid phase id: {phase_id}")
        if deployment.status != DeploymentStatus.ACTIVE:
            return True
        return self._elapsed_fraction(deployment) >= PHASE_REVEAL_THRESHOLDS[phase_id - 1]

    def get_client_state(self, deployment: Deployment) -> DeploymentClientState:
        """Client-safe view. Unrevealed phases are pending and carry no outcome."""
        phases = []
        for outcome in deployment.phase_outcomes:
            if self.should_reveal_phase(deployment, outcome.phase_id):
                phases.append(ClientPhaseView(
                    phase_id=outcome.phase_id,
                    status=PhaseStatus.SUCCESS if outcome.success else PhaseStatus.FAILURE,
                    success=outcome.success,
                    narrative=outcome.narrative or self.config.in_progress_narrative,
                    completed_at=outcome.completed_at,
                ))
            else:
                phases.append(ClientPhaseView(phase_id=outcome.phase_id, status=PhaseStatus.PENDING))

        return DeploymentClientState(
            deployment_id=deployment.deployment_id,
            mission_id=deployment.mission_id,
            status=deployment.status,
            current_phase=deployment.current_phase,
            deployed_at=deployment.deployed_at,
            completes_at=deployment.completes_at,
            phases=phases,
            result=(
                deployment.result
                if deployment.status == DeploymentStatus.COMPLETED
                else None
            ),
        )

    def get_deployment_status(self, deployment_id: str) -> dict:
        """
        Client state plus time-derived progress, as served to clients.
        A due ACTIVE deployment is completed first, so the caller sees the result.
        """
        deployment = self.get_deployment(deployment_id)
        if (
            deployment.status == DeploymentStatus.ACTIVE
            and self.clock.now() >= deployment.completes_at
        ):
            deployment = self.complete(deployment_id).deployment
        return {
            "deployment": self.get_client_state(deployment),
            "progress": self.get_progress(deployment),
        }

    # --- Narratives ---

    def _narrate_phases(
        self,
        deployment: Deployment,
        template: MissionTemplate,
        unit: Unit,
        agent: Optional[Agent],
        reveal_all: bool,
    ) -> List[PhaseOutcome]:
        """Copy of the outcomes with narratives filled for revealed phases lacking one."""
        now = self.clock.now()
        outcomes = [p.model_copy() for p in deployment.phase_outcomes]
        for i, phase in enumerate(outcomes):
            if phase.narrative:
                continue
            if not reveal_all and not self.should_reveal_phase(deployment, phase.phase_id):
                continue
            context = NarrativeContext(
                template=template,
                unit=unit,
                approach=deployment.approach,
                phase_id=phase.phase_id,
                phase_success=phase.success,
                previous_phases=outcomes[:i],
                agent_codename=agent.codename if agent else None,
            )
            phase.narrative = self.narrative.narrate(context).text
            phase.completed_at = now
        return outcomes

    def fill_revealed_narratives(self, deployment: Deployment) -> int:
        """
        Narrate revealed phases of an ACTIVE deployment. Returns how many
        phases were narrated; 0 if nothing was due or the deployment left
        ACTIVE meanwhile.
        """
        if deployment.status != DeploymentStatus.ACTIVE:
            return 0
        template = self.catalog.get(deployment.mission_id)
        unit = self.store.get_unit(deployment.unit_id)
        if unit is None:
            raise NotFoundError(f"Unit not found: {deployment.unit_id}")
        agent = self.store.get_agent(deployment.agent_id)

        outcomes = self._narrate_phases(deployment, template, unit, agent, reveal_all=False)
        narrated = sum(
            1 for before, after in zip(deployment.phase_outcomes, outcomes)
            if before.narrative != after.narrative
        )
        if narrated == 0:
            return 0

        updated = self.store.update_deployment(
            deployment.deployment_id,
            {"phase_outcomes": outcomes, "updated_at": self.clock.now()},
            expected_status=DeploymentStatus.ACTIVE,
        )
        return narrated if updated else 0

    def refresh_current_phase(self, deployment: Deployment) -> bool:
        """Advance the cached current_phase. Advisory only."""
        if deployment.status != DeploymentStatus.ACTIVE:
            return False
        phase = self.get_progress(deployment).current_phase
        if phase == deployment.current_phase:
            return False
        updated = self.store.update_deployment(
            deployment.deployment_id,
            {"current_phase": phase, "updated_at": self.clock.now()},
            expected_status=DeploymentStatus.ACTIVE,
        )
        return updated is not None

    # --- Completion ---

    def _build_result(
        self, deployment: Deployment, template: MissionTemplate
    ) -> MissionResult:
        overall_success = is_overall_success(deployment.phase_outcomes)
        approach = self.catalog.get_approach(template, deployment.approach)

        multiplier = SUCCESS_MULTIPLIER if overall_success else PARTIAL_MULTIPLIER
        timeline_shift = round(uniform(self.rng, approach.timeline_shift) * multiplier)
        experience = round(EXPERIENCE_PER_SEQUENCE * template.sequence * multiplier)

        final_narrative = (
            f"Mission {'completed successfully' if overall_success else 'partially successful'}. "
            f"Timeline shifted by {timeline_shift} points."
        )
        return MissionResult(
            overall_success=overall_success,
            final_narrative=final_narrative,
            timeline_shift=timeline_shift,
            rewards=MissionRewards(
                timeline_points=timeline_shift,
                experience=experience,
                lore_fragments=(
                    [lore_fragment_for(deployment.mission_id)] if overall_success else []
                ),
            ),
        )

    def complete(self, deployment_id: str) -> CompletionOutcome:
        """
        Finalize a deployment and apply rewards, exactly once.

        A deployment that is no longer ACTIVE is a no-op (applied=False),
        whether it was finished by an earlier call or a concurrent one.
        Raises ConflictError while the mission time has not run out.
        """
        deployment = self.get_deployment(deployment_id)
        if deployment.status != DeploymentStatus.ACTIVE:
            return CompletionOutcome(deployment=deployment, applied=False)
        if self.clock.now() < deployment.completes_at:
            raise ConflictError(
                f"Deployment {deployment_id} still in progress until "
                f"{deployment.completes_at.isoformat()}"
            )

        template = self.catalog.get(deployment.mission_id)
        unit = self.store.get_unit(deployment.unit_id)
        if unit is None:
            raise NotFoundError(f"Unit not found: {deployment.unit_id}")
        agent = self.store.get_agent(deployment.agent_id)
        if agent is None:
            raise NotFoundError(f"Agent not found: {deployment.agent_id}")

        result = self._build_result(deployment, template)
        outcomes = self._narrate_phases(deployment, template, unit, agent, reveal_all=True)
        now = self.clock.now()

        with self.store.transaction():
            updated = self.store.update_deployment(
                deployment_id,
                {
                    "status": DeploymentStatus.COMPLETED,
                    "result": result,
                    "phase_outcomes": outcomes,
                    "current_phase": PHASE_COUNT,
                    "completed_at": now,
                    "updated_at": now,
                },
                expected_status=DeploymentStatus.ACTIVE,
            )
            if updated is None:
                current = self.get_deployment(deployment_id)
                logger.info("Deployment %s already finalized, skipping", deployment_id)
                return CompletionOutcome(deployment=current, applied=False)

            agent = self.store.increment_agent_points(
                deployment.agent_id, result.rewards.timeline_points
            )
            agent.rank = calculate_rank(agent.timeline_points)
            self.store.update_agent(agent)

            # Re-read inside the transaction so concurrent unit writes are not lost.
            unit = self.store.get_unit(deployment.unit_id)
            if unit is None:
                raise NotFoundError(f"Unit vanished while completing {deployment_id}")
            unit.experience += result.rewards.experience
            unit.level = apply_level_up(unit.level, unit.experience)
            unit.is_deployed = False
            self.store.update_unit(unit)

        logger.info(
            "Completed deployment %s for agent %s: success=%s shift=%d xp=%d",
            deployment_id,
            deployment.agent_id,
            result.overall_success,
            result.timeline_shift,
            result.rewards.experience,
        )
        return CompletionOutcome(deployment=updated, applied=True)

    def abandon(self, deployment_id: str) -> Deployment:
        """Terminate an ACTIVE deployment without rewards and free the unit."""
        deployment = self.get_deployment(deployment_id)
        if deployment.status != DeploymentStatus.ACTIVE:
            raise ConflictError(
                f"Deployment {deployment_id} is {deployment.status.value}, not ACTIVE"
            )

        now = self.clock.now()
        with self.store.transaction():
            updated = self.store.update_deployment(
                deployment_id,
                {"status": DeploymentStatus.ABANDONED, "updated_at": now},
                expected_status=DeploymentStatus.ACTIVE,
            )
            if updated is None:
                raise ConflictError(f"Deployment {deployment_id} is no longer ACTIVE")
            self.store.release_unit(deployment.unit_id)

        logger.info("Abandoned deployment %s", deployment_id)
        return updated
