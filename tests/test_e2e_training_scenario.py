"""
End-to-end test: the training campaign.

  1. An agent registers an ANALYTICAL unit (level 5, 300 experience)
  2. The unit is deployed on training_001 with the MEDIUM approach
  3. Phases reveal progressively while the clock advances
  4. The sweep completes the deployment once its time is up
  5. Rewards land exactly once and training_002 unlocks
  6. The rest of the campaign is played through in order
"""

import pytest

from mission_engine.catalog.registry import default_catalog
from mission_engine.deployment.lifecycle import DeploymentManager
from mission_engine.errors import ConflictError
from mission_engine.models.deployment import DeploymentStatus, PhaseStatus
from mission_engine.models.mission import Personality
from mission_engine.roster.service import RosterService
from mission_engine.runtime.clock import ManualClock
from mission_engine.runtime.random_source import SeededRandomSource
from mission_engine.scheduler.sweep import MissionSweeper
from mission_engine.store.game_store import GameStore


class TestTrainingScenarioE2E:
    """Full end-to-end run of the training campaign."""

    def setup_method(self):
        self.clock = ManualClock()
        self.store = GameStore(db_path=":memory:")
        self.catalog = default_catalog()
        self.roster = RosterService(self.store, self.catalog, clock=self.clock)
        self.manager = DeploymentManager(
            self.store, self.catalog, clock=self.clock, rng=SeededRandomSource(2026)
        )
        self.sweeper = MissionSweeper(self.manager)

        self.agent = self.roster.create_agent("acct_e2e", codename="NOVA")
        unit = self.roster.add_unit(
            self.agent.agent_id, "nft_e2e", "Echo", Personality.ANALYTICAL
        )
        self.unit = self.store.update_unit(unit.model_copy(update={"level": 5, "experience": 300}))

    def test_first_mission_lifecycle(self):
        deployment = self.manager.deploy(
            self.agent.agent_id, "training_001", self.unit.unit_id, "MEDIUM"
        )
        assert 0.80 <= deployment.compatibility.overall <= 0.93
        assert deployment.compatibility.overall == pytest.approx(0.91)
        assert 0.10 <= deployment.final_success_rate <= 0.95

        # Second mission stays locked while the first is running
        with pytest.raises(ConflictError):
            self.manager.deploy(self.agent.agent_id, "training_002", self.unit.unit_id, "LOW")

        # Halfway: phases 1 and 2 revealed, the rest still pending
        self.clock.advance(minutes=15)
        state = self.manager.get_client_state(self.manager.get_deployment(deployment.deployment_id))
        assert [p.status for p in state.phases[2:]] == [PhaseStatus.PENDING] * 3
        assert all(
            p.status in (PhaseStatus.SUCCESS, PhaseStatus.FAILURE) for p in state.phases[:2]
        )

        # Not due yet: the sweep leaves it alone
        assert self.sweeper.complete_expired_missions().affected_records == 0

        self.clock.advance(minutes=15, seconds=1)
        sweep = self.sweeper.complete_expired_missions()
        assert sweep.affected_records == 1

        completed = self.manager.get_deployment(deployment.deployment_id)
        assert completed.status == DeploymentStatus.COMPLETED
        assert completed.result is not None

        agent = self.store.get_agent(self.agent.agent_id)
        unit = self.store.get_unit(self.unit.unit_id)
        assert unit.is_deployed is False
        assert agent.timeline_points == completed.result.rewards.timeline_points
        assert unit.experience == 300 + completed.result.rewards.experience

        # Sweeping again changes nothing
        assert self.sweeper.complete_expired_missions().affected_records == 0
        assert self.store.get_agent(self.agent.agent_id).timeline_points == agent.timeline_points

        # Client view now carries the result and every narrative
        final_state = self.manager.get_client_state(completed)
        assert final_state.result == completed.result
        assert all(p.narrative for p in final_state.phases)

        assert self.manager.can_access_mission(self.agent.agent_id, "training_002")

    def test_full_campaign(self):
        total_points = 0
        for template in self.catalog.list():
            deployment = self.manager.deploy(
                self.agent.agent_id, template.mission_id, self.unit.unit_id, "LOW"
            )
            self.clock.advance(milliseconds=template.duration_ms)
            self.sweeper.run_all()

            completed = self.manager.get_deployment(deployment.deployment_id)
            assert completed.status == DeploymentStatus.COMPLETED
            total_points += completed.result.timeline_shift

        stats = self.roster.agent_stats(self.agent.agent_id)
        assert stats.completed_missions == 7
        assert stats.total_timeline_shift == total_points
        assert stats.timeline_points == total_points
        board = self.manager.mission_board(self.agent.agent_id)
        assert all(entry["completed"] for entry in board)
