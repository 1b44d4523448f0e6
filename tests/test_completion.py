"""Tests for deployment completion: rewards, majority rule, exactly-once."""

import itertools
import threading

import pytest

from mission_engine.catalog.registry import default_catalog
from mission_engine.deployment.lifecycle import DeploymentManager, is_overall_success
from mission_engine.errors import ConflictError
from mission_engine.models.agent import AgentRank
from mission_engine.models.deployment import DeploymentStatus, PhaseOutcome
from mission_engine.models.mission import Personality
from mission_engine.roster.service import RosterService
from mission_engine.runtime.clock import ManualClock
from mission_engine.runtime.random_source import ScriptedRandomSource, SeededRandomSource
from mission_engine.store.game_store import GameStore


def _script(pattern, shift_draw: float = 0.0):
    values = [0.5]
    for success in pattern:
        values += [0.5, 0.0 if success else 0.999]
    values.append(shift_draw)
    return ScriptedRandomSource(values)


class TestCompletion:
    def setup_method(self):
        self.clock = ManualClock()
        self.store = GameStore(db_path=":memory:")
        catalog = default_catalog()
        self.roster = RosterService(self.store, catalog, clock=self.clock)
        self.manager = DeploymentManager(self.store, catalog, clock=self.clock)
        self.agent = self.roster.create_agent("acct_1", codename="NOVA")
        self.unit = self.roster.add_unit(
            self.agent.agent_id, "nft_1", "Echo", Personality.ANALYTICAL
        )

    def _run_mission(self, pattern, shift_draw=0.0, mission_id="training_001"):
        self.manager.rng = _script(pattern, shift_draw)
        deployment = self.manager.deploy(
            self.agent.agent_id, mission_id, self.unit.unit_id, "MEDIUM"
        )
        self.clock.advance(milliseconds=deployment.duration_ms)
        return self.manager.complete(deployment.deployment_id)

    def test_successful_mission_rewards(self):
        # MEDIUM shift range on training_001 is [4, 7]
        outcome = self._run_mission([True, True, True, False, False])
        result = outcome.deployment.result

        assert outcome.applied is True
        assert outcome.deployment.status == DeploymentStatus.COMPLETED
        assert outcome.deployment.current_phase == 5
        assert outcome.deployment.completed_at == self.clock.now()
        assert result.overall_success is True
        assert result.timeline_shift == 4
        assert result.rewards.timeline_points == 4
        assert result.rewards.experience == 50
        assert result.rewards.lore_fragments == ["lore_fragment_training_001"]
        assert result.final_narrative == (
            "Mission completed successfully. Timeline shifted by 4 points."
        )

    def test_partial_mission_halves_rewards(self):
        outcome = self._run_mission([True, True, False, False, False])
        result = outcome.deployment.result

        assert result.overall_success is False
        assert result.timeline_shift == 2
        assert result.rewards.experience == 25
        assert result.rewards.lore_fragments == []
        assert result.final_narrative.startswith("Mission partially successful.")

    def test_rewards_applied_to_agent_and_unit(self):
        outcome = self._run_mission([True] * 5, shift_draw=0.9)
        shift = outcome.deployment.result.timeline_shift

        agent = self.store.get_agent(self.agent.agent_id)
        unit = self.store.get_unit(self.unit.unit_id)
        assert agent.timeline_points == shift
        assert unit.experience == 50
        assert unit.is_deployed is False

    def test_all_phases_narrated_on_completion(self):
        outcome = self._run_mission([True, False, True, False, True])
        phases = outcome.deployment.phase_outcomes
        assert all(p.narrative for p in phases)
        assert all(p.completed_at is not None for p in phases)
        assert "Echo" in phases[0].narrative

    def test_completion_before_due_rejected(self):
        self.manager.rng = _script([True] * 5)
        deployment = self.manager.deploy(
            self.agent.agent_id, "training_001", self.unit.unit_id, "MEDIUM"
        )
        self.clock.advance(minutes=29)
        with pytest.raises(ConflictError, match="still in progress"):
            self.manager.complete(deployment.deployment_id)
        assert self.store.get_deployment(deployment.deployment_id).status == DeploymentStatus.ACTIVE

    def test_second_completion_is_noop(self):
        outcome = self._run_mission([True] * 5)
        again = self.manager.complete(outcome.deployment.deployment_id)

        assert again.applied is False
        assert again.deployment.result == outcome.deployment.result
        agent = self.store.get_agent(self.agent.agent_id)
        assert agent.timeline_points == outcome.deployment.result.timeline_shift
        assert self.store.get_unit(self.unit.unit_id).experience == 50

    def test_concurrent_completion_applies_once(self):
        self.manager.rng = _script([True] * 5)
        deployment = self.manager.deploy(
            self.agent.agent_id, "training_001", self.unit.unit_id, "MEDIUM"
        )
        self.clock.advance(minutes=30)
        self.manager.rng = SeededRandomSource(7)

        outcomes = []
        errors = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            try:
                outcomes.append(self.manager.complete(deployment.deployment_id))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        applied = [o for o in outcomes if o.applied]
        assert len(applied) == 1
        agent = self.store.get_agent(self.agent.agent_id)
        assert agent.timeline_points == applied[0].deployment.result.timeline_shift
        assert self.store.get_unit(self.unit.unit_id).experience == 50

    def test_majority_rule_over_every_pattern(self):
        for pattern in itertools.product([True, False], repeat=5):
            outcome = self._run_mission(list(pattern))
            result = outcome.deployment.result
            expected = sum(pattern) >= 3
            assert result.overall_success is expected, pattern
            assert bool(result.rewards.lore_fragments) is expected

    def test_is_overall_success(self):
        outcomes = [PhaseOutcome(phase_id=i, success=i <= 3) for i in range(1, 6)]
        assert is_overall_success(outcomes)
        outcomes[0] = PhaseOutcome(phase_id=1, success=False)
        assert not is_overall_success(outcomes)

    def test_rank_and_level_progression(self):
        agent = self.store.get_agent(self.agent.agent_id)
        self.store.update_agent(agent.model_copy(update={"timeline_points": 98}))

        self._run_mission([True] * 5, shift_draw=0.0)
        agent = self.store.get_agent(self.agent.agent_id)
        assert agent.timeline_points == 102
        assert agent.rank == AgentRank.FIELD_AGENT

        self._run_mission([True] * 5)
        assert self.store.get_unit(self.unit.unit_id).level == 2
