"""Tests for the Deployment Lifecycle Manager: deploy, progress and reveal."""

import threading
from types import SimpleNamespace

import pytest

from mission_engine.catalog.registry import default_catalog
from mission_engine.deployment.lifecycle import DeploymentManager
from mission_engine.errors import ConflictError, NotFoundError, ValidationError
from mission_engine.models.deployment import DeploymentStatus, PhaseStatus
from mission_engine.models.mission import Personality
from mission_engine.roster.service import RosterService
from mission_engine.runtime.clock import ManualClock
from mission_engine.runtime.random_source import ScriptedRandomSource, SeededRandomSource
from mission_engine.store.game_store import GameStore


def _script(pattern, approach_draw: float = 0.5, shift_draw: float = 0.0):
    """Draws for one deploy forcing `pattern`, plus the completion shift draw."""
    values = [approach_draw]
    for success in pattern:
        values += [0.5, 0.0 if success else 0.999]
    values.append(shift_draw)
    return ScriptedRandomSource(values)


def _make_engine(personality: Personality = Personality.ANALYTICAL) -> SimpleNamespace:
    clock = ManualClock()
    store = GameStore(db_path=":memory:")
    catalog = default_catalog()
    roster = RosterService(store, catalog, clock=clock)
    manager = DeploymentManager(store, catalog, clock=clock, rng=_script([True] * 5))
    agent = roster.create_agent("acct_1", codename="NOVA")
    unit = roster.add_unit(agent.agent_id, "nft_1", "Echo", personality)
    return SimpleNamespace(
        clock=clock, store=store, catalog=catalog, roster=roster,
        manager=manager, agent=agent, unit=unit,
    )


class TestDeploy:
    def setup_method(self):
        self.engine = _make_engine()
        self.manager = self.engine.manager

    def _deploy(self, mission_id="training_001", approach="MEDIUM"):
        return self.manager.deploy(
            self.engine.agent.agent_id, mission_id, self.engine.unit.unit_id, approach
        )

    def test_deploy_creates_active_deployment(self):
        deployment = self._deploy()

        assert deployment.status == DeploymentStatus.ACTIVE
        assert deployment.deployment_id.startswith("training_deploy_")
        assert deployment.deployed_at == self.engine.clock.now()
        assert (deployment.completes_at - deployment.deployed_at).total_seconds() == 30 * 60
        assert deployment.final_success_rate == pytest.approx((0.80 + 0.70) / 2)
        assert self.engine.store.get_unit(self.engine.unit.unit_id).is_deployed

    def test_invalid_approach(self):
        with pytest.raises(ValidationError):
            self._deploy(approach="RECKLESS")
        assert self.engine.store.count_deployments() == 0

    def test_unknown_mission(self):
        with pytest.raises(NotFoundError):
            self._deploy(mission_id="training_999")

    def test_unknown_agent(self):
        with pytest.raises(NotFoundError):
            self.manager.deploy("agent_missing", "training_001", self.engine.unit.unit_id, "LOW")

    def test_unit_of_another_agent(self):
        other = self.engine.roster.create_agent("acct_2")
        with pytest.raises(NotFoundError):
            self.manager.deploy(other.agent_id, "training_001", self.engine.unit.unit_id, "LOW")

    def test_unit_already_deployed(self):
        self._deploy()
        self.manager.rng = _script([True] * 5)
        with pytest.raises(ConflictError, match="already deployed"):
            self._deploy()
        assert self.engine.store.count_deployments() == 1

    def test_concurrent_deploys_claim_unit_once(self):
        self.manager.rng = SeededRandomSource(17)
        deployments = []
        errors = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            try:
                deployments.append(self._deploy())
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(deployments) == 1
        assert len(errors) == 7
        assert all(isinstance(e, ConflictError) for e in errors)
        assert self.engine.store.count_deployments() == 1
        assert self.engine.store.get_unit(self.engine.unit.unit_id).is_deployed

    def test_unit_claimed_after_checks_writes_nothing(self):
        store = self.engine.store
        claim = store.claim_unit

        def claim_after_rival(unit_id, deployed_at):
            claim(unit_id, deployed_at)
            return claim(unit_id, deployed_at)

        store.claim_unit = claim_after_rival
        with pytest.raises(ConflictError, match="already deployed"):
            self._deploy()
        assert store.count_deployments() == 0

    def test_prerequisite_gating(self):
        with pytest.raises(ConflictError, match="Prerequisite"):
            self._deploy(mission_id="training_002")
        assert self.engine.store.count_deployments() == 0
        assert not self.engine.store.get_unit(self.engine.unit.unit_id).is_deployed

    def test_completing_first_mission_unlocks_second(self):
        first = self._deploy()
        self.engine.clock.advance(minutes=30)
        self.manager.complete(first.deployment_id)

        self.manager.rng = _script([True] * 5)
        second = self._deploy(mission_id="training_002")
        assert second.mission_id == "training_002"

    def test_mission_board(self):
        board = self.manager.mission_board(self.engine.agent.agent_id)
        assert len(board) == 7
        assert board[0]["unlocked"] is True
        assert all(entry["unlocked"] is False for entry in board[1:])
        assert not any(entry["completed"] for entry in board)


class TestProgressAndReveal:
    def setup_method(self):
        self.engine = _make_engine()
        self.manager = self.engine.manager
        self.engine.manager.rng = _script([True, False, True, False, True])
        self.deployment = self.manager.deploy(
            self.engine.agent.agent_id, "training_001", self.engine.unit.unit_id, "MEDIUM"
        )

    def test_progress_at_start(self):
        progress = self.manager.get_progress(self.deployment)
        assert progress.progress == 0
        assert progress.current_phase == 1
        assert progress.time_remaining_ms == 30 * 60 * 1000
        assert not progress.is_complete

    def test_progress_mid_mission(self):
        self.engine.clock.advance(minutes=7)
        progress = self.manager.get_progress(self.deployment)
        assert progress.progress_percent == 23
        assert progress.current_phase == 2
        assert progress.time_remaining_ms == 23 * 60 * 1000

    def test_progress_clamped_after_end(self):
        self.engine.clock.advance(hours=2)
        progress = self.manager.get_progress(self.deployment)
        assert progress.progress == 1
        assert progress.current_phase == 5
        assert progress.time_remaining_ms == 0
        assert progress.is_complete

    def test_reveal_thresholds(self):
        self.engine.clock.advance(minutes=13)          # 43%
        assert self.manager.should_reveal_phase(self.deployment, 1)
        assert not self.manager.should_reveal_phase(self.deployment, 2)
        self.engine.clock.advance(minutes=1)           # 46%
        assert self.manager.should_reveal_phase(self.deployment, 2)
        assert not self.manager.should_reveal_phase(self.deployment, 3)

    def test_invalid_phase_id(self):
        with pytest.raises(ValidationError):
            self.manager.should_reveal_phase(self.deployment, 6)

    def test_reveal_is_monotonic(self):
        revealed = set()
        for _ in range(32):
            now_revealed = {
                i for i in range(1, 6)
                if self.manager.should_reveal_phase(self.deployment, i)
            }
            assert revealed <= now_revealed
            revealed = now_revealed
            self.engine.clock.advance(minutes=1)
        assert revealed == {1, 2, 3, 4, 5}

    def test_client_state_all_pending_at_deploy_time(self):
        state = self.manager.get_client_state(self.deployment)

        assert [p.status for p in state.phases] == [PhaseStatus.PENDING] * 5
        assert all(p.success is None and p.narrative is None for p in state.phases)

    def test_client_state_hides_future_outcomes(self):
        self.engine.clock.advance(minutes=7)
        state = self.manager.get_client_state(self.deployment)

        statuses = [p.status for p in state.phases]
        assert statuses == [
            PhaseStatus.SUCCESS,
            PhaseStatus.PENDING,
            PhaseStatus.PENDING,
            PhaseStatus.PENDING,
            PhaseStatus.PENDING,
        ]
        assert state.phases[0].success is True
        assert state.phases[0].narrative == "Phase in progress..."
        assert all(p.success is None and p.narrative is None for p in state.phases[1:])
        assert state.result is None

    def test_client_state_reveals_failure(self):
        self.engine.clock.advance(minutes=14)
        state = self.manager.get_client_state(self.deployment)
        assert state.phases[1].status == PhaseStatus.FAILURE
        assert state.phases[1].success is False

    def test_status_view_autocompletes_when_due(self):
        self.engine.clock.advance(minutes=30)
        status = self.manager.get_deployment_status(self.deployment.deployment_id)
        assert status["deployment"].status == DeploymentStatus.COMPLETED
        assert status["deployment"].result is not None
        assert status["progress"].is_complete

    def test_fill_revealed_narratives(self):
        self.engine.clock.advance(minutes=14)
        assert self.manager.fill_revealed_narratives(self.deployment) == 2

        stored = self.manager.get_deployment(self.deployment.deployment_id)
        assert stored.phase_outcomes[0].narrative.startswith("Echo successfully breached")
        assert stored.phase_outcomes[0].completed_at == self.engine.clock.now()
        assert stored.phase_outcomes[2].narrative is None
        # Already narrated phases are left alone
        assert self.manager.fill_revealed_narratives(stored) == 0

    def test_refresh_current_phase(self):
        self.engine.clock.advance(minutes=20)
        assert self.manager.refresh_current_phase(self.deployment)
        stored = self.manager.get_deployment(self.deployment.deployment_id)
        assert stored.current_phase == 4
        assert not self.manager.refresh_current_phase(stored)


class TestAbandon:
    def setup_method(self):
        self.engine = _make_engine()
        self.manager = self.engine.manager
        self.deployment = self.manager.deploy(
            self.engine.agent.agent_id, "training_001", self.engine.unit.unit_id, "LOW"
        )

    def test_abandon_frees_unit_without_rewards(self):
        abandoned = self.manager.abandon(self.deployment.deployment_id)

        assert abandoned.status == DeploymentStatus.ABANDONED
        assert abandoned.result is None
        assert not self.engine.store.get_unit(self.engine.unit.unit_id).is_deployed
        assert self.engine.store.get_agent(self.engine.agent.agent_id).timeline_points == 0

    def test_abandon_twice_conflicts(self):
        self.manager.abandon(self.deployment.deployment_id)
        with pytest.raises(ConflictError):
            self.manager.abandon(self.deployment.deployment_id)

    def test_complete_after_abandon_is_noop(self):
        self.manager.abandon(self.deployment.deployment_id)
        self.engine.clock.advance(minutes=30)
        outcome = self.manager.complete(self.deployment.deployment_id)
        assert outcome.applied is False
        assert outcome.deployment.status == DeploymentStatus.ABANDONED

    def test_abandoned_mission_does_not_unlock_next(self):
        self.manager.abandon(self.deployment.deployment_id)
        assert not self.manager.can_access_mission(self.engine.agent.agent_id, "training_002")

    def test_abandoned_reveals_all_phases(self):
        abandoned = self.manager.abandon(self.deployment.deployment_id)
        state = self.manager.get_client_state(abandoned)
        assert all(p.status in (PhaseStatus.SUCCESS, PhaseStatus.FAILURE) for p in state.phases)
