"""
Mission Engine API — FastAPI endpoints.

Thin adapter over the engine components:
- Mission board and templates
- Deployment lifecycle (deploy, status, complete, abandon)
- Agents, units and stats
- Compatibility preview and rank table
- Sweep control and health
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from mission_engine.catalog.registry import MissionCatalog, default_catalog
from mission_engine.deployment.lifecycle import DeploymentManager
from mission_engine.errors import (
    ConflictError,
    MissionEngineError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from mission_engine.models.mission import ApproachType, Personality
from mission_engine.models.scheduler import EngineConfig, SchedulerConfig
from mission_engine.narrative.generator import NarrativeService
from mission_engine.progression.ranks import (
    calculate_rank,
    next_rank_threshold,
    rank_thresholds,
)
from mission_engine.roster.service import RosterService
from mission_engine.runtime.clock import Clock
from mission_engine.runtime.random_source import RandomSource
from mission_engine.scheduler.sweep import MissionSweeper, start_sweep, stop_sweep
from mission_engine.store.game_store import GameStore


# --- Request/Response Models ---

class AgentCreateRequest(BaseModel):
    account_id: str
    codename: Optional[str] = None


class UnitCreateRequest(BaseModel):
    nft_id: str
    name: str
    personality: Personality


class DeployRequest(BaseModel):
    agent_id: str
    unit_id: str
    # Plain str so an unknown approach maps to the engine's ValidationError
    approach: str


class SweepTriggerResponse(BaseModel):
    results: list
    task_count: int


_STATUS_BY_ERROR = [
    (ValidationError, 422),
    (NotFoundError, 404),
    (ConflictError, 409),
    (TransientError, 503),
]


def _http_error(error: MissionEngineError) -> HTTPException:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status, str(error))
    return HTTPException(500, str(error))


# --- Application Factory ---

def create_app(
    store: Optional[GameStore] = None,
    catalog: Optional[MissionCatalog] = None,
    narrative_service: Optional[NarrativeService] = None,
    clock: Optional[Clock] = None,
    rng: Optional[RandomSource] = None,
    engine_config: Optional[EngineConfig] = None,
    scheduler_config: Optional[SchedulerConfig] = None,
    run_scheduler: bool = False,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    gs = store or GameStore()
    mc = catalog or default_catalog()
    manager = DeploymentManager(
        store=gs,
        catalog=mc,
        narrative=narrative_service,
        clock=clock,
        rng=rng,
        config=engine_config,
    )
    roster = RosterService(gs, mc, clock=manager.clock)
    sweeper = MissionSweeper(manager, gs, scheduler_config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        handle = start_sweep(sweeper) if run_scheduler else None
        app.state.scheduler = handle
        try:
            yield
        finally:
            if handle is not None:
                await stop_sweep(handle)

    app = FastAPI(
        title="Mission Engine API",
        description="Timed mission deployments with progressive phase reveal",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store components on app state for access in endpoints
    app.state.store = gs
    app.state.catalog = mc
    app.state.manager = manager
    app.state.roster = roster
    app.state.sweeper = sweeper
    app.state.scheduler = None

    # === MISSIONS ===

    @app.get("/missions")
    def list_missions(agent_id: Optional[str] = None):
        """Mission board. Unlock and completion flags need an agent."""
        if agent_id is None:
            return [t.model_dump(mode="json") for t in mc.list()]
        try:
            roster.get_agent(agent_id)
            board = manager.mission_board(agent_id)
        except MissionEngineError as e:
            raise _http_error(e) from e
        return [
            {
                "mission": entry["mission"].model_dump(mode="json"),
                "unlocked": entry["unlocked"],
                "completed": entry["completed"],
            }
            for entry in board
        ]

    @app.get("/missions/{mission_id}")
    def get_mission(mission_id: str):
        try:
            return mc.get(mission_id).model_dump(mode="json")
        except MissionEngineError as e:
            raise _http_error(e) from e

    @app.post("/missions/{mission_id}/deploy")
    def deploy(mission_id: str, req: DeployRequest):
        try:
            deployment = manager.deploy(
                req.agent_id, mission_id, req.unit_id, req.approach
            )
            state = manager.get_client_state(deployment)
        except MissionEngineError as e:
            raise _http_error(e) from e
        return {
            "deployment": state.model_dump(mode="json"),
            "compatibility": deployment.compatibility.model_dump(mode="json"),
        }

    # === DEPLOYMENTS ===

    @app.get("/deployments/{deployment_id}/status")
    def deployment_status(deployment_id: str):
        try:
            status = manager.get_deployment_status(deployment_id)
        except MissionEngineError as e:
            raise _http_error(e) from e
        return {
            "deployment": status["deployment"].model_dump(mode="json"),
            "progress": status["progress"].model_dump(mode="json"),
        }

    @app.post("/deployments/{deployment_id}/complete")
    def complete_deployment(deployment_id: str):
        """Manual completion. Idempotent: a repeat call reports applied=false."""
        try:
            outcome = manager.complete(deployment_id)
            state = manager.get_client_state(outcome.deployment)
        except MissionEngineError as e:
            raise _http_error(e) from e
        return {"applied": outcome.applied, "deployment": state.model_dump(mode="json")}

    @app.post("/deployments/{deployment_id}/abandon")
    def abandon_deployment(deployment_id: str):
        try:
            deployment = manager.abandon(deployment_id)
        except MissionEngineError as e:
            raise _http_error(e) from e
        return {"status": deployment.status.value, "deployment_id": deployment_id}

    # === AGENTS ===

    @app.post("/agents")
    def create_agent(req: AgentCreateRequest):
        try:
            agent = roster.create_agent(req.account_id, req.codename)
        except MissionEngineError as e:
            raise _http_error(e) from e
        return agent.model_dump(mode="json")

    @app.post("/agents/{agent_id}/units")
    def add_unit(agent_id: str, req: UnitCreateRequest):
        try:
            unit = roster.add_unit(agent_id, req.nft_id, req.name, req.personality)
        except MissionEngineError as e:
            raise _http_error(e) from e
        return unit.model_dump(mode="json")

    @app.get("/agents/{agent_id}/stats")
    def agent_stats(agent_id: str):
        try:
            stats = roster.agent_stats(agent_id)
            distribution = roster.personality_distribution(agent_id)
        except MissionEngineError as e:
            raise _http_error(e) from e
        return {
            "stats": stats.model_dump(mode="json"),
            "personalities": {p.value: n for p, n in distribution.items()},
        }

    # === SCORING ===

    @app.get("/compatibility")
    def compatibility(unit_id: str, mission_id: str):
        try:
            score = roster.compatibility_for(unit_id, mission_id)
        except MissionEngineError as e:
            raise _http_error(e) from e
        return score.model_dump(mode="json")

    @app.get("/ranks")
    def ranks(timeline_points: Optional[int] = None):
        """Rank table, plus the rank for `timeline_points` when given."""
        response = {
            "thresholds": {r.value: t for r, t in rank_thresholds().items()},
            "approaches": [a.value for a in ApproachType],
        }
        if timeline_points is not None:
            if timeline_points < 0:
                raise HTTPException(422, "timeline_points must be non-negative")
            rank = calculate_rank(timeline_points)
            response["rank"] = rank.value
            response["next_threshold"] = next_rank_threshold(rank)
        return response

    # === SCHEDULER ===

    @app.post("/scheduler/trigger")
    def trigger_sweep():
        """Force one sweep (for testing and operations)."""
        results = sweeper.run_all()
        return SweepTriggerResponse(
            results=[r.model_dump(mode="json") for r in results],
            task_count=len(results),
        )

    @app.get("/scheduler/health")
    def scheduler_health():
        report = sweeper.health_check()
        handle = app.state.scheduler
        return {
            "health": report.model_dump(mode="json"),
            "running": bool(handle and handle.is_running),
            "config": sweeper.config.model_dump(),
        }

    return app


# Default application instance
app = create_app()
