"""
Mission Sweep — the periodic heartbeat of the mission engine.

Finalizes deployments whose time is up, keeps advisory phase caches and
revealed narratives current, purges old records and reports health.

Behavioral Contract:
- Every task returns a ScheduledTaskResult and never raises for a single
  bad deployment: the failure is logged with the deployment id, collected
  in `errors`, and the sweep moves on.
- Completion goes through DeploymentManager.complete(), so a sweep racing
  a manual completion cannot grant rewards twice.
- start_sweep() runs one asyncio job per cron schedule. Ticks are
  serialised by a per-handle lock, so sweeps never overlap.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from croniter import croniter

from mission_engine.deployment.lifecycle import DeploymentManager
from mission_engine.errors import ValidationError
from mission_engine.models.deployment import DeploymentStatus
from mission_engine.models.scheduler import (
    HealthReport,
    ScheduledTaskResult,
    SchedulerConfig,
)
from mission_engine.store.game_store import GameStore

logger = logging.getLogger(__name__)


class MissionSweeper:
    """Scheduled maintenance tasks over the deployment store."""

    def __init__(
        self,
        manager: DeploymentManager,
        store: Optional[GameStore] = None,
        config: Optional[SchedulerConfig] = None,
    ):
        self.manager = manager
        self.store = store or manager.store
        self.config = config or SchedulerConfig()
        self.clock = manager.clock

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.clock.now()

    def complete_expired_missions(self, now: Optional[datetime] = None) -> ScheduledTaskResult:
        now = self._now(now)
        due = self.store.find_active_deployments_due(now)
        completed = 0
        errors: List[str] = []

        for deployment in due:
            try:
                if self.manager.complete(deployment.deployment_id).applied:
                    completed += 1
            except Exception as e:
                logger.error(
                    "Failed to complete deployment %s: %s", deployment.deployment_id, e
                )
                errors.append(f"{deployment.deployment_id}: {e}")

        if due:
            logger.info("Completion sweep: %d/%d deployments completed", completed, len(due))
        return ScheduledTaskResult(
            task_name="complete_expired_missions",
            executed_at=now,
            affected_records=completed,
            details=f"Completed {completed} of {len(due)} expired deployments",
            errors=errors,
        )

    def update_mission_phases(self, now: Optional[datetime] = None) -> ScheduledTaskResult:
        """Best-effort refresh of the advisory current_phase cache."""
        now = self._now(now)
        active = self.store.list_deployments(status=DeploymentStatus.ACTIVE)
        updated = 0
        errors: List[str] = []

        for deployment in active:
            try:
                if self.manager.refresh_current_phase(deployment):
                    updated += 1
            except Exception as e:
                logger.error(
                    "Failed to refresh phase of deployment %s: %s", deployment.deployment_id, e
                )
                errors.append(f"{deployment.deployment_id}: {e}")

        return ScheduledTaskResult(
            task_name="update_mission_phases",
            executed_at=now,
            affected_records=updated,
            details=f"Updated phase for {updated} of {len(active)} active deployments",
            errors=errors,
        )

    def generate_pending_narratives(self, now: Optional[datetime] = None) -> ScheduledTaskResult:
        now = self._now(now)
        active = self.store.list_deployments(status=DeploymentStatus.ACTIVE)
        narrated = 0
        errors: List[str] = []

        for deployment in active:
            try:
                narrated += self.manager.fill_revealed_narratives(deployment)
            except Exception as e:
                logger.error(
                    "Failed to narrate deployment %s: %s", deployment.deployment_id, e
                )
                errors.append(f"{deployment.deployment_id}: {e}")

        return ScheduledTaskResult(
            task_name="generate_pending_narratives",
            executed_at=now,
            affected_records=narrated,
            details=f"Generated {narrated} phase narratives",
            errors=errors,
        )

    def cleanup_old_missions(self, now: Optional[datetime] = None) -> ScheduledTaskResult:
        now = self._now(now)
        cutoff = now - timedelta(days=self.config.retention_days)
        purged = self.store.purge_deployments(
            [DeploymentStatus.COMPLETED, DeploymentStatus.ABANDONED], older_than=cutoff
        )
        logger.info("Cleanup removed %d deployments older than %s", purged, cutoff.isoformat())
        return ScheduledTaskResult(
            task_name="cleanup_old_missions",
            executed_at=now,
            affected_records=purged,
            details=f"Removed {purged} finished deployments older than "
                    f"{self.config.retention_days} days",
        )

    def health_check(self, now: Optional[datetime] = None) -> HealthReport:
        now = self._now(now)
        try:
            stuck = self.store.count_stuck(
                now - timedelta(hours=self.config.stuck_after_hours)
            )
        except Exception as e:
            logger.error("Health check failed: %s", e)
            return HealthReport(status="error", details=f"Health check failed: {e}", checked_at=now)

        if stuck:
            logger.warning("%d deployments overdue by more than %d hours", stuck, self.config.stuck_after_hours)
            return HealthReport(
                status="error",
                details=f"{stuck} deployments stuck past completion",
                stuck_deployments=stuck,
                checked_at=now,
            )
        return HealthReport(status="healthy", details="All systems operational", checked_at=now)

    def run_all(self, now: Optional[datetime] = None) -> List[ScheduledTaskResult]:
        """One full sweep. A crashing task is reported, later tasks still run."""
        now = self._now(now)
        tasks: List[Callable[[datetime], ScheduledTaskResult]] = [
            self.complete_expired_missions,
            self.update_mission_phases,
            self.generate_pending_narratives,
        ]
        results = []
        for task in tasks:
            try:
                results.append(task(now))
            except Exception as e:
                logger.exception("Sweep task %s crashed", task.__name__)
                results.append(ScheduledTaskResult(
                    task_name=task.__name__,
                    executed_at=now,
                    details="Task failed",
                    errors=[str(e)],
                ))
        return results


class SchedulerHandle:
    """Running sweep jobs. Owned by whoever called start_sweep()."""

    def __init__(self, sweeper: MissionSweeper, config: SchedulerConfig):
        self.sweeper = sweeper
        self.config = config
        self.stop_event = asyncio.Event()
        self.lock = asyncio.Lock()
        self.tasks: List[asyncio.Task] = []
        self.tick_count = 0
        self.last_results: List[ScheduledTaskResult] = []
        self.last_health: Optional[HealthReport] = None

    @property
    def is_running(self) -> bool:
        return any(not t.done() for t in self.tasks)


async def _run_job(
    handle: SchedulerHandle,
    schedule: str,
    action: Callable[[datetime], object],
) -> None:
    clock = handle.sweeper.clock
    last_fire: Optional[datetime] = None

    while not handle.stop_event.is_set():
        now = clock.now()
        base = max(now, last_fire) if last_fire else now
        next_fire = croniter(schedule, base).get_next(datetime)
        delay = max(0.0, (next_fire - now).total_seconds())

        try:
            await asyncio.wait_for(handle.stop_event.wait(), timeout=delay)
            break
        except asyncio.TimeoutError:
            pass

        last_fire = next_fire
        async with handle.lock:
            try:
                await asyncio.to_thread(action, clock.now())
                handle.tick_count += 1
            except Exception:
                logger.exception("Scheduled job %r failed", schedule)


def start_sweep(
    sweeper: MissionSweeper, config: Optional[SchedulerConfig] = None
) -> SchedulerHandle:
    """Schedule the sweep jobs on the running event loop."""
    config = config or sweeper.config
    handle = SchedulerHandle(sweeper, config)

    def completion(now: datetime) -> None:
        handle.last_results = sweeper.run_all(now)

    def health(now: datetime) -> None:
        handle.last_health = sweeper.health_check(now)

    def cleanup(now: datetime) -> None:
        sweeper.cleanup_old_missions(now)

    jobs = [
        (config.completion_schedule, completion),
        (config.health_check_schedule, health),
        (config.cleanup_schedule, cleanup),
    ]
    for schedule, _ in jobs:
        if not croniter.is_valid(schedule):
            raise ValidationError(f"Invalid cron expression: {schedule}")
    for schedule, action in jobs:
        handle.tasks.append(asyncio.create_task(_run_job(handle, schedule, action)))

    logger.info(
        "Mission sweep started (completion %r, health %r, cleanup %r)",
        config.completion_schedule,
        config.health_check_schedule,
        config.cleanup_schedule,
    )
    return handle


async def stop_sweep(handle: SchedulerHandle) -> None:
    handle.stop_event.set()
    await asyncio.gather(*handle.tasks, return_exceptions=True)
    logger.info("Mission sweep stopped after %d ticks", handle.tick_count)
