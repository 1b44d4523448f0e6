"""Scheduler and engine configuration, and scheduled task results."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SchedulerConfig(BaseModel):
    """Configuration for the mission sweep."""

    completion_schedule: str = "* * * * *"      # Every minute
    health_check_schedule: str = "*/5 * * * *"
    cleanup_schedule: str = "0 2 * * *"         # Daily at 02:00
    retention_days: int = Field(ge=1, default=30)
    stuck_after_hours: int = Field(ge=1, default=24)


class EngineConfig(BaseModel):
    """Configuration for the deployment lifecycle manager."""

    deployment_id_prefix: str = "training_deploy"
    in_progress_narrative: str = "Phase in progress..."


class ScheduledTaskResult(BaseModel):
    """Outcome of one scheduled task run."""

    task_name: str
    executed_at: datetime
    affected_records: int = 0
    details: str
    errors: List[str] = []


class HealthReport(BaseModel):
    status: str                                 # "healthy" | "error"
    details: str
    stuck_deployments: int = 0
    checked_at: Optional[datetime] = None
