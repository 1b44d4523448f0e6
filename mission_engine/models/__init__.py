"""Mission engine data models."""

from mission_engine.models.agent import Agent, AgentRank, AgentStats, Unit
from mission_engine.models.deployment import (
    ClientPhaseView,
    CompletionOutcome,
    Deployment,
    DeploymentClientState,
    DeploymentProgress,
    DeploymentStatus,
    MissionCompatibility,
    MissionResult,
    MissionRewards,
    PhaseOutcome,
    PhaseStatus,
)
from mission_engine.models.mission import (
    ApproachType,
    CompatibilityRule,
    MissionApproach,
    MissionBriefing,
    MissionPhase,
    MissionTemplate,
    NarrativeTemplates,
    Personality,
    RateRange,
    ThreatLevel,
)
from mission_engine.models.narrative import NarrativeContext, NarrativeResult
from mission_engine.models.scheduler import (
    EngineConfig,
    HealthReport,
    ScheduledTaskResult,
    SchedulerConfig,
)

__all__ = [
    "Agent",
    "AgentRank",
    "AgentStats",
    "ApproachType",
    "ClientPhaseView",
    "CompatibilityRule",
    "CompletionOutcome",
    "Deployment",
    "DeploymentClientState",
    "DeploymentProgress",
    "DeploymentStatus",
    "EngineConfig",
    "HealthReport",
    "MissionApproach",
    "MissionBriefing",
    "MissionCompatibility",
    "MissionPhase",
    "MissionResult",
    "MissionRewards",
    "MissionTemplate",
    "NarrativeContext",
    "NarrativeResult",
    "NarrativeTemplates",
    "PhaseOutcome",
    "PhaseStatus",
    "Personality",
    "RateRange",
    "ScheduledTaskResult",
    "SchedulerConfig",
    "ThreatLevel",
    "Unit",
]
