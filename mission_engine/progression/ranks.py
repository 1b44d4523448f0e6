"""
Progression — agent rank and unit leveling.

Rank is a pure threshold function of timeline points. Unit level follows an
exponential curve: advancing from level n costs floor(100 * 1.5 ** (n - 1))
experience. A level-up check starts from the unit's current level and
consumes its whole cumulative total.
"""

import math
from typing import Dict, Optional

from mission_engine.models.agent import AgentRank

RANK_ORDER = [
    AgentRank.OBSERVER,
    AgentRank.FIELD_AGENT,
    AgentRank.SENIOR_AGENT,
    AgentRank.ARCHITECT,
]

_RANK_THRESHOLDS: Dict[AgentRank, int] = {
    AgentRank.OBSERVER: 0,
    AgentRank.FIELD_AGENT: 100,
    AgentRank.SENIOR_AGENT: 500,
    AgentRank.ARCHITECT: 1000,
}


def calculate_rank(timeline_points: int) -> AgentRank:
    for rank in reversed(RANK_ORDER):
        if timeline_points >= _RANK_THRESHOLDS[rank]:
            return rank
    return AgentRank.OBSERVER


def rank_thresholds() -> Dict[AgentRank, int]:
    return dict(_RANK_THRESHOLDS)


def next_rank_threshold(rank: AgentRank) -> Optional[int]:
    """Points needed for the next rank, or None at the top."""
    index = RANK_ORDER.index(rank)
    if index >= len(RANK_ORDER) - 1:
        return None
    return _RANK_THRESHOLDS[RANK_ORDER[index + 1]]


def required_experience(level: int) -> int:
    """Experience consumed to advance from `level` to `level + 1`."""
    return math.floor(100 * math.pow(1.5, level - 1))


def level_for_experience(total_experience: int, start_level: int = 1) -> int:
    """Consume `total_experience` level by level, starting at `start_level`."""
    level = start_level
    remaining = total_experience
    while remaining >= required_experience(level):
        remaining -= required_experience(level)
        level += 1
    return level


def apply_level_up(current_level: int, total_experience: int) -> int:
    """New level for a unit. Starts from its current level, so never lowers it."""
    return level_for_experience(total_experience, start_level=current_level)
