"""
Compatibility Scorer — base success probability of a unit on a mission.

Pure functions. No side effects, no randomness.
"""

from typing import List, Sequence, Tuple

from mission_engine.errors import ValidationError
from mission_engine.models.agent import Unit
from mission_engine.models.deployment import MissionCompatibility
from mission_engine.models.mission import MissionTemplate, Personality

BASE_RATE = 0.70
MIN_OVERALL = 0.10
MAX_OVERALL = 0.95
EXPERIENCE_BONUS_CAP = 0.15
LEVEL_BONUS_CAP = 0.10
LEVEL_BONUS_PER_LEVEL = 0.02


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def calculate_compatibility(unit: Unit, template: MissionTemplate) -> MissionCompatibility:
    """
    Score a unit against a mission's compatibility rule.

    overall = clamp(0.70 + personality + experience + level, 0.10, 0.95):
    outcomes stay possible but never certain.
    """
    try:
        personality = Personality(unit.personality)
    except ValueError:
        raise ValidationError(f"Invalid personality: {unit.personality}")

    rule = template.compatibility
    personality_bonus = rule.bonus if personality in rule.preferred else rule.penalty

    # Diminishing: +1% per 100 experience, capped at +15%
    experience_bonus = min(EXPERIENCE_BONUS_CAP, (unit.experience / 1000) * 0.1)

    # +2% per level above 1, capped at +10%
    level_bonus = min(LEVEL_BONUS_CAP, (unit.level - 1) * LEVEL_BONUS_PER_LEVEL)

    overall = clamp(
        BASE_RATE + personality_bonus + experience_bonus + level_bonus,
        MIN_OVERALL,
        MAX_OVERALL,
    )

    return MissionCompatibility(
        overall=overall,
        personality_bonus=personality_bonus,
        experience_bonus=experience_bonus,
        level_bonus=level_bonus,
    )


def rank_units_for_mission(
    units: Sequence[Unit], template: MissionTemplate
) -> List[Tuple[Unit, MissionCompatibility]]:
    """Candidates ordered best first. Ties keep the higher level, then experience."""
    scored = [(u, calculate_compatibility(u, template)) for u in units]
    scored.sort(key=lambda pair: (pair[1].overall, pair[0].level, pair[0].experience), reverse=True)
    return scored
