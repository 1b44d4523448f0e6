"""
Outcome Generator — the five-phase success pattern of a deployment.

Run once, at deployment creation. The result is frozen: phases are only
revealed later, never re-rolled.

The phases form a sequential process, not five independent draws. Once a
phase fails, every later phase rolls at 0.10 lower odds. Later phases can
still succeed after an early failure.
"""

from typing import List

from pydantic import BaseModel

from mission_engine.catalog.registry import MissionCatalog
from mission_engine.models.deployment import PhaseOutcome
from mission_engine.models.mission import ApproachType, MissionTemplate
from mission_engine.runtime.random_source import RandomSource, uniform
from mission_engine.scoring.compatibility import clamp

PHASE_COUNT = 5
CASCADE_PENALTY = 0.10
VARIATION_SPREAD = 0.15                     # +/- 7.5%
MIN_PHASE_RATE = 0.10
MAX_PHASE_RATE = 0.90


class OutcomeDraw(BaseModel):
    """Generated outcomes plus the rates that produced them."""

    approach_rate: float
    final_rate: float
    phase_rates: List[float]
    outcomes: List[PhaseOutcome]


def phase_success_rate(
    final_rate: float, cumulative_success: bool, variation: float
) -> float:
    """Success probability of a single phase."""
    phase_modifier = 0.0 if cumulative_success else -CASCADE_PENALTY
    return clamp(final_rate + phase_modifier + variation, MIN_PHASE_RATE, MAX_PHASE_RATE)


def generate_phase_outcomes(
    template: MissionTemplate,
    base_rate: float,
    approach: ApproachType,
    rng: RandomSource,
) -> OutcomeDraw:
    """
    Roll the five phase outcomes.

    Draw order (fixed, relied on by replay tests):
      1. approach rate from the approach's success_rate range
      2. per phase: variation, then the success roll
    """
    selected = MissionCatalog.get_approach(template, approach)

    approach_rate = uniform(rng, selected.success_rate)
    final_rate = (base_rate + approach_rate) / 2

    outcomes: List[PhaseOutcome] = []
    phase_rates: List[float] = []
    cumulative_success = True

    for phase_id in range(1, PHASE_COUNT + 1):
        variation = (rng.next() - 0.5) * VARIATION_SPREAD
        rate = phase_success_rate(final_rate, cumulative_success, variation)
        success = rng.next() < rate
        if not success:
            cumulative_success = False

        phase_rates.append(rate)
        outcomes.append(PhaseOutcome(phase_id=phase_id, success=success))

    return OutcomeDraw(
        approach_rate=approach_rate,
        final_rate=final_rate,
        phase_rates=phase_rates,
        outcomes=outcomes,
    )
