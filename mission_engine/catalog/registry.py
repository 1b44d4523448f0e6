"""
Mission Catalog — static registry of mission templates.

Behavioral Contract:
- Read-only at runtime. Templates are frozen pydantic models.
- Every load-time invariant is checked once, at construction. A broken
  catalog raises CatalogError and the process must not start.
- Lookups for unknown missions raise NotFoundError; unknown approaches
  raise ValidationError.
"""

import logging
from typing import Dict, Iterable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from mission_engine.catalog.training import TRAINING_MISSIONS
from mission_engine.errors import CatalogError, NotFoundError, ValidationError
from mission_engine.models.mission import (
    ApproachType,
    MissionApproach,
    MissionTemplate,
)

logger = logging.getLogger(__name__)

PHASE_COUNT = 5


def _validate_template(template: MissionTemplate) -> List[str]:
    """Return every invariant violation of a single template."""
    problems = []
    mid = template.mission_id

    phase_ids = [p.phase_id for p in template.phases]
    if phase_ids != list(range(1, PHASE_COUNT + 1)):
        problems.append(f"{mid}: phases must be numbered 1..{PHASE_COUNT}, got {phase_ids}")

    total_percent = sum(p.duration_percent for p in template.phases)
    if total_percent != 100:
        problems.append(f"{mid}: phase duration_percent sums to {total_percent}, expected 100")

    approach_types = sorted(a.type.value for a in template.approaches)
    expected = sorted(t.value for t in ApproachType)
    if approach_types != expected:
        problems.append(f"{mid}: approaches must be exactly {expected}, got {approach_types}")

    for approach in template.approaches:
        if approach.success_rate.min > approach.success_rate.max:
            problems.append(f"{mid}/{approach.type.value}: success_rate min > max")
        if approach.success_rate.min < 0 or approach.success_rate.max > 1:
            problems.append(f"{mid}/{approach.type.value}: success_rate outside [0, 1]")
        if approach.timeline_shift.min > approach.timeline_shift.max:
            problems.append(f"{mid}/{approach.type.value}: timeline_shift min > max")

    if template.compatibility.penalty > 0:
        problems.append(f"{mid}: compatibility penalty must not be positive")
    if not template.compatibility.preferred:
        problems.append(f"{mid}: compatibility needs at least one preferred personality")

    return problems


class MissionCatalog:
    """Validated, sequence-ordered registry of mission templates."""

    def __init__(self, templates: Iterable[Union[MissionTemplate, dict]]):
        loaded: List[MissionTemplate] = []
        for raw in templates:
            if isinstance(raw, MissionTemplate):
                loaded.append(raw)
                continue
            try:
                loaded.append(MissionTemplate.model_validate(raw))
            except PydanticValidationError as e:
                mission_id = raw.get("mission_id", "<unknown>") if isinstance(raw, dict) else "<unknown>"
                raise CatalogError(f"Invalid mission template {mission_id}: {e}") from e

        problems: List[str] = []
        for template in loaded:
            problems.extend(_validate_template(template))

        ids = [t.mission_id for t in loaded]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            problems.append(f"duplicate mission ids: {duplicates}")

        sequences = sorted(t.sequence for t in loaded)
        if sequences != list(range(1, len(loaded) + 1)):
            problems.append(f"sequences must be unique and contiguous from 1, got {sequences}")

        if problems:
            raise CatalogError("Mission catalog invalid: " + "; ".join(problems))

        self._by_id: Dict[str, MissionTemplate] = {t.mission_id: t for t in loaded}
        self._by_sequence: Dict[int, MissionTemplate] = {t.sequence: t for t in loaded}
        logger.info("Loaded mission catalog with %d templates", len(loaded))

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, mission_id: str) -> bool:
        return mission_id in self._by_id

    def find(self, mission_id: str) -> Optional[MissionTemplate]:
        return self._by_id.get(mission_id)

    def get(self, mission_id: str) -> MissionTemplate:
        template = self._by_id.get(mission_id)
        if template is None:
            raise NotFoundError(f"Mission template not found: {mission_id}")
        return template

    def list(self) -> List[MissionTemplate]:
        """All templates in unlock order."""
        return [self._by_sequence[s] for s in sorted(self._by_sequence)]

    def by_sequence(self, sequence: int) -> Optional[MissionTemplate]:
        return self._by_sequence.get(sequence)

    def previous(self, template: MissionTemplate) -> Optional[MissionTemplate]:
        """The mission that must be completed before this one, if any."""
        if template.sequence <= 1:
            return None
        return self._by_sequence.get(template.sequence - 1)

    @staticmethod
    def get_approach(
        template: MissionTemplate, approach: Union[ApproachType, str]
    ) -> MissionApproach:
        try:
            approach_type = ApproachType(approach)
        except ValueError:
            raise ValidationError(f"Invalid approach: {approach}")
        for candidate in template.approaches:
            if candidate.type == approach_type:
                return candidate
        raise ValidationError(
            f"Approach {approach_type.value} not defined for mission {template.mission_id}"
        )


def default_catalog() -> MissionCatalog:
    """The built-in training campaign."""
    return MissionCatalog(TRAINING_MISSIONS)
