"""
Narrative generation with a mandatory static fallback.

The text collaborator (an LLM, a remote service, ...) plugs in through the
NarrativeGenerator protocol. Gameplay never blocks on it: NarrativeService
turns every failure into the mission template's static narrative.
"""

import logging
from typing import Optional, Protocol

from mission_engine.models.narrative import NarrativeContext, NarrativeResult

logger = logging.getLogger(__name__)

UNIT_NAME_PLACEHOLDER = "{unit_name}"


class NarrativeGenerator(Protocol):
    """Pluggable text backend. May raise; callers go through NarrativeService."""

    def generate(self, context: NarrativeContext) -> str: ...


def render_fallback(context: NarrativeContext) -> str:
    """Static template narrative for the phase, with the unit's name filled in."""
    phase = context.template.get_phase(context.phase_id)
    text = (
        phase.narrative_templates.success
        if context.phase_success
        else phase.narrative_templates.failure
    )
    return text.replace(UNIT_NAME_PLACEHOLDER, context.unit.name)


class TemplateNarrativeGenerator:
    """Deterministic generator that renders the static template."""

    def generate(self, context: NarrativeContext) -> str:
        return render_fallback(context)


class NarrativeService:
    """Wraps an optional generator. narrate() never raises for generator failures."""

    def __init__(self, generator: Optional[NarrativeGenerator] = None):
        self.generator = generator

    def narrate(self, context: NarrativeContext) -> NarrativeResult:
        if self.generator is None:
            return NarrativeResult(text=render_fallback(context), fallback=True)

        try:
            text = self.generator.generate(context)
        except Exception as e:
            logger.warning(
                "Narrative generation failed for %s phase %d, using template: %s",
                context.template.mission_id,
                context.phase_id,
                e,
            )
            return NarrativeResult(
                text=render_fallback(context), fallback=True, error=str(e)
            )

        text = (text or "").strip()
        if not text:
            return NarrativeResult(
                text=render_fallback(context),
                fallback=True,
                error="generator returned empty text",
            )
        return NarrativeResult(text=text)
