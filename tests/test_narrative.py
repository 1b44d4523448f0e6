"""Tests for narrative generation and its fallback."""

from datetime import datetime, timezone

from mission_engine.catalog.registry import default_catalog
from mission_engine.models.agent import Unit
from mission_engine.models.mission import ApproachType
from mission_engine.models.narrative import NarrativeContext
from mission_engine.narrative.generator import (
    NarrativeService,
    TemplateNarrativeGenerator,
    render_fallback,
)


def _make_context(phase_id: int = 1, success: bool = True) -> NarrativeContext:
    unit = Unit(
        unit_id="unit_1",
        agent_id="agent_1",
        nft_id="nft_1",
        name="Echo",
        personality="ANALYTICAL",
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )
    return NarrativeContext(
        template=default_catalog().get("training_001"),
        unit=unit,
        approach=ApproachType.MEDIUM,
        phase_id=phase_id,
        phase_success=success,
        agent_codename="NOVA",
    )


class FailingGenerator:
    def generate(self, context):
        raise RuntimeError("model unavailable")


class BlankGenerator:
    def generate(self, context):
        return "   "


class EchoGenerator:
    def generate(self, context):
        return f"{context.agent_codename} reports phase {context.phase_id}."


class TestRenderFallback:
    def test_success_text_with_unit_name(self):
        text = render_fallback(_make_context(phase_id=1, success=True))
        assert text.startswith("Echo successfully breached")
        assert "{unit_name}" not in text

    def test_failure_text(self):
        text = render_fallback(_make_context(phase_id=1, success=False))
        assert "Echo rerouting" in text


class TestNarrativeService:
    def test_no_generator_uses_template(self):
        result = NarrativeService().narrate(_make_context())
        assert result.fallback is True
        assert result.error is None
        assert result.text.startswith("Echo")

    def test_generator_text_used(self):
        result = NarrativeService(EchoGenerator()).narrate(_make_context(phase_id=4))
        assert result.fallback is False
        assert result.text == "NOVA reports phase 4."

    def test_generator_failure_falls_back(self):
        result = NarrativeService(FailingGenerator()).narrate(_make_context())
        assert result.fallback is True
        assert result.error == "model unavailable"
        assert result.text == render_fallback(_make_context())

    def test_blank_output_falls_back(self):
        result = NarrativeService(BlankGenerator()).narrate(_make_context(success=False))
        assert result.fallback is True
        assert result.error == "generator returned empty text"
        assert "Echo" in result.text

    def test_template_generator_is_not_a_fallback(self):
        result = NarrativeService(TemplateNarrativeGenerator()).narrate(_make_context())
        assert result.fallback is False
        assert result.text == render_fallback(_make_context())
