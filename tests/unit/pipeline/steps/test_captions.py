# tests/unit/pipeline/steps/test_captions.py — v1
"""Tests for pipeline/steps/captions.py."""

from __future__ import annotations

import pytest

from shortrender.core.models import SceneTiming, Transcript, WordTiming
from shortrender.pipeline.steps.captions import CaptionsStep


class TestCaptionsStep:
    @pytest.mark.asyncio
    async def test_from_words(self, step_ctx):
        step_ctx.state.transcript = Transcript(
            text="hi there", words=[WordTiming(word="hi", start=0, end=0.4), WordTiming(word="there", start=0.5, end=0.9)]
        )
        output = await CaptionsStep().execute(step_ctx)
        assert output.data == {"source": "words"}
        assert output.artifacts == {"captions": "runs/run0001/captions/captions.ass"}
        text = step_ctx.state.captions.read_text(encoding="utf-8")
        assert text.count("Dialogue:") == 2

    @pytest.mark.asyncio
    async def test_falls_back_to_scenes(self, step_ctx):
        step_ctx.state.transcript = Transcript()
        step_ctx.state.scene_timings = [SceneTiming(idx=0, text="Whole scene.", start_sec=0, end_sec=2)]
        output = await CaptionsStep().execute(step_ctx)
        assert output.data == {"source": "scenes"}
        assert "Whole scene." in step_ctx.state.captions.read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_uses_niche_colors(self, step_ctx):
        step_ctx.state.scene_timings = [SceneTiming(idx=0, text="x", start_sec=0, end_sec=1)]
        await CaptionsStep().execute(step_ctx)
        # facts pack primary #00D4FF
        assert "&H00FFD400&" in step_ctx.state.captions.read_text(encoding="utf-8")
