# src/pipeline/steps/captions.py — v1
"""captions_build: ASS subtitles from word timings or scene timing."""

from __future__ import annotations

from shortrender.captions.builder import write_captions_from_scenes, write_captions_from_words
from shortrender.pipeline.steps.base import BaseStep, StepContext, StepOutput
from shortrender.storage import layout


class CaptionsStep(BaseStep):
    @property
    def name(self) -> str:
        return "captions_build"

    @property
    def description(self) -> str:
        return "Build burned-in caption subtitles"

    async def execute(self, ctx: StepContext) -> StepOutput:
        state = ctx.state
        style = state.niche_pack.caption_style
        output = layout.captions_path(state.run_path)

        words = state.transcript.words if state.transcript else []
        if words:
            write_captions_from_words(words, style, output)
            source = "words"
        else:
            write_captions_from_scenes(state.scene_timings, style, output)
            source = "scenes"
        state.captions = output

        return StepOutput(
            artifacts={"captions": state.relative(output)},
            message=f"Captions built from {source}",
            data={"source": source},
        )
