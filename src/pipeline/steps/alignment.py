# src/pipeline/steps/alignment.py — v1
"""asr_align: word-level timings for the voice-over."""

from __future__ import annotations

import logging

from shortrender.providers.json_repair import parse_transcript_payload
from shortrender.pipeline.steps.base import BaseStep, StepContext, StepOutput, reusable
from shortrender.storage import layout

logger = logging.getLogger(__name__)


class AlignmentStep(BaseStep):
    @property
    def name(self) -> str:
        return "asr_align"

    @property
    def description(self) -> str:
        return "Transcribe the voice-over into word timings"

    async def execute(self, ctx: StepContext) -> StepOutput:
        state = ctx.state
        if state.voice_over is None:
            raise RuntimeError("asr_align requires the voice-over from tts_generate")

        timestamps = layout.timestamps_path(state.run_path)
        if reusable(timestamps):
            transcript = parse_transcript_payload(timestamps.read_text(encoding="utf-8"))
        else:
            transcript = await ctx.providers.transcriber.transcribe(
                state.voice_over, state.plan.script, state.scene_timings
            )
            timestamps.write_text(transcript.model_dump_json(indent=2), encoding="utf-8")
        state.transcript = transcript

        warnings = []
        if not transcript.words:
            warnings.append("No word timings returned; captions will follow scene timing")
        return StepOutput(
            artifacts={"timestamps": state.relative(timestamps)},
            message=f"Aligned {len(transcript.words)} words",
            data={"words": len(transcript.words)},
            warnings=warnings,
        )
