# src/pipeline/steps/voice.py — v1
"""tts_generate: per-scene speech and the joined voice-over track.

Scene timings are rewritten from the measured length of each synthesized
clip, so every later step follows the real narration rather than the plan's
target durations.
"""

from __future__ import annotations

import json
import logging

from shortrender.core.models import SceneTiming
from shortrender.pipeline.steps.base import BaseStep, StepContext, StepOutput, reusable
from shortrender.storage import layout

logger = logging.getLogger(__name__)


class VoiceStep(BaseStep):
    @property
    def name(self) -> str:
        return "tts_generate"

    @property
    def description(self) -> str:
        return "Synthesize narration per scene and join it into the voice-over"

    async def execute(self, ctx: StepContext) -> StepOutput:
        state = ctx.state
        plan = state.plan
        speech = ctx.providers.speech
        suffix = speech.audio_suffix

        timings: list[SceneTiming] = []
        cursor = 0.0
        reused = 0
        for scene in plan.scenes:
            audio = layout.scene_audio_path(state.run_path, scene.idx, suffix)
            if reusable(audio):
                reused += 1
            else:
                await speech.synthesize(
                    scene.narration_text,
                    plan.voice,
                    audio,
                    duration_hint_sec=scene.duration_target_sec,
                )
            duration = await ctx.media.media_duration(audio)
            state.scene_audio[scene.idx] = audio
            timings.append(
                SceneTiming(
                    idx=scene.idx,
                    text=scene.narration_text,
                    start_sec=round(cursor, 3),
                    end_sec=round(cursor + duration, 3),
                )
            )
            cursor += duration

        state.scene_timings = timings
        layout.scene_timings_path(state.run_path).write_text(
            json.dumps([t.model_dump() for t in timings], indent=2), encoding="utf-8"
        )

        voice_over = layout.voice_over_path(state.run_path, suffix)
        await ctx.media.concatenate(
            [state.scene_audio[s.idx] for s in plan.scenes], voice_over, mode="copy"
        )
        state.voice_over = voice_over

        logger.info("Voice-over ready: %d scenes, %.2fs", len(timings), cursor)
        return StepOutput(
            artifacts={"voiceOver": state.relative(voice_over)},
            message=f"Voice-over generated for {len(timings)} scenes ({cursor:.1f}s)",
            data={"duration_sec": round(cursor, 3), "scenes_reused": reused},
        )
