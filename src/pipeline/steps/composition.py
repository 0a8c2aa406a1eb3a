# src/pipeline/steps/composition.py — v1
"""ffmpeg_render: motion clips, visual track, audio mix, final composite."""

from __future__ import annotations

import logging

from shortrender.pipeline.steps.base import BaseStep, StepContext, StepOutput, reusable
from shortrender.storage import layout

logger = logging.getLogger(__name__)


class CompositionStep(BaseStep):
    @property
    def name(self) -> str:
        return "ffmpeg_render"

    @property
    def description(self) -> str:
        return "Animate scene images and composite the final video"

    async def execute(self, ctx: StepContext) -> StepOutput:
        state = ctx.state
        media = ctx.media
        if state.voice_over is None or not state.scene_timings:
            raise RuntimeError("ffmpeg_render requires the voice-over and scene timings")

        timings = {t.idx: t for t in state.scene_timings}
        clips = []
        for scene in state.plan.scenes:
            clip = layout.scene_clip_path(state.run_path, scene.idx)
            if not reusable(clip):
                await media.synthesize_motion(
                    state.scene_images[scene.idx],
                    timings[scene.idx].duration_sec,
                    scene.effect or state.niche_pack.default_effect,
                    clip,
                )
            clips.append(clip)

        visual = layout.visual_track_path(state.run_path)
        await media.concatenate(clips, visual, mode="reencode")

        volume = state.niche_pack.music_volume or ctx.settings.music_volume
        mixed = layout.mixed_audio_path(state.run_path, state.voice_over.suffix)
        await media.mix_audio(state.voice_over, state.music, mixed, music_volume=volume)

        final = layout.final_video_path(state.run_path)
        await media.composite(visual, mixed, state.captions, final)
        state.final_video = final

        logger.info("Composited %d scenes into %s", len(clips), final.name)
        return StepOutput(
            artifacts={"video": state.relative(final)},
            message=f"Rendered {len(clips)} scenes",
            data={"scenes": len(clips), "music": state.music is not None},
        )
