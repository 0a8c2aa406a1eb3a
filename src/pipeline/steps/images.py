# src/pipeline/steps/images.py — v1
"""images_generate: one still per scene in the niche's visual style."""

from __future__ import annotations

import logging

from shortrender.core.models import Scene
from shortrender.core.niche_packs import COMPOSITION_REQUIREMENTS, NichePack
from shortrender.pipeline.steps.base import BaseStep, StepContext, StepOutput, reusable
from shortrender.storage import layout

logger = logging.getLogger(__name__)


def build_image_prompt(pack: NichePack, scene: Scene) -> str:
    """Niche style, then the scene subject, then framing requirements."""
    subject = scene.image_prompt.strip() or scene.narration_text.strip()
    return f"{pack.style_prompt}. {subject}. {COMPOSITION_REQUIREMENTS}"


class ImagesStep(BaseStep):
    @property
    def name(self) -> str:
        return "images_generate"

    @property
    def description(self) -> str:
        return "Generate one image per scene"

    async def execute(self, ctx: StepContext) -> StepOutput:
        state = ctx.state
        generated = 0
        for scene in state.plan.scenes:
            image = layout.scene_image_path(state.run_path, scene.idx)
            if not reusable(image):
                await ctx.providers.images.generate(build_image_prompt(state.niche_pack, scene), image)
                generated += 1
            state.scene_images[scene.idx] = image

        total = len(state.plan.scenes)
        logger.info("Images ready: %d generated, %d reused", generated, total - generated)
        return StepOutput(
            message=f"{total} scene images ready",
            data={"generated": generated, "reused": total - generated},
        )
