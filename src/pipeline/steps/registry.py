# src/pipeline/steps/registry.py — v1
"""The fixed, ordered step table."""

from __future__ import annotations

from shortrender.core.models import STEP_NAMES
from shortrender.pipeline.steps.alignment import AlignmentStep
from shortrender.pipeline.steps.base import BaseStep
from shortrender.pipeline.steps.captions import CaptionsStep
from shortrender.pipeline.steps.composition import CompositionStep
from shortrender.pipeline.steps.finalize import FinalizeStep
from shortrender.pipeline.steps.images import ImagesStep
from shortrender.pipeline.steps.music import MusicStep
from shortrender.pipeline.steps.voice import VoiceStep


def default_steps() -> list[BaseStep]:
    """Fresh instances of the seven steps in execution order."""
    steps: list[BaseStep] = [
        VoiceStep(),
        AlignmentStep(),
        ImagesStep(),
        CaptionsStep(),
        MusicStep(),
        CompositionStep(),
        FinalizeStep(),
    ]
    if tuple(s.name for s in steps) != STEP_NAMES:
        raise RuntimeError("step table out of sync with STEP_NAMES")
    return steps
