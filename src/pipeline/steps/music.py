# src/pipeline/steps/music.py — v1
"""music_build: pick a background bed from the local music library.

The niche sub-folder is searched first, then the library root. The choice is
a stable function of the plan id so a resubmitted plan gets the same track.
No track is not an error: the render continues with voice only.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
from pathlib import Path

from shortrender.pipeline.steps.base import BaseStep, StepContext, StepOutput
from shortrender.storage import layout

logger = logging.getLogger(__name__)

MUSIC_SUFFIXES = frozenset({".mp3", ".wav", ".m4a", ".aac", ".ogg"})


def _tracks(folder: Path) -> list[Path]:
    if not folder.is_dir():
        return []
    return sorted(p for p in folder.iterdir() if p.is_file() and p.suffix.lower() in MUSIC_SUFFIXES)


def select_track(library: Path, niche_pack_id: str, plan_id: str) -> Path | None:
    """Deterministically choose a track, or None when the library is empty."""
    candidates = _tracks(library / niche_pack_id) or _tracks(library)
    if not candidates:
        return None
    index = int(hashlib.sha256(plan_id.encode("utf-8")).hexdigest(), 16) % len(candidates)
    return candidates[index]


class MusicStep(BaseStep):
    @property
    def name(self) -> str:
        return "music_build"

    @property
    def description(self) -> str:
        return "Select a background music track"

    async def execute(self, ctx: StepContext) -> StepOutput:
        state = ctx.state
        track = select_track(ctx.settings.music_library_dir, state.niche_pack.id, state.plan.id)
        if track is None:
            state.music = None
            return StepOutput(
                message="No background music available",
                warnings=[f"Music library is empty: {ctx.settings.music_library_dir}"],
            )

        # Copied into the run so the artifact survives library changes
        target = layout.music_path(state.run_path, track.suffix.lower())
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(track, target)
        state.music = target

        logger.info("Selected music track %s", track.name)
        return StepOutput(
            artifacts={"music": state.relative(target)},
            message=f"Selected music: {track.name}",
            data={"track": track.name},
        )
