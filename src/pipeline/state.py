# src/pipeline/state.py — v1
"""Mutable render state flowing through all steps.

Each step reads what earlier steps produced and records its own outputs
here; the engine merges step artifacts into ``artifacts`` after every
checkpoint. Paths are absolute; the Run record stores them relative to the
artifacts root.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from shortrender.core.models import Plan, QAResult, SceneTiming, Transcript
from shortrender.core.niche_packs import NichePack, get_niche_pack
from shortrender.storage import layout


class RenderState(BaseModel):
    """State accumulated across the seven render steps of one run."""

    # === IDENTITY ===
    run_id: str
    plan: Plan
    niche_pack: NichePack
    artifacts_root: Path
    run_path: Path
    dry_run: bool = False

    # === AUDIO ===
    scene_audio: dict[int, Path] = Field(default_factory=dict)
    scene_timings: list[SceneTiming] = Field(default_factory=list)
    voice_over: Path | None = None
    transcript: Transcript | None = None
    music: Path | None = None

    # === VISUALS ===
    scene_images: dict[int, Path] = Field(default_factory=dict)
    captions: Path | None = None
    final_video: Path | None = None
    thumbnails: list[Path] = Field(default_factory=list)

    # === OUTPUT ===
    qa: QAResult | None = None
    artifacts: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def for_run(
        cls, run_id: str, plan: Plan, artifacts_root: Path, dry_run: bool = False
    ) -> RenderState:
        return cls(
            run_id=run_id,
            plan=plan,
            niche_pack=get_niche_pack(plan.niche_pack_id),
            artifacts_root=artifacts_root,
            run_path=layout.run_dir(artifacts_root, run_id),
            dry_run=dry_run,
        )

    def relative(self, path: Path) -> str:
        """Artifact path as recorded on the Run."""
        return layout.relative_artifact(self.artifacts_root, path)

    def total_duration(self) -> float:
        return self.scene_timings[-1].end_sec if self.scene_timings else 0.0
