# src/pipeline/steps/finalize.py — v1
"""finalize_artifacts: thumbnails, quality gate, QA report, export manifest.

The QA report is written before the gate verdict is applied, so a failed
run still leaves ``qa.json`` on disk for inspection.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from shortrender.qa.quality_gate import QualityGateError
from shortrender.pipeline.steps.base import BaseStep, StepContext, StepOutput
from shortrender.storage import layout
from shortrender.version import __version__

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = 1


def thumbnail_offsets(duration_sec: float) -> list[tuple[str, float]]:
    """Frames at 0 s, 3 s and just before the mid-point, all inside the video."""
    last = max(duration_sec - 0.1, 0.0)
    return [
        ("start", 0.0),
        ("3s", min(3.0, last)),
        ("mid", min(max(0.0, duration_sec / 2 - 0.5), last)),
    ]


class FinalizeStep(BaseStep):
    @property
    def name(self) -> str:
        return "finalize_artifacts"

    @property
    def description(self) -> str:
        return "Extract thumbnails, run the quality gate and write the export manifest"

    async def execute(self, ctx: StepContext) -> StepOutput:
        state = ctx.state
        video = state.final_video or layout.final_video_path(state.run_path)

        probe = await ctx.media.probe(video)
        duration = probe.duration_sec or state.total_duration()

        thumbnails = []
        for label, offset in thumbnail_offsets(duration):
            thumb = layout.thumbnail_path(state.run_path, label)
            await ctx.media.extract_thumbnail(video, thumb, offset)
            thumbnails.append(thumb)
        state.thumbnails = thumbnails

        result = await ctx.quality_gate.validate(video)
        state.qa = result
        qa_path = layout.qa_report_path(state.run_path)
        qa_path.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        if not result.passed:
            raise QualityGateError(result)

        artifacts = {
            "thumbnail": state.relative(thumbnails[0]),
            "qaReport": state.relative(qa_path),
        }
        manifest_path = layout.export_manifest_path(state.run_path)
        artifacts["manifest"] = state.relative(manifest_path)
        manifest = {
            "format_version": EXPORT_FORMAT_VERSION,
            "generator": f"shortrender {__version__}",
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "run": {"id": state.run_id, "dry_run": state.dry_run},
            "plan": state.plan.model_dump(mode="json"),
            "niche_pack": state.niche_pack.id,
            "duration_sec": round(duration, 3),
            "scene_timings": [t.model_dump() for t in state.scene_timings],
            "artifacts": {**state.artifacts, **artifacts},
            "thumbnails": [state.relative(t) for t in thumbnails],
            "qa": result.model_dump(mode="json"),
        }
        manifest_path.write_text(json.dumps(manifest, indent=2), encoding="utf-8")

        return StepOutput(
            artifacts=artifacts,
            message=f"Quality gate passed; {len(thumbnails)} thumbnails",
            data={"duration_sec": round(duration, 3), "file_size_bytes": result.file_size_bytes},
        )
