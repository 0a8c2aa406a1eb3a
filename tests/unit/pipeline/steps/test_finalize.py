# tests/unit/pipeline/steps/test_finalize.py — v1
"""Tests for pipeline/steps/finalize.py."""

from __future__ import annotations

import json

import pytest

from shortrender.core.models import SceneTiming
from shortrender.pipeline.steps.finalize import FinalizeStep, thumbnail_offsets
from shortrender.qa.quality_gate import QualityGateError
from shortrender.storage import layout


@pytest.fixture
def rendered_ctx(step_ctx):
    state = step_ctx.state
    state.final_video = layout.final_video_path(state.run_path)
    state.final_video.write_bytes(b"\x00" * 4096)
    state.scene_timings = [SceneTiming(idx=0, text="a", start_sec=0, end_sec=6)]
    state.artifacts = {"video": "runs/run0001/final/final.mp4"}
    return step_ctx


class TestThumbnailOffsets:
    def test_long_video(self):
        assert thumbnail_offsets(60.0) == [("start", 0.0), ("3s", 3.0), ("mid", 29.5)]

    def test_short_video_stays_inside(self):
        offsets = dict(thumbnail_offsets(2.0))
        assert offsets["3s"] == pytest.approx(1.9)
        assert offsets["mid"] == 0.5


class TestFinalizeStep:
    @pytest.mark.asyncio
    async def test_pass_writes_manifest(self, rendered_ctx, fake_runner):
        output = await FinalizeStep().execute(rendered_ctx)
        state = rendered_ctx.state

        assert len(state.thumbnails) == 3
        assert all(t.is_file() for t in state.thumbnails)
        assert state.qa.passed
        assert output.artifacts == {
            "thumbnail": "runs/run0001/final/thumb_start.jpg",
            "qaReport": "runs/run0001/final/qa.json",
            "manifest": "runs/run0001/final/export.json",
        }
        manifest = json.loads(layout.export_manifest_path(state.run_path).read_text(encoding="utf-8"))
        assert manifest["run"] == {"id": "run0001", "dry_run": True}
        assert manifest["plan"]["id"] == "plan_short_001"
        assert manifest["artifacts"]["video"] == "runs/run0001/final/final.mp4"
        assert manifest["duration_sec"] == 6.0
        assert manifest["qa"]["passed"] is True

    @pytest.mark.asyncio
    async def test_failed_gate_raises_after_report(self, rendered_ctx, fake_runner):
        fake_runner.probe_info["streams"][0].update(width=720, height=1280)
        with pytest.raises(QualityGateError) as exc_info:
            await FinalizeStep().execute(rendered_ctx)
        assert exc_info.value.result.failed_checks == ["resolution"]
        run_path = rendered_ctx.state.run_path
        assert layout.qa_report_path(run_path).is_file()
        assert not layout.export_manifest_path(run_path).exists()
