# tests/integration/test_dry_run_render.py — v1
"""End-to-end dry-run renders through the public facade."""

from __future__ import annotations

import json

import pytest

from shortrender.api.facade import build_service
from shortrender.config.settings import Settings


def _settings(tmp_path, **overrides) -> Settings:
    return Settings(
        _env_file=None,
        render_dry_run=True,
        artifacts_dir=tmp_path / "artifacts",
        database_path=tmp_path / "artifacts" / "runs.db",
        music_library_dir=tmp_path / "music",
        **overrides,
    )


class TestDryRunRender:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "durations",
        [
            pytest.param((2.0, 2.5, 2.0), id="short"),
            pytest.param((20.0, 20.0, 20.0), id="facts-60s", marks=pytest.mark.slow),
        ],
    )
    async def test_render_completes(self, binaries, tmp_path, plan_factory, durations):
        plan = plan_factory("plan_e2e_001", durations=durations, niche="facts")
        service = build_service(_settings(tmp_path))
        try:
            run = await service.submit(plan)
            run = await service.wait(run.id)
        finally:
            await service.close()

        assert run.status == "done", run.error
        assert run.progress == 100
        for key in ("voiceOver", "timestamps", "captions", "video", "thumbnail", "qaReport", "manifest"):
            assert (tmp_path / "artifacts" / run.artifacts[key]).is_file(), key

        manifest = json.loads((tmp_path / "artifacts" / run.artifacts["manifest"]).read_text(encoding="utf-8"))
        assert manifest["qa"]["passed"] is True
        assert manifest["run"]["dry_run"] is True
        assert [t["idx"] for t in manifest["scene_timings"]] == [0, 1, 2]
        assert manifest["duration_sec"] == pytest.approx(sum(durations), abs=0.5)

    @pytest.mark.asyncio
    async def test_forced_failure(self, binaries, tmp_path, short_plan):
        service = build_service(_settings(tmp_path, render_fail_step="images_generate"))
        try:
            run = await service.submit(short_plan)
            run = await service.wait(run.id)
        finally:
            await service.close()

        assert run.status == "failed"
        assert run.error_kind == "fault_injected"
        assert run.current_step == "images_generate"
        assert "voiceOver" in run.artifacts
        assert not any(k == "video" for k in run.artifacts)
