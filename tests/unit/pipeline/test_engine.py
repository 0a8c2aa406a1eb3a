# tests/unit/pipeline/test_engine.py — v1
"""Tests for pipeline/engine.py — step sequencing, checkpoints, failures.

Steps are stubs; the run store is the real SQLite store.
"""

from __future__ import annotations

import asyncio

import pytest

from shortrender.config.settings import Settings
from shortrender.core.models import STEP_NAMES, QAChecks, QAResult
from shortrender.media.primitives import MediaToolkit
from shortrender.media.process_runner import ExternalProcessError
from shortrender.pipeline.engine import (
    FaultInjectedError,
    RenderEngine,
    classify_error,
    error_diagnostics,
)
from shortrender.pipeline.steps.base import BaseStep, StepContext, StepOutput
from shortrender.providers.base import ProviderError
from shortrender.providers.factory import create_providers
from shortrender.qa.quality_gate import QualityGate, QualityGateError
from shortrender.storage.models import RunClaimError
from shortrender.storage.run_store import SqliteRunStore


class StubStep(BaseStep):
    """Records calls; optionally raises or runs a hook."""

    def __init__(self, name: str, error: Exception | None = None, hook=None) -> None:
        self._name = name
        self.error = error
        self.hook = hook
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"stub {self._name}"

    async def execute(self, ctx: StepContext) -> StepOutput:
        self.calls += 1
        if self.hook is not None:
            await self.hook(ctx)
        if self.error is not None:
            raise self.error
        return StepOutput(
            artifacts={f"{self._name}_out": f"runs/{ctx.state.run_id}/{self._name}.bin"},
            message=f"{self._name} ok",
            data={"n": 1},
            warnings=["careful"] if self._name == "music_build" else [],
        )


@pytest.fixture
def store(tmp_path):
    s = SqliteRunStore(tmp_path / "runs.db")
    yield s
    s.close()


@pytest.fixture
def stub_steps():
    return [StubStep(name) for name in STEP_NAMES]


def _engine(settings: Settings, store, runner, steps) -> RenderEngine:
    return RenderEngine(
        settings=settings,
        store=store,
        media=MediaToolkit(runner),
        providers=create_providers(settings, runner, dry_run=True),
        quality_gate=QualityGate(runner),
        steps=steps,
    )


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_all_steps_run_in_order(self, settings, store, fake_runner, sample_plan, stub_steps):
        engine = _engine(settings, store, fake_runner, stub_steps)
        run = await store.create(sample_plan)

        done = await engine.execute(run.id)

        assert done.status == "done"
        assert done.progress == 100
        assert done.current_step == "finalize_artifacts"
        assert all(s.calls == 1 for s in stub_steps)
        assert set(done.artifacts) == {f"{n}_out" for n in STEP_NAMES}
        events = [e.event for e in done.logs]
        assert events[0] == "run_claimed"
        assert events[-1] == "run_done"
        assert events.count("step_start") == 7
        assert events.count("step_end") == 7

    @pytest.mark.asyncio
    async def test_step_end_records_duration(self, settings, store, fake_runner, sample_plan, stub_steps):
        engine = _engine(settings, store, fake_runner, stub_steps)
        run = await store.create(sample_plan)
        done = await engine.execute(run.id)
        ends = [e for e in done.logs if e.event == "step_end"]
        assert [e.step for e in ends] == list(STEP_NAMES)
        assert all("duration_ms" in e.data for e in ends)

    @pytest.mark.asyncio
    async def test_warnings_logged(self, settings, store, fake_runner, sample_plan, stub_steps):
        engine = _engine(settings, store, fake_runner, stub_steps)
        run = await store.create(sample_plan)
        done = await engine.execute(run.id)
        warns = [e for e in done.logs if e.event == "warn"]
        assert [(w.step, w.message, w.level) for w in warns] == [("music_build", "careful", "warn")]

    @pytest.mark.asyncio
    async def test_checkpoint_visible_before_next_step(self, settings, store, fake_runner, sample_plan):
        seen: list[tuple[int, str]] = []

        async def observe(ctx):
            current = await store.get(ctx.state.run_id)
            seen.append((current.progress, current.current_step))

        steps = [StubStep(name, hook=observe) for name in STEP_NAMES]
        engine = _engine(settings, store, fake_runner, steps)
        run = await store.create(sample_plan)
        await engine.execute(run.id)

        assert seen == [
            (0, "tts_generate"),
            (14, "asr_align"),
            (29, "images_generate"),
            (43, "captions_build"),
            (57, "music_build"),
            (71, "ffmpeg_render"),
            (86, "finalize_artifacts"),
        ]

    @pytest.mark.asyncio
    async def test_run_directories_created(self, settings, store, fake_runner, sample_plan, stub_steps):
        engine = _engine(settings, store, fake_runner, stub_steps)
        run = await store.create(sample_plan)
        await engine.execute(run.id)
        assert (settings.artifacts_dir / "runs" / run.id / "final").is_dir()


class TestFailures:
    @pytest.mark.asyncio
    async def test_step_error_fails_run(self, settings, store, fake_runner, sample_plan):
        steps = [StubStep(n) for n in STEP_NAMES]
        steps[2].error = ProviderError("OpenAI image generation failed: rate limited")
        engine = _engine(settings, store, fake_runner, steps)
        run = await store.create(sample_plan)

        failed = await engine.execute(run.id)

        assert failed.status == "failed"
        assert failed.error_kind == "provider"
        assert failed.error == "OpenAI image generation failed: rate limited"
        assert failed.current_step == "images_generate"
        assert failed.progress == 29
        assert steps[3].calls == 0
        step_error = next(e for e in failed.logs if e.event == "step_error")
        assert step_error.step == "images_generate"
        assert failed.logs[-1].event == "run_failed"

    @pytest.mark.asyncio
    async def test_process_error_diagnostics(self, settings, store, fake_runner, sample_plan):
        steps = [StubStep(n) for n in STEP_NAMES]
        steps[5].error = ExternalProcessError("ffmpeg", 1, "frame=1\nInvalid argument")
        engine = _engine(settings, store, fake_runner, steps)
        run = await store.create(sample_plan)

        failed = await engine.execute(run.id)

        assert failed.error_kind == "process"
        data = next(e for e in failed.logs if e.event == "step_error").data
        assert data["tool"] == "ffmpeg"
        assert data["exit_code"] == 1
        assert "Invalid argument" in data["stderr_tail"]

    @pytest.mark.asyncio
    async def test_unexpected_error_is_step_kind(self, settings, store, fake_runner, sample_plan):
        steps = [StubStep(n) for n in STEP_NAMES]
        steps[0].error = KeyError("scene")
        engine = _engine(settings, store, fake_runner, steps)
        run = await store.create(sample_plan)
        failed = await engine.execute(run.id)
        assert failed.status == "failed"
        assert failed.error_kind == "step"

    @pytest.mark.asyncio
    async def test_fault_injection(self, tmp_path, store, fake_runner, sample_plan):
        settings = Settings(
            _env_file=None,
            artifacts_dir=tmp_path / "artifacts",
            render_dry_run=True,
            render_fail_step="captions_build",
        )
        steps = [StubStep(n) for n in STEP_NAMES]
        engine = _engine(settings, store, fake_runner, steps)
        run = await store.create(sample_plan, dry_run=True)

        failed = await engine.execute(run.id)

        assert failed.status == "failed"
        assert failed.error == "Forced failure injected at step captions_build"
        assert failed.error_kind == "fault_injected"
        assert failed.current_step == "captions_build"
        assert failed.progress == 43
        assert steps[3].calls == 0
        assert [s.calls for s in steps[:3]] == [1, 1, 1]

    @pytest.mark.asyncio
    async def test_claimed_run_cannot_be_executed_twice(self, settings, store, fake_runner, sample_plan, stub_steps):
        engine = _engine(settings, store, fake_runner, stub_steps)
        run = await store.create(sample_plan)
        await engine.execute(run.id)
        with pytest.raises(RunClaimError):
            await engine.execute(run.id)


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_at_step_boundary(self, settings, store, fake_runner, sample_plan):
        async def cancel_now(ctx):
            await store.request_cancel(ctx.state.run_id)

        steps = [StubStep(n) for n in STEP_NAMES]
        steps[1].hook = cancel_now
        engine = _engine(settings, store, fake_runner, steps)
        run = await store.create(sample_plan)

        canceled = await engine.execute(run.id)

        assert canceled.status == "canceled"
        assert steps[1].calls == 1
        assert steps[2].calls == 0
        assert canceled.progress == 29
        assert canceled.logs[-1].event == "run_canceled"
        assert "asr_align_out" in canceled.artifacts

    @pytest.mark.asyncio
    async def test_cancel_during_dry_run_delay_skips_step(self, tmp_path, store, fake_runner, sample_plan):
        settings = Settings(
            _env_file=None,
            artifacts_dir=tmp_path / "artifacts",
            render_dry_run=True,
            render_dry_run_step_delay_ms=300,
        )
        steps = [StubStep(n) for n in STEP_NAMES]
        engine = _engine(settings, store, fake_runner, steps)
        run = await store.create(sample_plan, dry_run=True)

        task = asyncio.create_task(engine.execute(run.id))
        await asyncio.sleep(0.05)
        await store.request_cancel(run.id)
        canceled = await task

        assert canceled.status == "canceled"
        assert steps[0].calls == 0
        assert canceled.progress == 0
        assert canceled.logs[-1].event == "run_canceled"

    @pytest.mark.asyncio
    async def test_task_cancel_marks_interrupted(self, settings, store, fake_runner, sample_plan):
        started = asyncio.Event()

        async def block(ctx):
            started.set()
            await asyncio.sleep(30)

        steps = [StubStep(n) for n in STEP_NAMES]
        steps[0].hook = block
        engine = _engine(settings, store, fake_runner, steps)
        run = await store.create(sample_plan)

        task = asyncio.create_task(engine.execute(run.id))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        failed = await store.get(run.id)
        assert failed.status == "failed"
        assert failed.error_kind == "interrupted"


class TestClassification:
    def test_kinds(self):
        from shortrender.config.settings import ConfigurationError

        assert classify_error(ConfigurationError("x")) == "configuration"
        assert classify_error(FaultInjectedError("asr_align")) == "fault_injected"
        assert classify_error(ValueError("x")) == "step"

    def test_quality_gate_diagnostics(self):
        result = QAResult(passed=False, checks=QAChecks(silence=False), details={"silence": "1 span"})
        data = error_diagnostics(QualityGateError(result))
        assert data["error_type"] == "QualityGateError"
        assert data["failed_checks"] == ["silence"]
