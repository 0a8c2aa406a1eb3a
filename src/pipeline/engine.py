# src/pipeline/engine.py — v1
"""Render execution engine: drives one claimed run through the seven steps.

Lifecycle of a run owned by the engine:

    queued --claim--> running --all steps ok--> done
                         |--step error-------> failed
                         '--cancel requested-> canceled

After step k succeeds the engine writes one checkpoint (progress
round(100*k/7), the next step name, the step's artifacts and log lines)
before step k+1 starts. Step errors never escape ``execute``; they are
classified and recorded on the run. Tracebacks go to the process log only.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from shortrender.config.settings import ConfigurationError, Settings
from shortrender.core.errors import RenderError
from shortrender.logging.context import clear_context, set_run_context, set_step_context
from shortrender.media.primitives import MediaToolkit
from shortrender.media.process_runner import ExternalProcessError
from shortrender.pipeline.state import RenderState
from shortrender.pipeline.steps.base import BaseStep, StepContext, StepOutput
from shortrender.pipeline.steps.registry import default_steps
from shortrender.providers.base import ProviderSet
from shortrender.qa.quality_gate import QualityGate, QualityGateError
from shortrender.storage import layout
from shortrender.storage.models import ErrorKind, Run, RunLogEntry
from shortrender.storage.run_store import BaseRunStore

logger = logging.getLogger(__name__)


class FaultInjectedError(RenderError):
    """Forced failure configured through RENDER_FAIL_STEP."""

    error_kind = "fault_injected"

    def __init__(self, step: str) -> None:
        self.step = step
        super().__init__(f"Forced failure injected at step {step}")


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception to the ``Run.error_kind`` vocabulary."""
    if isinstance(exc, ConfigurationError):
        return "configuration"
    if isinstance(exc, RenderError):
        return exc.error_kind  # type: ignore[return-value]
    return "step"


def error_diagnostics(exc: BaseException) -> dict[str, Any]:
    """Structured details for the ``step_error`` log entry."""
    data: dict[str, Any] = {"error_type": type(exc).__name__}
    if isinstance(exc, ExternalProcessError):
        data.update(
            tool=exc.kind,
            exit_code=exc.exit_code,
            stderr_tail=exc.stderr_tail,
        )
    elif isinstance(exc, QualityGateError):
        data.update(
            failed_checks=exc.result.failed_checks,
            details=exc.result.details,
        )
    return data


class RenderEngine:
    """Executes queued runs, one step at a time.

    Args:
        settings: Application settings (dry-run, fault injection, paths).
        store: Durable run store.
        media: Media primitives.
        providers: Speech, transcription and image providers.
        quality_gate: Gate applied by the final step.
        steps: Step table override (tests); defaults to the seven render steps.
    """

    def __init__(
        self,
        settings: Settings,
        store: BaseRunStore,
        media: MediaToolkit,
        providers: ProviderSet,
        quality_gate: QualityGate,
        steps: list[BaseStep] | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._media = media
        self._providers = providers
        self._quality_gate = quality_gate
        self._steps = steps if steps is not None else default_steps()

    @property
    def store(self) -> BaseRunStore:
        return self._store

    @property
    def step_names(self) -> list[str]:
        return [s.name for s in self._steps]

    async def execute(self, run_id: str) -> Run:
        """Claim ``run_id`` and drive it to a terminal status.

        Raises:
            RunClaimError: The run is not queued (already claimed or canceled).
        """
        run = await self._store.claim(run_id)
        set_run_context(run.id, run.plan_id)
        logger.info("Run claimed", extra={"data": {"plan_id": run.plan_id, "dry_run": run.dry_run}})
        try:
            return await self._drive(run)
        finally:
            clear_context()

    async def _drive(self, run: Run) -> Run:
        state = RenderState.for_run(
            run.id, run.plan, self._settings.artifacts_dir, dry_run=run.dry_run
        )
        layout.ensure_run_directories(state.run_path)
        ctx = StepContext(
            state=state,
            settings=self._settings,
            media=self._media,
            providers=self._providers,
            quality_gate=self._quality_gate,
        )
        total = len(self._steps)

        for k, step in enumerate(self._steps, start=1):
            if await self._store.is_cancel_requested(run.id):
                return await self._cancel(run.id, step.name)

            set_step_context(step.name)
            await self._store.append_logs(
                run.id,
                [RunLogEntry(event="step_start", step=step.name, message=step.description)],
            )
            started = time.monotonic()
            try:
                output = await self._run_step(run.id, step, ctx)
            except asyncio.CancelledError:
                await self._store.finish(
                    run.id,
                    "failed",
                    error="interrupted: render task was cancelled",
                    error_kind="interrupted",
                    logs=[RunLogEntry(event="run_failed", level="error", step=step.name,
                                      message="Render task cancelled")],
                )
                raise
            except Exception as exc:
                return await self._fail(run.id, step.name, exc)
            if output is None:
                return await self._cancel(run.id, step.name)

            duration_ms = int((time.monotonic() - started) * 1000)
            state.artifacts.update(output.artifacts)
            logs = [
                RunLogEntry(event="warn", level="warn", step=step.name, message=w)
                for w in output.warnings
            ]
            logs.append(
                RunLogEntry(
                    event="step_end",
                    step=step.name,
                    message=output.message or f"{step.name} complete",
                    data={**output.data, "duration_ms": duration_ms},
                )
            )
            next_step = self._steps[k].name if k < total else step.name
            await self._store.save_checkpoint(
                run.id,
                progress=round(100 * k / total),
                current_step=next_step,
                artifacts=output.artifacts,
                logs=logs,
            )
            logger.info("Step %s done in %dms", step.name, duration_ms)

        set_step_context(None)
        done = await self._store.finish(
            run.id,
            "done",
            logs=[RunLogEntry(event="run_done", message="Render complete", data={"artifacts": state.artifacts})],
        )
        logger.info("Run done")
        return done

    async def _run_step(
        self, run_id: str, step: BaseStep, ctx: StepContext
    ) -> StepOutput | None:
        """Run one step. Returns None when a cancel arrived during the dry-run delay."""
        if self._settings.render_fail_step == step.name:
            raise FaultInjectedError(step.name)
        if ctx.state.dry_run and self._settings.render_dry_run_step_delay_ms > 0:
            await asyncio.sleep(self._settings.render_dry_run_step_delay_ms / 1000)
            if await self._store.is_cancel_requested(run_id):
                return None
        return await step.execute(ctx)

    async def _fail(self, run_id: str, step_name: str, exc: Exception) -> Run:
        kind = classify_error(exc)
        message = str(exc) or type(exc).__name__
        if isinstance(exc, (RenderError, ConfigurationError)):
            logger.warning("Step %s failed (%s): %s", step_name, kind, message)
        else:
            logger.error("Step %s failed unexpectedly: %s", step_name, message, exc_info=exc)
        return await self._store.finish(
            run_id,
            "failed",
            error=message,
            error_kind=kind,
            logs=[
                RunLogEntry(
                    event="step_error",
                    level="error",
                    step=step_name,
                    message=message,
                    data=error_diagnostics(exc),
                ),
                RunLogEntry(event="run_failed", level="error", step=step_name, message=message),
            ],
        )

    async def _cancel(self, run_id: str, next_step: str) -> Run:
        logger.info("Run canceled before %s", next_step)
        return await self._store.finish(
            run_id,
            "canceled",
            logs=[
                RunLogEntry(
                    event="run_canceled",
                    level="warn",
                    step=next_step,
                    message=f"Canceled before {next_step}",
                )
            ],
        )
