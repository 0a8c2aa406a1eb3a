# src/api/facade.py — v1
"""Public API facade: in-process job submission for renders.

Usage:
    from shortrender.api.facade import build_service
    service = build_service(load_settings())
    run = await service.submit(plan)
    run = await service.wait(run.id)

HTTP routes and request validation live outside this package; they call
this facade.
"""

from __future__ import annotations

import logging

from shortrender.cache.base_cache_store import BaseCacheStore
from shortrender.cache.cache_factory import create_cache_store
from shortrender.config.settings import Settings
from shortrender.core.models import STEP_NAMES, Plan
from shortrender.media.primitives import MediaToolkit
from shortrender.media.process_runner import ProcessRunner, resolve_binaries
from shortrender.pipeline.engine import RenderEngine
from shortrender.pipeline.queue import RenderQueue
from shortrender.providers.factory import create_providers
from shortrender.qa.quality_gate import QualityGate
from shortrender.storage import layout
from shortrender.storage.models import Run, RunLogEntry, RunNotFoundError
from shortrender.storage.run_store import BaseRunStore, SqliteRunStore

logger = logging.getLogger(__name__)


class RenderService:
    """Submit, inspect, cancel and resubmit render runs."""

    def __init__(
        self,
        settings: Settings,
        store: BaseRunStore,
        engine: RenderEngine,
        queue: RenderQueue,
        cache: BaseCacheStore | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.engine = engine
        self.queue = queue
        self._cache = cache

    async def submit(self, plan: Plan) -> Run:
        """Create a queued run for ``plan`` and schedule it."""
        run = await self.store.create(plan, dry_run=self.settings.render_dry_run)
        self.queue.enqueue(run.id)
        return run

    async def get_run(self, run_id: str) -> Run:
        run = await self.store.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    async def cancel(self, run_id: str) -> Run:
        """Cancel a queued run immediately, or a running one at its next step."""
        run = await self.store.request_cancel(run_id)
        logger.info("Cancel requested for run %s (now %s)", run_id, run.status)
        return run

    async def resubmit(self, run_id: str, from_step: str | None = None) -> Run:
        """Start a new run for the same plan; the original stays untouched.

        With ``from_step``, the new run directory is seeded with the previous
        run's reusable outputs for every step before ``from_step``, so those
        steps pick them up instead of calling providers again.

        Raises:
            RunNotFoundError: No run ``run_id``.
            ValueError: ``from_step`` is not a step name, or the previous run
                has not finished.
        """
        if from_step is not None and from_step not in STEP_NAMES:
            raise ValueError(f"unknown step {from_step!r}; expected one of {', '.join(STEP_NAMES)}")
        previous = await self.get_run(run_id)
        if from_step is not None and not previous.is_terminal:
            raise ValueError(f"run {run_id} is {previous.status}; resume needs a finished run")

        run = await self.store.create(previous.plan, dry_run=self.settings.render_dry_run)
        entry = RunLogEntry(
            event="run_resubmitted",
            message=f"Resubmitted from run {run_id}",
            data={"previous_run_id": run_id},
        )
        if from_step is not None:
            steps_before = list(STEP_NAMES[: STEP_NAMES.index(from_step)])
            root = self.settings.artifacts_dir
            seeded = layout.seed_run_directory(
                layout.run_dir(root, run_id), layout.run_dir(root, run.id), steps_before
            )
            entry.data.update(from_step=from_step, seeded_files=len(seeded))
        await self.store.append_logs(run.id, [entry])
        self.queue.enqueue(run.id)
        logger.info("Run %s resubmitted as %s", run_id, run.id, extra={"data": entry.data})
        return run

    async def restore_queued(self) -> list[str]:
        """Schedule every run left ``queued`` in the store, oldest first."""
        queued = await self.store.list(status="queued", limit=None)
        run_ids = [run.id for run in sorted(queued, key=lambda r: r.created_at)]
        for run_id in run_ids:
            self.queue.enqueue(run_id)
        if run_ids:
            logger.info("Restored %d queued run(s)", len(run_ids))
        return run_ids

    async def wait(self, run_id: str) -> Run:
        """Wait until the run's render task ends, then return its record."""
        await self.queue.wait(run_id)
        return await self.get_run(run_id)

    async def reset_stuck_runs(self) -> list[str]:
        """Fail runs left ``running`` by a process that no longer exists."""
        return await self.store.mark_interrupted()

    async def close(self) -> None:
        await self.queue.shutdown()
        self.store.close()
        if self._cache is not None:
            self._cache.close()


def build_service(settings: Settings) -> RenderService:
    """Wire the render stack from settings.

    Raises:
        ConfigurationError: A media binary or provider credential is missing.
    """
    settings.require_provider_credentials()
    binaries = resolve_binaries(settings)
    runner = ProcessRunner(binaries, default_timeout_s=settings.process_timeout_s)
    cache = None if settings.render_dry_run else create_cache_store(settings)
    providers = create_providers(settings, runner, cache)
    store = SqliteRunStore(settings.database_path)
    engine = RenderEngine(
        settings=settings,
        store=store,
        media=MediaToolkit(runner),
        providers=providers,
        quality_gate=QualityGate(runner),
    )
    queue = RenderQueue(engine, max_concurrent=settings.max_concurrent_runs)
    return RenderService(settings, store, engine, queue, cache=cache)
