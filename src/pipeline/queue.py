# src/pipeline/queue.py — v1
"""Admission control for renders.

At most ``max_concurrent`` runs execute at once (default one, since a
render saturates the CPU with ffmpeg). Waiting runs are admitted in
submission order; a run canceled while waiting is skipped when its turn
comes because it can no longer be claimed.
"""

from __future__ import annotations

import asyncio
import logging

from shortrender.pipeline.engine import RenderEngine
from shortrender.storage.models import Run, RunClaimError

logger = logging.getLogger(__name__)


class RenderQueue:
    """FIFO admission of runs into the engine, bounded by a semaphore."""

    def __init__(self, engine: RenderEngine, max_concurrent: int = 1) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self._engine = engine
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._max_concurrent = max_concurrent
        self._tasks: dict[str, asyncio.Task[Run | None]] = {}
        self._active = 0

    @property
    def active(self) -> int:
        """Runs currently executing."""
        return self._active

    @property
    def pending(self) -> int:
        """Runs submitted and not yet finished (waiting or executing)."""
        return sum(1 for t in self._tasks.values() if not t.done())

    def enqueue(self, run_id: str) -> asyncio.Task[Run | None]:
        """Schedule ``run_id``; must be called from a running event loop."""
        existing = self._tasks.get(run_id)
        if existing is not None and not existing.done():
            return existing
        task = asyncio.create_task(self._admit(run_id), name=f"render-{run_id[:8]}")
        self._tasks[run_id] = task
        task.add_done_callback(lambda t: self._forget(run_id, t))
        logger.debug("Run %s enqueued (%d pending)", run_id, self.pending)
        return task

    async def _admit(self, run_id: str) -> Run | None:
        async with self._semaphore:
            self._active += 1
            try:
                return await self._engine.execute(run_id)
            except RunClaimError as e:
                logger.info("Skipping run %s: %s", run_id, e)
                return None
            finally:
                self._active -= 1

    def _forget(self, run_id: str, task: asyncio.Task[Run | None]) -> None:
        if self._tasks.get(run_id) is task:
            del self._tasks[run_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error("Render task for run %s crashed: %s", run_id, task.exception())

    async def wait(self, run_id: str) -> Run | None:
        """Wait for a submitted run's render task to finish.

        Returns None for runs with no task in flight (finished or never
        enqueued here); read those from the run store.
        """
        task = self._tasks.get(run_id)
        if task is None:
            return None
        return await task

    async def drain(self) -> None:
        """Wait for every submitted run."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        if tasks:
            await asyncio.gather(*tasks)

    async def shutdown(self) -> None:
        """Cancel in-flight tasks (interrupted runs are marked failed)."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
