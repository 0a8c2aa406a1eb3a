# src/storage/run_store.py — v1
"""Durable Run records.

The engine is the only writer of a claimed run. Every mutation happens in a
single SQLite transaction, so a checkpoint (progress, current step, artifacts
and log lines) is either fully visible or not at all, and claiming a run is
a compare-and-set on its status.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from shortrender.core.models import STEP_NAMES, Plan
from shortrender.storage.models import (
    ErrorKind,
    Run,
    RunClaimError,
    RunLogEntry,
    RunNotFoundError,
    RunStatus,
    check_transition,
    normalize_status,
    utc_now,
)

logger = logging.getLogger(__name__)


class BaseRunStore(ABC):
    """Persistence interface for Run records."""

    @abstractmethod
    async def create(self, plan: Plan, dry_run: bool = False) -> Run:
        """Insert a new queued run for ``plan``."""

    @abstractmethod
    async def get(self, run_id: str) -> Run | None:
        """Fetch a run by id."""

    @abstractmethod
    async def list(self, status: RunStatus | None = None, limit: int | None = 50) -> list[Run]:
        """Most recent runs first, optionally filtered by status (``limit=None``: all)."""

    @abstractmethod
    async def claim(self, run_id: str) -> Run:
        """Move a queued run to running (compare-and-set).

        Raises:
            RunClaimError: The run is not queued.
        """

    @abstractmethod
    async def append_logs(self, run_id: str, entries: list[RunLogEntry]) -> None:
        """Append log lines to a run."""

    @abstractmethod
    async def save_checkpoint(
        self,
        run_id: str,
        *,
        progress: int,
        current_step: str,
        artifacts: dict[str, str],
        logs: list[RunLogEntry],
    ) -> Run:
        """Persist a completed step in one durable update."""

    @abstractmethod
    async def finish(
        self,
        run_id: str,
        status: RunStatus,
        *,
        error: str | None = None,
        error_kind: ErrorKind | None = None,
        logs: list[RunLogEntry] | None = None,
    ) -> Run:
        """Move a run to a terminal status."""

    @abstractmethod
    async def request_cancel(self, run_id: str) -> Run:
        """Cancel a queued run now, or flag a running one for cancellation."""

    @abstractmethod
    async def is_cancel_requested(self, run_id: str) -> bool:
        """Whether cancellation was requested for a run."""

    @abstractmethod
    async def mark_interrupted(self) -> list[str]:
        """Fail every run left ``running`` by a previous process."""

    def close(self) -> None:
        """Release backend resources."""


_SCHEMA = """
CREATE TABLE IF NOT EXISTS runs (
    id TEXT PRIMARY KEY,
    plan_id TEXT NOT NULL,
    plan_json TEXT NOT NULL,
    status TEXT NOT NULL,
    current_step TEXT NOT NULL DEFAULT '',
    progress INTEGER NOT NULL DEFAULT 0,
    logs_json TEXT NOT NULL DEFAULT '[]',
    artifacts_json TEXT NOT NULL DEFAULT '{}',
    error TEXT,
    error_kind TEXT,
    cancel_requested INTEGER NOT NULL DEFAULT 0,
    dry_run INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_runs_status ON runs(status);
CREATE INDEX IF NOT EXISTS idx_runs_plan ON runs(plan_id);
"""

_COLUMNS = (
    "id, plan_id, plan_json, status, current_step, progress, logs_json, "
    "artifacts_json, error, error_kind, cancel_requested, dry_run, created_at, updated_at"
)


def _dump_logs(entries: list[RunLogEntry]) -> str:
    return json.dumps([e.model_dump(mode="json") for e in entries])


class SqliteRunStore(BaseRunStore):
    """SQLite-backed run store (stdlib sqlite3, WAL)."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        # Autocommit mode; transactions are opened explicitly
        self._conn = sqlite3.connect(str(self._db_path), isolation_level=None)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.executescript(_SCHEMA)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield self._conn
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        self._conn.execute("COMMIT")

    def _row_to_run(self, row: tuple[Any, ...]) -> Run:
        (run_id, plan_id, plan_json, status, current_step, progress, logs_json,
         artifacts_json, error, error_kind, cancel_requested, dry_run,
         created_at, updated_at) = row
        try:
            logs = [RunLogEntry(**e) for e in json.loads(logs_json or "[]")]
        except (ValueError, TypeError) as e:
            logger.warning("Unreadable logs for run %s: %s", run_id, e)
            logs = []
        return Run(
            id=run_id,
            plan_id=plan_id,
            plan=Plan.model_validate_json(plan_json),
            status=normalize_status(status),
            current_step=current_step or "",
            progress=progress,
            logs=logs,
            artifacts=json.loads(artifacts_json or "{}"),
            error=error,
            error_kind=error_kind,
            cancel_requested=bool(cancel_requested),
            dry_run=bool(dry_run),
            created_at=created_at,
            updated_at=updated_at,
        )

    def _fetch(self, run_id: str) -> Run:
        row = self._conn.execute(
            f"SELECT {_COLUMNS} FROM runs WHERE id = ?", (run_id,)
        ).fetchone()
        if row is None:
            raise RunNotFoundError(run_id)
        return self._row_to_run(row)

    def _write(self, run: Run) -> None:
        run.updated_at = utc_now()
        self._conn.execute(
            """UPDATE runs SET status = ?, current_step = ?, progress = ?,
                   logs_json = ?, artifacts_json = ?, error = ?, error_kind = ?,
                   cancel_requested = ?, updated_at = ?
               WHERE id = ?""",
            (
                run.status,
                run.current_step,
                run.progress,
                _dump_logs(run.logs),
                json.dumps(run.artifacts),
                run.error,
                run.error_kind,
                int(run.cancel_requested),
                run.updated_at.isoformat(),
                run.id,
            ),
        )

    # --- Interface ---

    async def create(self, plan: Plan, dry_run: bool = False) -> Run:
        now = utc_now()
        run = Run(
            id=uuid.uuid4().hex,
            plan_id=plan.id,
            plan=plan,
            dry_run=dry_run,
            created_at=now,
            updated_at=now,
        )
        with self._transaction() as conn:
            conn.execute(
                f"INSERT INTO runs ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    run.id, run.plan_id, plan.model_dump_json(), run.status, "", 0,
                    "[]", "{}", None, None, 0, int(dry_run),
                    now.isoformat(), now.isoformat(),
                ),
            )
        logger.info("Run created", extra={"data": {"run_id": run.id, "plan_id": plan.id}})
        return run

    async def get(self, run_id: str) -> Run | None:
        try:
            return self._fetch(run_id)
        except RunNotFoundError:
            return None

    async def list(self, status: RunStatus | None = None, limit: int | None = 50) -> list[Run]:
        # SQLite reads a negative LIMIT as unbounded
        limit = -1 if limit is None else limit
        if status is None:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM runs ORDER BY created_at DESC LIMIT ?", (limit,)
            ).fetchall()
        else:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM runs WHERE status = ? ORDER BY created_at DESC LIMIT ?",
                (status, limit),
            ).fetchall()
        return [self._row_to_run(r) for r in rows]

    async def claim(self, run_id: str) -> Run:
        with self._transaction():
            run = self._fetch(run_id)
            if run.status != "queued" or run.cancel_requested:
                raise RunClaimError(f"run {run_id} is {run.status}, not claimable")
            check_transition(run_id, run.status, "running")
            run.status = "running"
            run.current_step = STEP_NAMES[0]
            run.logs.append(RunLogEntry(event="run_claimed", message="Run claimed by engine"))
            self._write(run)
        return run

    async def append_logs(self, run_id: str, entries: list[RunLogEntry]) -> None:
        if not entries:
            return
        with self._transaction():
            run = self._fetch(run_id)
            run.logs.extend(entries)
            self._write(run)

    async def save_checkpoint(
        self,
        run_id: str,
        *,
        progress: int,
        current_step: str,
        artifacts: dict[str, str],
        logs: list[RunLogEntry],
    ) -> Run:
        with self._transaction():
            run = self._fetch(run_id)
            if run.status != "running":
                raise RunClaimError(f"run {run_id} is {run.status}, cannot checkpoint")
            run.progress = max(run.progress, progress)
            run.current_step = current_step
            run.artifacts.update(artifacts)
            run.logs.extend(logs)
            self._write(run)
        return run

    async def finish(
        self,
        run_id: str,
        status: RunStatus,
        *,
        error: str | None = None,
        error_kind: ErrorKind | None = None,
        logs: list[RunLogEntry] | None = None,
    ) -> Run:
        with self._transaction():
            run = self._fetch(run_id)
            check_transition(run_id, run.status, status)
            run.status = status
            if status == "done":
                run.progress = 100
            run.error = error
            run.error_kind = error_kind
            run.logs.extend(logs or [])
            self._write(run)
        logger.info("Run %s", status, extra={"data": {"run_id": run_id, "error_kind": error_kind}})
        return run

    async def request_cancel(self, run_id: str) -> Run:
        with self._transaction():
            run = self._fetch(run_id)
            if run.is_terminal:
                return run
            run.cancel_requested = True
            if run.status == "queued":
                check_transition(run_id, run.status, "canceled")
                run.status = "canceled"
                run.logs.append(
                    RunLogEntry(event="run_canceled", level="warn", message="Canceled before start")
                )
            else:
                run.logs.append(
                    RunLogEntry(
                        event="info",
                        step=run.current_step or None,
                        message="Cancellation requested; stopping at the next step boundary",
                    )
                )
            self._write(run)
        return run

    async def is_cancel_requested(self, run_id: str) -> bool:
        row = self._conn.execute(
            "SELECT cancel_requested FROM runs WHERE id = ?", (run_id,)
        ).fetchone()
        if row is None:
            raise RunNotFoundError(run_id)
        return bool(row[0])

    async def mark_interrupted(self) -> list[str]:
        interrupted: list[str] = []
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM runs WHERE status = 'running'"
            ).fetchall()
            for row in rows:
                run = self._row_to_run(row)
                run.status = "failed"
                run.error = "interrupted: the process exited while the run was in progress"
                run.error_kind = "interrupted"
                run.logs.append(
                    RunLogEntry(
                        event="run_failed",
                        level="error",
                        step=run.current_step or None,
                        message=run.error,
                    )
                )
                self._write(run)
                interrupted.append(run.id)
        if interrupted:
            logger.warning("Marked %d stuck run(s) as failed", len(interrupted))
        return interrupted

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
