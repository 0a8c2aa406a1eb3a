# src/storage/models.py — v1
"""Storage domain models: Run, RunLogEntry, status transitions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

from shortrender.core.errors import RenderError
from shortrender.core.models import Plan

RunStatus = Literal["queued", "running", "done", "failed", "canceled"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"done", "failed", "canceled"})

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "queued": frozenset({"running", "canceled"}),
    "running": frozenset({"done", "failed", "canceled"}),
    "done": frozenset(),
    "failed": frozenset(),
    "canceled": frozenset(),
}

# Spellings written by older deployments
_STATUS_ALIASES: dict[str, str] = {
    "completed": "done",
    "complete": "done",
    "succeeded": "done",
    "cancelled": "canceled",
    "qa_failed": "failed",
    "error": "failed",
    "pending": "queued",
}

LogEvent = Literal[
    "run_claimed",
    "step_start",
    "step_end",
    "step_error",
    "run_done",
    "run_failed",
    "run_canceled",
    "run_resubmitted",
    "info",
    "warn",
]

ErrorKind = Literal[
    "configuration",
    "process",
    "provider",
    "quality_gate",
    "fault_injected",
    "interrupted",
    "step",
]


class InvalidTransitionError(RenderError):
    """A status change not allowed by the run state machine."""

    def __init__(self, run_id: str, current: str, target: str) -> None:
        self.run_id = run_id
        self.current = current
        self.target = target
        super().__init__(f"run {run_id}: cannot move from {current!r} to {target!r}")


class RunClaimError(RenderError):
    """The run was not in ``queued`` state when a worker tried to claim it."""


class RunNotFoundError(LookupError):
    """No run with the requested id."""


def normalize_status(raw: str) -> RunStatus:
    """Map a stored status string to the canonical vocabulary."""
    value = raw.strip().lower()
    value = _STATUS_ALIASES.get(value, value)
    if value not in ALLOWED_TRANSITIONS:
        raise ValueError(f"unknown run status: {raw!r}")
    return value  # type: ignore[return-value]


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def check_transition(run_id: str, current: str, target: str) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is allowed."""
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(run_id, current, target)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RunLogEntry(BaseModel):
    """One structured, user-visible run log line."""

    timestamp: datetime = Field(default_factory=utc_now)
    level: Literal["debug", "info", "warn", "error"] = "info"
    event: LogEvent = "info"
    step: str | None = None
    message: str
    data: dict[str, Any] = Field(default_factory=dict)


class Run(BaseModel):
    """Persistent record of one render attempt."""

    id: str
    plan_id: str
    plan: Plan
    status: RunStatus = "queued"
    current_step: str = ""
    progress: int = Field(default=0, ge=0, le=100)
    logs: list[RunLogEntry] = Field(default_factory=list)
    artifacts: dict[str, str] = Field(default_factory=dict)
    error: str | None = None
    error_kind: ErrorKind | None = None
    cancel_requested: bool = False
    dry_run: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)
