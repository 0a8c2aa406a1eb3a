# src/logging/context.py — v1
"""Contextual logging support: attach run_id, plan_id and step to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set per run execution. Each asyncio task carries its own copy, so
# concurrent runs do not leak context into each other.
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_plan_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "plan_id", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    plan_id: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        plan_id=_plan_id.get(),
        step=_step.get(),
    )


def set_run_context(run_id: str, plan_id: str | None = None) -> None:
    """Set run-level context (called once per run execution)."""
    _run_id.set(run_id)
    _plan_id.set(plan_id)
    _step.set(None)


def set_step_context(step: str | None) -> None:
    """Set step-level context (called per step execution)."""
    _step.set(step)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _plan_id.set(None)
    _step.set(None)
