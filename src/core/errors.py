# src/core/errors.py — v1
"""Base exception for render failures.

Concrete errors live next to the code that raises them (media, providers,
qa, storage, pipeline); all of them derive from RenderError so the engine can
classify a failure without importing every module.
"""

from __future__ import annotations


class RenderError(Exception):
    """Base class for errors recorded on a failed Run."""

    #: Value written to ``Run.error_kind`` when this error fails a run.
    error_kind: str = "step"
