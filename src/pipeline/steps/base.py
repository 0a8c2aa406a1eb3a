# src/pipeline/steps/base.py — v1
"""Standard interface for render steps."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from shortrender.config.settings import Settings
from shortrender.media.primitives import MediaToolkit
from shortrender.pipeline.state import RenderState
from shortrender.providers.base import ProviderSet
from shortrender.qa.quality_gate import QualityGate


@dataclass
class StepContext:
    """Everything a step may use. Steps never touch the run store."""

    state: RenderState
    settings: Settings
    media: MediaToolkit
    providers: ProviderSet
    quality_gate: QualityGate


class StepOutput(BaseModel):
    """What a step reports back to the engine."""

    artifacts: dict[str, str] = Field(default_factory=dict)
    message: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)


class BaseStep(ABC):
    """One stage of the fixed render pipeline.

    Steps must be re-invocable: outputs already present on disk are reused.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Step identifier as recorded in ``Run.current_step``."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what this step does."""

    @abstractmethod
    async def execute(self, ctx: StepContext) -> StepOutput:
        """Run the step against ``ctx.state``.

        Raises:
            RenderError: Any failure; the engine records and classifies it.
        """


def reusable(path: Path) -> bool:
    """True when a previous invocation already produced ``path``."""
    return path.is_file() and path.stat().st_size > 0
