# src/providers/base.py — v1
"""Abstract interfaces for the billed AI providers.

Three capabilities are needed by the render steps: speech synthesis,
transcription with word timings, and image generation. Each has a real
(OpenAI) and a dry-run implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from shortrender.core.errors import RenderError
from shortrender.core.models import SceneTiming, Transcript


class ProviderError(RenderError):
    """An AI provider call failed, timed out or returned unusable data."""

    error_kind = "provider"


class SpeechSynthesizer(ABC):
    """Text-to-speech."""

    @property
    @abstractmethod
    def audio_suffix(self) -> str:
        """File suffix of produced audio (e.g. ".mp3")."""

    @abstractmethod
    async def synthesize(
        self,
        text: str,
        voice: str,
        output: Path,
        duration_hint_sec: float | None = None,
    ) -> Path:
        """Write speech for ``text`` to ``output``."""


class Transcriber(ABC):
    """Speech-to-text with word timings."""

    @abstractmethod
    async def transcribe(
        self,
        audio: Path,
        script: str,
        timings: list[SceneTiming],
    ) -> Transcript:
        """Align ``audio`` against the known script."""


class ImageGenerator(ABC):
    """Prompt-to-image."""

    @abstractmethod
    async def generate(self, prompt: str, output: Path) -> Path:
        """Write one image for ``prompt`` to ``output``."""


@dataclass
class ProviderSet:
    """The providers a render uses, chosen once per engine."""

    speech: SpeechSynthesizer
    transcriber: Transcriber
    images: ImageGenerator
    dry_run: bool = False
