# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


# === PIPELINE STEPS ===

RunStep = Literal[
    "tts_generate",
    "asr_align",
    "images_generate",
    "captions_build",
    "music_build",
    "ffmpeg_render",
    "finalize_artifacts",
]

STEP_NAMES: tuple[str, ...] = (
    "tts_generate",
    "asr_align",
    "images_generate",
    "captions_build",
    "music_build",
    "ffmpeg_render",
    "finalize_artifacts",
)


# === PLAN ===


class Scene(BaseModel):
    """One narrated segment of a plan."""

    idx: int = Field(ge=0)
    narration_text: str
    image_prompt: str = ""
    duration_target_sec: float = Field(gt=0)
    effect: str | None = None

    @field_validator("narration_text")
    @classmethod
    def validate_narration(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("narration_text must not be empty")
        return v


class Plan(BaseModel):
    """Approved, fully-resolved content plan handed to the engine."""

    id: str
    niche_pack_id: str = "facts"
    voice: str = "alloy"
    language: str = "en"
    topic: str = ""
    title: str = ""
    target_length_sec: float | None = None
    scenes: list[Scene]

    @model_validator(mode="after")
    def validate_scenes(self) -> Plan:
        """Scenes must be non-empty with unique indices; stored sorted by idx."""
        if not self.scenes:
            raise ValueError("plan must contain at least one scene")
        indices = [s.idx for s in self.scenes]
        if len(set(indices)) != len(indices):
            raise ValueError(f"duplicate scene idx in plan {self.id!r}")
        self.scenes = sorted(self.scenes, key=lambda s: s.idx)
        if self.target_length_sec is None:
            self.target_length_sec = sum(s.duration_target_sec for s in self.scenes)
        return self

    @property
    def script(self) -> str:
        """Full narration, scenes joined in order."""
        return " ".join(s.narration_text.strip() for s in self.scenes)


class SceneTiming(BaseModel):
    """Resolved placement of a scene on the voice-over timeline."""

    idx: int
    text: str
    start_sec: float
    end_sec: float

    @property
    def duration_sec(self) -> float:
        return self.end_sec - self.start_sec


# === ALIGNMENT ===


class WordTiming(BaseModel):
    """A single transcribed word with its time span."""

    word: str
    start: float
    end: float


class Transcript(BaseModel):
    """Speech-to-text alignment of the voice-over."""

    text: str = ""
    words: list[WordTiming] = Field(default_factory=list)


# === MEDIA ===


class ProbeResult(BaseModel):
    """Outcome of probing a media file. Never raised, always returned."""

    valid: bool
    duration_sec: float | None = None
    width: int | None = None
    height: int | None = None
    has_audio: bool | None = None
    error: str | None = None


# === QUALITY GATE ===


class QAChecks(BaseModel):
    silence: bool = True
    file_size: bool = True
    resolution: bool = True


class QAResult(BaseModel):
    """Quality gate report for a finished video."""

    passed: bool
    checks: QAChecks
    details: dict[str, str] = Field(default_factory=dict)
    file_size_bytes: int | None = None
    width: int | None = None
    height: int | None = None
    longest_silence_sec: float | None = None

    @property
    def failed_checks(self) -> list[str]:
        return [name for name, ok in self.checks.model_dump().items() if not ok]

    def summary(self) -> str:
        """Single-line description of every failing check."""
        if self.passed:
            return "all checks passed"
        return "; ".join(
            f"{name}: {self.details.get(name, 'failed')}" for name in self.failed_checks
        )
