# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings. Artifact
location and media binary paths are read once at process start and are not
mutated afterwards.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shortrender.core.models import STEP_NAMES


class ConfigurationError(Exception):
    """Raised when configuration is missing or internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Render policy ===
    render_dry_run: bool = False
    render_fail_step: str = ""
    render_dry_run_step_delay_ms: int = 0

    # === OpenAI provider ===
    openai_api_key: str = ""
    openai_tts_model: str = "tts-1"
    openai_image_model: str = "dall-e-3"
    openai_image_size: Literal["1024x1024", "1024x1792", "1792x1024"] = "1024x1792"
    openai_transcribe_model: str = "whisper-1"
    provider_timeout_s: float = 120.0

    # === Storage ===
    artifacts_dir: Path = Path("./artifacts")
    music_library_dir: Path = Path("./assets/music")
    database_path: Path = Path("./artifacts/shortrender.db")

    # === Media ===
    ffmpeg_path: str = ""
    ffprobe_path: str = ""
    process_timeout_s: float = 600.0
    music_volume: float = 0.15

    # === Admission ===
    max_concurrent_runs: int = 1

    # === Cache ===
    cache_enabled: bool = True
    cache_backend: Literal["sqlite", "json"] = "sqlite"
    cache_root: Path = Path("./artifacts/.cache")
    cache_ttl_seconds: int | None = None

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("render_fail_step")
    @classmethod
    def validate_fail_step(cls, v: str) -> str:
        v = v.strip()
        if v and v not in STEP_NAMES:
            raise ValueError(
                f"render_fail_step must be one of {', '.join(STEP_NAMES)}; got {v!r}"
            )
        return v

    @field_validator("max_concurrent_runs")
    @classmethod
    def validate_max_concurrent_runs(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_concurrent_runs must be >= 1")
        return v

    @field_validator("music_volume")
    @classmethod
    def validate_music_volume(cls, v: float) -> float:
        if not 0 < v <= 1:
            raise ValueError("music_volume must be in (0, 1]")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Cross-field consistency rules."""
        errors: list[str] = []

        if self.render_dry_run_step_delay_ms < 0:
            errors.append("RENDER_DRY_RUN_STEP_DELAY_MS must be >= 0")

        if self.process_timeout_s <= 0 or self.provider_timeout_s <= 0:
            errors.append("PROCESS_TIMEOUT_S and PROVIDER_TIMEOUT_S must be > 0")

        if self.cache_ttl_seconds is not None and self.cache_ttl_seconds <= 0:
            errors.append("CACHE_TTL_SECONDS must be > 0 when set")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    def require_provider_credentials(self) -> None:
        """Fail fast when a billed provider would be needed without a key."""
        if self.render_dry_run:
            return
        if not self.openai_api_key.strip():
            raise ConfigurationError(
                "OPENAI_API_KEY must be set unless RENDER_DRY_RUN is enabled"
            )


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-invocation flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
