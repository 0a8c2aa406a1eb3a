# src/providers/factory.py — v1
"""Factory: choose real or dry-run providers from settings."""

from __future__ import annotations

import logging

from shortrender.cache.base_cache_store import BaseCacheStore
from shortrender.config.settings import Settings
from shortrender.media.process_runner import ProcessRunner
from shortrender.providers.base import ProviderSet

logger = logging.getLogger(__name__)


def create_providers(
    settings: Settings,
    runner: ProcessRunner,
    cache: BaseCacheStore | None = None,
    dry_run: bool | None = None,
) -> ProviderSet:
    """Build the provider set for one engine.

    Args:
        settings: Application settings.
        runner: Process runner (dry-run stand-ins render with ffmpeg).
        cache: Provider result cache (real providers only).
        dry_run: Override for ``settings.render_dry_run``.

    Raises:
        ConfigurationError: Real providers requested without credentials.
    """
    use_dry_run = settings.render_dry_run if dry_run is None else dry_run
    if use_dry_run:
        from shortrender.providers.dry_run import DryRunImages, DryRunSpeech, DryRunTranscriber

        logger.info("Using dry-run providers")
        return ProviderSet(
            speech=DryRunSpeech(runner),
            transcriber=DryRunTranscriber(),
            images=DryRunImages(runner),
            dry_run=True,
        )

    settings.require_provider_credentials()
    from shortrender.providers.openai_provider import OpenAIImages, OpenAISpeech, OpenAITranscriber

    logger.debug("Using OpenAI providers")
    return ProviderSet(
        speech=OpenAISpeech(settings, cache),
        transcriber=OpenAITranscriber(settings, cache),
        images=OpenAIImages(settings, cache),
        dry_run=False,
    )
