# src/providers/openai_provider.py — v1
"""OpenAI implementations of the provider interfaces.

Uses the official openai SDK (tts-1, whisper-1, dall-e-3 by default). The
client is built without SDK-level retries and with the configured timeout;
results are memoized in the cache store so a resubmitted run is not billed
twice for the same input.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import shutil
from pathlib import Path
from typing import Any

from shortrender.cache.base_cache_store import BaseCacheStore
from shortrender.cache.fingerprint import make_hash_key
from shortrender.config.settings import Settings
from shortrender.core.models import SceneTiming, Transcript
from shortrender.providers.base import (
    ImageGenerator,
    ProviderError,
    SpeechSynthesizer,
    Transcriber,
)
from shortrender.providers.json_repair import parse_transcript_payload

logger = logging.getLogger(__name__)

MAX_IMAGE_PROMPT_CHARS = 4000


class _OpenAIBase:
    """Shared client construction and cache helpers."""

    def __init__(self, settings: Settings, cache: BaseCacheStore | None = None) -> None:
        self._settings = settings
        self._cache = cache
        self._client: Any = None

    def _get_client(self) -> Any:
        import openai

        if self._client is None:
            self._client = openai.AsyncOpenAI(
                api_key=self._settings.openai_api_key,
                timeout=self._settings.provider_timeout_s,
                max_retries=0,
            )
        return self._client

    async def _restore(self, hash_key: str, output: Path) -> bool:
        """Copy a cached payload to ``output``; False on any kind of miss."""
        if self._cache is None:
            return False
        lookup = await self._cache.get(hash_key)
        if not lookup.hit or lookup.value is None:
            return False
        payload = Path(str(lookup.value.get("payload_path", "")))
        if not payload.is_file():
            return False
        if payload.resolve() != output.resolve():
            output.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(payload, output)
        logger.debug("Cache hit %s -> %s", hash_key[:12], output.name)
        return True

    async def _remember(self, hash_key: str, kind: str, value: dict[str, Any]) -> None:
        if self._cache is None:
            return
        await self._cache.put(hash_key, kind, value, ttl_seconds=self._settings.cache_ttl_seconds)


def _wrap(operation: str, exc: Exception) -> ProviderError:
    return ProviderError(f"OpenAI {operation} failed: {type(exc).__name__}: {exc}")


class OpenAISpeech(_OpenAIBase, SpeechSynthesizer):
    @property
    def audio_suffix(self) -> str:
        return ".mp3"

    async def synthesize(
        self,
        text: str,
        voice: str,
        output: Path,
        duration_hint_sec: float | None = None,
    ) -> Path:
        import openai

        model = self._settings.openai_tts_model
        hash_key = make_hash_key("tts", model, voice, text)
        if await self._restore(hash_key, output):
            return output

        logger.debug("Generating TTS: %s...", text[:50])
        try:
            response = await self._get_client().audio.speech.create(
                model=model, voice=voice, input=text, response_format="mp3"
            )
        except openai.OpenAIError as e:
            raise _wrap("speech", e) from e

        data = response.content
        if not data:
            raise ProviderError("OpenAI speech returned an empty body")
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(data)
        await self._remember(hash_key, "tts", {"payload_path": str(output.resolve()), "voice": voice})
        return output


class OpenAITranscriber(_OpenAIBase, Transcriber):
    async def transcribe(
        self,
        audio: Path,
        script: str,
        timings: list[SceneTiming],
    ) -> Transcript:
        import openai

        model = self._settings.openai_transcribe_model
        audio_digest = hashlib.sha256(audio.read_bytes()).hexdigest()
        hash_key = make_hash_key("asr", model, audio_digest)
        if self._cache is not None:
            lookup = await self._cache.get(hash_key)
            if lookup.hit and lookup.value is not None:
                return parse_transcript_payload(lookup.value)

        logger.debug("Transcribing audio: %s", audio)
        try:
            with audio.open("rb") as fh:
                response = await self._get_client().audio.transcriptions.create(
                    file=fh,
                    model=model,
                    response_format="verbose_json",
                    timestamp_granularities=["word"],
                )
        except openai.OpenAIError as e:
            raise _wrap("transcription", e) from e

        if isinstance(response, str):
            raw: str | dict[str, Any] = response
        else:
            raw = response.model_dump()
        transcript = parse_transcript_payload(raw)
        await self._remember(hash_key, "asr", transcript.model_dump())
        return transcript


class OpenAIImages(_OpenAIBase, ImageGenerator):
    async def generate(self, prompt: str, output: Path) -> Path:
        import openai

        model = self._settings.openai_image_model
        size = self._settings.openai_image_size
        final_prompt = prompt[:MAX_IMAGE_PROMPT_CHARS]
        hash_key = make_hash_key("images", model, size, final_prompt)
        if await self._restore(hash_key, output):
            return output

        logger.debug("Generating image: %s...", final_prompt[:50])
        try:
            response = await self._get_client().images.generate(
                model=model,
                prompt=final_prompt,
                n=1,
                size=size,
                quality="standard",
                response_format="b64_json",
            )
        except openai.OpenAIError as e:
            raise _wrap("image generation", e) from e

        if not response.data or not response.data[0].b64_json:
            raise ProviderError("OpenAI image generation returned no image data")
        try:
            data = base64.b64decode(response.data[0].b64_json)
        except ValueError as e:
            raise ProviderError(f"OpenAI image payload is not valid base64: {e}") from e

        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(data)
        await self._remember(hash_key, "images", {"payload_path": str(output.resolve()), "size": size})
        return output
