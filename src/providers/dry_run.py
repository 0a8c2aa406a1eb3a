# src/providers/dry_run.py — v1
"""Free, deterministic stand-ins for the billed providers.

Used when RENDER_DRY_RUN is enabled. Outputs are real media produced by the
local ffmpeg binary (a tone per scene, a flat-color image per prompt), so
composition and the quality gate run exactly as they would on provider output.
The same input always yields the same output.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from shortrender.core.models import SceneTiming, Transcript, WordTiming
from shortrender.media.process_runner import ProcessRunner
from shortrender.providers.base import ImageGenerator, SpeechSynthesizer, Transcriber

logger = logging.getLogger(__name__)

DEFAULT_SPEECH_SEC = 3.0
WORDS_PER_SECOND = 2.5
IMAGE_SIZE = "1024x1792"


def _digest(*parts: str) -> bytes:
    return hashlib.sha256("\x1f".join(parts).encode("utf-8")).digest()


def tone_frequency(text: str, voice: str) -> int:
    """Audible tone in 220-880 Hz chosen from the text."""
    return 220 + int.from_bytes(_digest(voice, text)[:2], "big") % 661


def prompt_color(prompt: str) -> str:
    """Mid-brightness RGB color chosen from the prompt, as ``0xRRGGBB``."""
    raw = _digest(prompt)[:3]
    channels = [64 + b % 160 for b in raw]
    return "0x" + "".join(f"{c:02X}" for c in channels)


class DryRunSpeech(SpeechSynthesizer):
    def __init__(self, runner: ProcessRunner) -> None:
        self._runner = runner

    @property
    def audio_suffix(self) -> str:
        return ".wav"

    async def synthesize(
        self,
        text: str,
        voice: str,
        output: Path,
        duration_hint_sec: float | None = None,
    ) -> Path:
        duration = duration_hint_sec or max(len(text.split()) / WORDS_PER_SECOND, DEFAULT_SPEECH_SEC)
        output.parent.mkdir(parents=True, exist_ok=True)
        await self._runner.run(
            "ffmpeg",
            [
                "-y",
                "-f", "lavfi",
                "-i", f"sine=frequency={tone_frequency(text, voice)}:sample_rate=44100:duration={duration:.3f}",
                "-ac", "1",
                "-c:a", "pcm_s16le",
                str(output),
            ],
        )
        return output


class DryRunImages(ImageGenerator):
    def __init__(self, runner: ProcessRunner) -> None:
        self._runner = runner

    async def generate(self, prompt: str, output: Path) -> Path:
        output.parent.mkdir(parents=True, exist_ok=True)
        await self._runner.run(
            "ffmpeg",
            [
                "-y",
                "-f", "lavfi",
                "-i", f"color=c={prompt_color(prompt)}:s={IMAGE_SIZE}",
                "-frames:v", "1",
                str(output),
            ],
        )
        return output


class DryRunTranscriber(Transcriber):
    """Spreads each scene's words evenly across that scene's time span."""

    async def transcribe(
        self,
        audio: Path,
        script: str,
        timings: list[SceneTiming],
    ) -> Transcript:
        words: list[WordTiming] = []
        for timing in timings:
            tokens = timing.text.split()
            if not tokens or timing.duration_sec <= 0:
                continue
            slot = timing.duration_sec / len(tokens)
            for i, token in enumerate(tokens):
                start = timing.start_sec + i * slot
                words.append(WordTiming(word=token, start=round(start, 3), end=round(start + slot * 0.9, 3)))
        return Transcript(text=script, words=words)
