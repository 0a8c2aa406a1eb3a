# src/media/primitives.py — v1
"""Media primitives built on the process runner.

Every operation writes a single output file and creates its parent
directory. Only ``probe`` swallows failures (it reports them in the result);
everything else raises ExternalProcessError on a failed ffmpeg call.
"""

from __future__ import annotations

import json
import logging
import math
import shutil
from pathlib import Path
from typing import Literal

from shortrender.core.models import ProbeResult
from shortrender.media.effects import (
    OUTPUT_FPS,
    MotionEffect,
    build_motion_filter,
    frame_count,
    parse_effect,
)
from shortrender.media.process_runner import ExternalProcessError, ProcessRunner

logger = logging.getLogger(__name__)

ConcatMode = Literal["copy", "reencode"]

THUMBNAIL_SIZE = "540:960"

_AUDIO_CODECS: dict[str, list[str]] = {
    ".mp3": ["-c:a", "libmp3lame", "-b:a", "192k"],
    ".wav": ["-c:a", "pcm_s16le"],
    ".m4a": ["-c:a", "aac", "-b:a", "192k"],
    ".aac": ["-c:a", "aac", "-b:a", "192k"],
}


def _prepare_output(output: Path | str) -> Path:
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def _positive_finite(value: float | None) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def _as_float(raw: object) -> float | None:
    try:
        return float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def escape_filter_path(path: Path | str) -> str:
    """Quote a file path for use as a filter option value."""
    escaped = str(path).replace("\\", "/").replace(":", "\\:")
    return f"'{escaped}'"


def _concat_line(path: Path) -> str:
    quoted = str(path.resolve()).replace("'", "'\\''")
    return f"file '{quoted}'"


class MediaToolkit:
    """Async media operations (probe, motion, concat, mix, composite, thumbnail)."""

    def __init__(self, runner: ProcessRunner) -> None:
        self._runner = runner

    @property
    def runner(self) -> ProcessRunner:
        return self._runner

    async def probe(self, file: Path | str) -> ProbeResult:
        """Inspect a video file. Never raises; failures make it invalid."""
        path = Path(file)
        if not path.is_file():
            return ProbeResult(valid=False, error=f"file not found: {path}")

        try:
            result = await self._runner.run(
                "ffprobe",
                ["-v", "error", "-print_format", "json", "-show_format", "-show_streams", str(path)],
                capture_stdout=True,
            )
            info = json.loads(result.stdout or "{}")
        except ExternalProcessError as e:
            return ProbeResult(valid=False, error=str(e))
        except json.JSONDecodeError as e:
            return ProbeResult(valid=False, error=f"unreadable probe output: {e}")

        video = next(
            (
                s for s in info.get("streams", [])
                if s.get("codec_type") == "video" and s.get("width") and s.get("height")
            ),
            None,
        )
        has_audio = any(s.get("codec_type") == "audio" for s in info.get("streams", []))
        duration = _as_float(info.get("format", {}).get("duration"))
        if not _positive_finite(duration) and video is not None:
            duration = _as_float(video.get("duration"))

        if video is None:
            return ProbeResult(
                valid=False, duration_sec=duration, has_audio=has_audio, error="no video stream"
            )
        width, height = int(video["width"]), int(video["height"])
        if not _positive_finite(duration):
            return ProbeResult(
                valid=False, width=width, height=height, has_audio=has_audio,
                error="invalid duration",
            )
        return ProbeResult(
            valid=True, duration_sec=duration, width=width, height=height, has_audio=has_audio
        )

    async def media_duration(self, file: Path | str) -> float:
        """Container duration in seconds (works for audio-only files).

        Raises:
            ExternalProcessError: ffprobe failed.
            ValueError: Duration missing or not positive.
        """
        result = await self._runner.run(
            "ffprobe",
            [
                "-v", "error",
                "-show_entries", "format=duration",
                "-of", "default=noprint_wrappers=1:nokey=1",
                str(file),
            ],
            capture_stdout=True,
        )
        duration = _as_float(result.stdout.strip())
        if not _positive_finite(duration):
            raise ValueError(f"invalid duration {result.stdout.strip()!r} for {file}")
        return duration  # type: ignore[return-value]

    async def synthesize_motion(
        self,
        image: Path | str,
        duration_sec: float,
        effect: MotionEffect | str,
        output: Path | str,
    ) -> Path:
        """Render a still image as a 1080x1920, 30 fps clip with motion."""
        out = _prepare_output(output)
        frames = frame_count(duration_sec)
        motion = effect if isinstance(effect, MotionEffect) else parse_effect(effect)
        await self._runner.run(
            "ffmpeg",
            [
                "-y",
                "-i", str(image),
                "-vf", build_motion_filter(motion, frames),
                "-frames:v", str(frames),
                "-r", str(OUTPUT_FPS),
                "-c:v", "libx264",
                "-preset", "fast",
                "-crf", "23",
                "-pix_fmt", "yuv420p",
                "-an",
                str(out),
            ],
        )
        return out

    async def concatenate(
        self,
        files: list[Path] | list[str],
        output: Path | str,
        mode: ConcatMode = "copy",
    ) -> Path:
        """Join media files in order.

        A single input is copied byte for byte. The concat list file is
        removed whether or not ffmpeg succeeds.
        """
        if not files:
            raise ValueError("concatenate requires at least one input file")
        out = _prepare_output(output)
        inputs = [Path(f) for f in files]
        if len(inputs) == 1:
            shutil.copyfile(inputs[0], out)
            return out

        list_file = out.with_name(f"{out.stem}.concat.txt")
        list_file.write_text("\n".join(_concat_line(p) for p in inputs) + "\n", encoding="utf-8")
        if mode == "copy":
            codec_args = ["-c", "copy"]
        else:
            codec_args = ["-c:v", "libx264", "-crf", "23", "-preset", "fast", "-pix_fmt", "yuv420p"]
        try:
            await self._runner.run(
                "ffmpeg",
                ["-y", "-f", "concat", "-safe", "0", "-i", str(list_file), *codec_args, str(out)],
            )
        finally:
            list_file.unlink(missing_ok=True)
        return out

    async def mix_audio(
        self,
        voice: Path | str,
        music: Path | str | None,
        output: Path | str,
        music_volume: float = 0.15,
    ) -> Path:
        """Lay a music bed under the voice track, limited to the voice length."""
        out = _prepare_output(output)
        if music is None or not Path(music).is_file():
            if music is not None:
                logger.warning("Music file missing, using voice only: %s", music)
            shutil.copyfile(voice, out)
            return out

        duration = await self.media_duration(voice)
        mix = (
            f"[1:a]volume={music_volume},atrim=0:{duration:.3f}[music];"
            "[0:a][music]amix=inputs=2:duration=first:dropout_transition=2"
        )
        codec_args = _AUDIO_CODECS.get(out.suffix.lower(), ["-c:a", "aac", "-b:a", "192k"])
        await self._runner.run(
            "ffmpeg",
            [
                "-y",
                "-i", str(voice),
                "-stream_loop", "-1",
                "-i", str(music),
                "-filter_complex", mix,
                "-t", f"{duration:.3f}",
                *codec_args,
                str(out),
            ],
        )
        return out

    async def composite(
        self,
        video: Path | str,
        audio: Path | str,
        captions: Path | str | None,
        output: Path | str,
    ) -> Path:
        """Mux video and audio, burning in captions when given."""
        out = _prepare_output(output)
        args = ["-y", "-i", str(video), "-i", str(audio)]
        if captions is not None:
            args += ["-vf", f"subtitles={escape_filter_path(captions)}"]
        args += [
            "-c:v", "libx264",
            "-crf", "20",
            "-preset", "fast",
            "-pix_fmt", "yuv420p",
            "-c:a", "aac",
            "-b:a", "192k",
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-shortest",
            "-movflags", "+faststart",
            str(out),
        ]
        await self._runner.run("ffmpeg", args)
        return out

    async def extract_thumbnail(
        self, video: Path | str, output: Path | str, offset_sec: float = 0.0
    ) -> Path:
        """Grab one 540x960 frame at ``offset_sec``."""
        out = _prepare_output(output)
        await self._runner.run(
            "ffmpeg",
            [
                "-y",
                "-ss", f"{max(offset_sec, 0.0):.3f}",
                "-i", str(video),
                "-vframes", "1",
                "-vf", f"scale={THUMBNAIL_SIZE}",
                "-q:v", "2",
                str(out),
            ],
        )
        return out
