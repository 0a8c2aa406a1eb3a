# src/qa/quality_gate.py — v1
"""Quality gate for finished videos.

Three independent checks, always all evaluated:
    file_size   at most 287 MiB
    resolution  exactly 1080x1920
    silence     an audio stream with no silent span of 2 s or more
                (ffmpeg silencedetect)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from shortrender.core.errors import RenderError
from shortrender.core.models import QAChecks, QAResult
from shortrender.media.primitives import MediaToolkit
from shortrender.media.process_runner import ExternalProcessError, ProcessRunner

logger = logging.getLogger(__name__)

_SILENCE_START = re.compile(r"silence_start:\s*(-?[\d.]+)")
_SILENCE_DURATION = re.compile(r"silence_duration:\s*([\d.]+)")


@dataclass(frozen=True)
class QAThresholds:
    max_file_size_bytes: int = 287 * 1024 * 1024
    width: int = 1080
    height: int = 1920
    silence_noise_db: int = -50
    silence_min_sec: float = 2.0


class QualityGateError(RenderError):
    """The finished video failed one or more quality checks."""

    error_kind = "quality_gate"

    def __init__(self, result: QAResult) -> None:
        self.result = result
        super().__init__(f"quality gate failed: {result.summary()}")


class _SilenceScan:
    """Collects silencedetect output from streamed stderr lines."""

    def __init__(self) -> None:
        self.starts: list[float] = []
        self.durations: list[float] = []

    def __call__(self, line: str) -> None:
        if m := _SILENCE_START.search(line):
            self.starts.append(float(m.group(1)))
        if m := _SILENCE_DURATION.search(line):
            self.durations.append(float(m.group(1)))


class QualityGate:
    def __init__(self, runner: ProcessRunner, thresholds: QAThresholds | None = None) -> None:
        self._runner = runner
        self._media = MediaToolkit(runner)
        self.thresholds = thresholds or QAThresholds()

    async def validate(self, path: Path | str) -> QAResult:
        """Run every check against ``path`` and return the combined report."""
        video = Path(path)
        t = self.thresholds
        if not video.is_file():
            reason = f"file not found: {video}"
            return QAResult(
                passed=False,
                checks=QAChecks(silence=False, file_size=False, resolution=False),
                details={"silence": reason, "file_size": reason, "resolution": reason},
            )

        details: dict[str, str] = {}

        size = video.stat().st_size
        size_ok = size <= t.max_file_size_bytes
        if not size_ok:
            details["file_size"] = (
                f"{size / (1024 * 1024):.1f} MiB exceeds {t.max_file_size_bytes / (1024 * 1024):.0f} MiB"
            )

        probe = await self._media.probe(video)
        resolution_ok = probe.valid and probe.width == t.width and probe.height == t.height
        if not resolution_ok:
            if not probe.valid:
                details["resolution"] = f"probe failed: {probe.error}"
            else:
                details["resolution"] = (
                    f"{probe.width}x{probe.height}, expected {t.width}x{t.height}"
                )

        if probe.has_audio is False:
            silence_ok, longest, silence_detail = False, None, "no audio stream"
        else:
            silence_ok, longest, silence_detail = await self._check_silence(
                video, probe.duration_sec
            )
        if not silence_ok:
            details["silence"] = silence_detail

        checks = QAChecks(silence=silence_ok, file_size=size_ok, resolution=resolution_ok)
        result = QAResult(
            passed=silence_ok and size_ok and resolution_ok,
            checks=checks,
            details=details,
            file_size_bytes=size,
            width=probe.width,
            height=probe.height,
            longest_silence_sec=longest,
        )
        log = logger.info if result.passed else logger.warning
        log("Quality gate %s for %s: %s", "passed" if result.passed else "failed",
            video.name, result.summary())
        return result

    async def _check_silence(
        self, video: Path, duration_sec: float | None
    ) -> tuple[bool, float | None, str]:
        t = self.thresholds
        scan = _SilenceScan()
        try:
            await self._runner.run(
                "ffmpeg",
                [
                    "-hide_banner",
                    "-nostats",
                    "-i", str(video),
                    "-map", "0:a:0",
                    "-af", f"silencedetect=n={t.silence_noise_db}dB:d={t.silence_min_sec:g}",
                    "-f", "null",
                    "-",
                ],
                on_stderr_line=scan,
            )
        except ExternalProcessError as e:
            return False, None, f"silence detection failed: {e}"

        durations = list(scan.durations)
        # Silence running to end of file reports a start without a duration
        if len(scan.starts) > len(durations) and duration_sec:
            durations.append(max(duration_sec - scan.starts[-1], 0.0))
        longest = max(durations) if durations else 0.0

        if scan.starts or longest >= t.silence_min_sec:
            return False, longest, (
                f"{len(scan.starts)} silent span(s), longest {longest:.2f}s "
                f"(limit {t.silence_min_sec:g}s)"
            )
        return True, longest, ""
