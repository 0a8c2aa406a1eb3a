# src/media/process_runner.py — v1
"""Async wrapper around the ffmpeg/ffprobe binaries.

One OS process per call. Stderr is drained continuously into a bounded tail
buffer (ffmpeg stalls if its stderr pipe fills up) and optionally streamed
line by line to a callback; stdout is discarded unless captured.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Literal

import imageio_ffmpeg

from shortrender.config.settings import ConfigurationError, Settings
from shortrender.core.errors import RenderError

logger = logging.getLogger(__name__)

ToolKind = Literal["ffmpeg", "ffprobe"]

STDERR_TAIL_CHARS = 500
_READ_CHUNK = 4096
_LINE_SPLIT = re.compile(r"[\r\n]")


class ExternalProcessError(RenderError):
    """A media binary exited with a non-zero status."""

    error_kind = "process"

    def __init__(self, kind: str, exit_code: int | None, stderr_tail: str) -> None:
        self.kind = kind
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail
        last_line = _last_line(stderr_tail)
        super().__init__(
            f"{kind} exited with code {exit_code}" + (f": {last_line}" if last_line else "")
        )


class ProcessTimeoutError(ExternalProcessError):
    """A media binary exceeded its timeout and was killed."""

    def __init__(self, kind: str, timeout_s: float, stderr_tail: str) -> None:
        super().__init__(kind, None, stderr_tail)
        self.timeout_s = timeout_s
        self.args = (f"{kind} timed out after {timeout_s:g}s",)


def _last_line(text: str) -> str:
    lines = [ln.strip() for ln in _LINE_SPLIT.split(text) if ln.strip()]
    return lines[-1] if lines else ""


# === BINARY RESOLUTION ===


@dataclass(frozen=True)
class BinaryPaths:
    """Absolute paths of the media binaries, resolved once at startup."""

    ffmpeg: str
    ffprobe: str

    def path_for(self, kind: ToolKind) -> str:
        return self.ffmpeg if kind == "ffmpeg" else self.ffprobe


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def _resolve_explicit(configured: str, name: str) -> str:
    path = Path(configured).expanduser()
    if path.is_file():
        if not _is_executable(path):
            raise ConfigurationError(f"Configured {name} path is not executable: {configured}")
        return str(path)
    found = shutil.which(configured)
    if found:
        return found
    raise ConfigurationError(f"Configured {name} path does not exist: {configured}")


def _vendored_ffmpeg() -> str | None:
    try:
        exe = imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError as e:
        logger.debug("No vendored ffmpeg binary: %s", e)
        return None
    return exe if exe and _is_executable(Path(exe)) else None


def resolve_binaries(settings: Settings) -> BinaryPaths:
    """Resolve ffmpeg and ffprobe.

    Order for ffmpeg: configured path, vendored static binary, search path.
    ffprobe is looked up beside the resolved ffmpeg before the search path.

    Raises:
        ConfigurationError: If either binary cannot be found.
    """
    if settings.ffmpeg_path:
        ffmpeg = _resolve_explicit(settings.ffmpeg_path, "ffmpeg")
    else:
        ffmpeg = _vendored_ffmpeg() or shutil.which("ffmpeg") or ""
    if not ffmpeg:
        raise ConfigurationError(
            "ffmpeg not found: set FFMPEG_PATH or install ffmpeg on the search path"
        )

    if settings.ffprobe_path:
        ffprobe = _resolve_explicit(settings.ffprobe_path, "ffprobe")
    else:
        ffmpeg_file = Path(ffmpeg)
        sibling = ffmpeg_file.with_name("ffprobe" + ffmpeg_file.suffix)
        ffprobe = str(sibling) if _is_executable(sibling) else shutil.which("ffprobe") or ""
    if not ffprobe:
        raise ConfigurationError(
            "ffprobe not found: set FFPROBE_PATH or install ffprobe on the search path"
        )

    logger.info("Media binaries resolved", extra={"data": {"ffmpeg": ffmpeg, "ffprobe": ffprobe}})
    return BinaryPaths(ffmpeg=ffmpeg, ffprobe=ffprobe)


# === RUNNER ===


@dataclass
class ProcessResult:
    """Outcome of a successful process run."""

    kind: str
    exit_code: int
    stdout: str
    stderr_tail: str
    duration_s: float


class ProcessRunner:
    """Runs one media binary invocation at a time per call, with a timeout."""

    def __init__(self, binaries: BinaryPaths, default_timeout_s: float = 600.0) -> None:
        self._binaries = binaries
        self._default_timeout_s = default_timeout_s

    @property
    def binaries(self) -> BinaryPaths:
        return self._binaries

    async def run(
        self,
        kind: ToolKind,
        args: list[str],
        *,
        timeout_s: float | None = None,
        capture_stdout: bool = False,
        on_stderr_line: Callable[[str], None] | None = None,
    ) -> ProcessResult:
        """Run ``kind`` with ``args``.

        Args:
            kind: Which binary to run.
            args: Arguments, without the binary itself.
            timeout_s: Wall-clock limit (defaults to the runner's).
            capture_stdout: Keep stdout (ffprobe JSON); otherwise discarded.
            on_stderr_line: Called with each stderr line as it arrives.

        Raises:
            ExternalProcessError: Non-zero exit, or the binary could not be started.
            ProcessTimeoutError: Timeout exceeded; the child was killed.
        """
        timeout = timeout_s if timeout_s is not None else self._default_timeout_s
        binary = self._binaries.path_for(kind)
        logger.debug("Running %s %s", kind, " ".join(args[:12]))

        started = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                binary,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE if capture_stdout else asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error("Could not start %s (%s): %s", kind, binary, e)
            raise ExternalProcessError(kind, None, f"failed to start {binary}: {e}") from e

        tail = _StderrTail(on_stderr_line)
        stdout_chunks: list[bytes] = []
        readers = [asyncio.create_task(tail.drain(proc.stderr))]
        if capture_stdout:
            readers.append(asyncio.create_task(_drain_into(proc.stdout, stdout_chunks)))

        try:
            await asyncio.wait_for(asyncio.gather(*readers, proc.wait()), timeout=timeout)
        except asyncio.TimeoutError:
            await _kill(proc, readers)
            logger.error("%s timed out after %.0fs", kind, timeout)
            raise ProcessTimeoutError(kind, timeout, tail.text) from None
        except asyncio.CancelledError:
            await _kill(proc, readers)
            raise

        exit_code = proc.returncode if proc.returncode is not None else -1
        if exit_code != 0:
            raise ExternalProcessError(kind, exit_code, tail.text)

        return ProcessResult(
            kind=kind,
            exit_code=exit_code,
            stdout=b"".join(stdout_chunks).decode("utf-8", errors="replace"),
            stderr_tail=tail.text,
            duration_s=time.monotonic() - started,
        )


class _StderrTail:
    """Keeps the last characters of stderr and emits complete lines."""

    def __init__(self, on_line: Callable[[str], None] | None) -> None:
        self._on_line = on_line
        self._pending = ""
        self.text = ""

    def feed(self, chunk: str) -> None:
        self.text = (self.text + chunk)[-STDERR_TAIL_CHARS:]
        if self._on_line is None:
            return
        parts = _LINE_SPLIT.split(self._pending + chunk)
        self._pending = parts.pop()
        for line in parts:
            if line:
                self._on_line(line)

    def flush(self) -> None:
        if self._on_line is not None and self._pending:
            self._on_line(self._pending)
        self._pending = ""

    async def drain(self, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                break
            self.feed(chunk.decode("utf-8", errors="replace"))
        self.flush()


async def _drain_into(stream: asyncio.StreamReader | None, sink: list[bytes]) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        sink.append(chunk)


async def _kill(proc: asyncio.subprocess.Process, readers: list[asyncio.Task]) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
    for task in readers:
        task.cancel()
    await asyncio.gather(*readers, return_exceptions=True)
