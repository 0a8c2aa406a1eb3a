# tests/integration/conftest.py — v1
"""Integration fixtures: real ffmpeg/ffprobe binaries.

Every test here is skipped when no usable binary can be resolved.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from shortrender.config.settings import ConfigurationError, Settings
from shortrender.media.primitives import MediaToolkit
from shortrender.media.process_runner import BinaryPaths, ProcessRunner, resolve_binaries


def pytest_collection_modifyitems(config, items):
    here = Path(__file__).parent
    for item in items:
        if here in item.path.parents:
            item.add_marker(pytest.mark.ffmpeg)


@pytest.fixture(scope="session")
def binaries() -> BinaryPaths:
    try:
        return resolve_binaries(Settings(_env_file=None))
    except ConfigurationError as e:
        pytest.skip(f"ffmpeg not available: {e}")


@pytest.fixture
def runner(binaries) -> ProcessRunner:
    return ProcessRunner(binaries, default_timeout_s=120)


@pytest.fixture
def media(runner) -> MediaToolkit:
    return MediaToolkit(runner)


@pytest.fixture
def make_video(runner):
    """Render a short test video with lavfi sources."""

    async def _make(path: Path, *, size: str = "1080x1920", seconds: float = 3.0, silent: bool = False,
                    with_audio: bool = True) -> Path:
        audio = (
            f"anullsrc=r=44100:cl=mono:d={seconds}"
            if silent
            else f"sine=frequency=440:sample_rate=44100:duration={seconds}"
        )
        inputs = ["-f", "lavfi", "-i", f"color=c=0x336699:s={size}:d={seconds}:r=30"]
        codecs = ["-c:v", "libx264", "-pix_fmt", "yuv420p"]
        if with_audio:
            inputs += ["-f", "lavfi", "-i", audio]
            codecs += ["-c:a", "aac", "-shortest"]
        path.parent.mkdir(parents=True, exist_ok=True)
        await runner.run("ffmpeg", ["-y", *inputs, *codecs, str(path)])
        return path

    return _make
