# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides sample plans, isolated settings and a fake process runner that
records ffmpeg/ffprobe invocations instead of spawning binaries.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from shortrender.config.settings import Settings
from shortrender.core.models import Plan, Scene
from shortrender.media.process_runner import ProcessResult


# === FIXTURES: Sample data ===


def make_plan(plan_id: str = "plan_facts_001", durations: tuple[float, ...] = (20.0, 20.0, 20.0),
              niche: str = "facts") -> Plan:
    """Plan with one scene per duration, in order."""
    texts = [
        "Octopuses have three hearts and blue blood.",
        "Honey never spoils, even after thousands of years.",
        "Bananas are berries, but strawberries are not.",
        "A day on Venus is longer than its year.",
    ]
    effects = ["slow_zoom_in", "pan_left", "fade", "glitch"]
    scenes = [
        Scene(
            idx=i,
            narration_text=texts[i % len(texts)],
            image_prompt=f"illustration for fact {i}",
            duration_target_sec=d,
            effect=effects[i % len(effects)],
        )
        for i, d in enumerate(durations)
    ]
    return Plan(id=plan_id, niche_pack_id=niche, topic="Amazing facts", title="Three facts", scenes=scenes)


@pytest.fixture
def sample_plan() -> Plan:
    """Three-scene 'facts' plan, about 60 seconds."""
    return make_plan()


@pytest.fixture
def short_plan() -> Plan:
    """Two-scene plan for fast renders."""
    return make_plan("plan_short_001", durations=(2.0, 2.0))


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from any .env file, rooted in tmp_path."""
    return Settings(
        _env_file=None,
        artifacts_dir=tmp_path / "artifacts",
        music_library_dir=tmp_path / "music",
        database_path=tmp_path / "artifacts" / "runs.db",
        cache_root=tmp_path / "artifacts" / ".cache",
        openai_api_key="sk-test",
    )


# === FIXTURES: Fake process runner ===


class FakeRunner:
    """Records calls; ffmpeg calls create their output file, ffprobe answers canned data."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, list[str]]] = []
        self.duration = 2.0
        self.probe_info: dict[str, Any] = {
            "streams": [
                {"codec_type": "video", "width": 1080, "height": 1920},
                {"codec_type": "audio"},
            ],
            "format": {"duration": "6.0"},
        }
        self.stderr_lines: list[str] = []
        self.error: Exception | None = None
        self.error_when: Callable[[str, list[str]], bool] | None = None

    async def run(
        self,
        kind: str,
        args: list[str],
        *,
        timeout_s: float | None = None,
        capture_stdout: bool = False,
        on_stderr_line: Callable[[str], None] | None = None,
    ) -> ProcessResult:
        self.calls.append((kind, list(args)))
        if self.error is not None and (self.error_when is None or self.error_when(kind, args)):
            raise self.error

        if kind == "ffprobe":
            if "format=duration" in args:
                stdout = f"{self.duration}\n"
            else:
                stdout = json.dumps(self.probe_info)
            return ProcessResult(kind=kind, exit_code=0, stdout=stdout, stderr_tail="", duration_s=0.0)

        if on_stderr_line is not None:
            for line in self.stderr_lines:
                on_stderr_line(line)
        output = args[-1]
        if output != "-":
            path = Path(output)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"fake-media")
        return ProcessResult(kind=kind, exit_code=0, stdout="", stderr_tail="", duration_s=0.0)

    def ffmpeg_calls(self) -> list[list[str]]:
        return [args for kind, args in self.calls if kind == "ffmpeg"]


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def plan_factory() -> Callable[..., Plan]:
    return make_plan
