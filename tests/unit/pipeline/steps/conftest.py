# tests/unit/pipeline/steps/conftest.py — v1
"""Step fixtures: a fresh render state wired to the fake runner."""

from __future__ import annotations

import pytest

from shortrender.media.primitives import MediaToolkit
from shortrender.pipeline.state import RenderState
from shortrender.pipeline.steps.base import StepContext
from shortrender.providers.factory import create_providers
from shortrender.qa.quality_gate import QualityGate
from shortrender.storage import layout


@pytest.fixture
def step_ctx(settings, fake_runner, short_plan) -> StepContext:
    state = RenderState.for_run("run0001", short_plan, settings.artifacts_dir, dry_run=True)
    layout.ensure_run_directories(state.run_path)
    return StepContext(
        state=state,
        settings=settings,
        media=MediaToolkit(fake_runner),
        providers=create_providers(settings, fake_runner, dry_run=True),
        quality_gate=QualityGate(fake_runner),
    )
