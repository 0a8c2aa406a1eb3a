# tests/unit/pipeline/steps/test_registry.py — v1
"""Tests for pipeline/steps/registry.py."""

from __future__ import annotations

from shortrender.core.models import STEP_NAMES
from shortrender.pipeline.steps.registry import default_steps


class TestDefaultSteps:
    def test_order_matches_step_names(self):
        assert tuple(s.name for s in default_steps()) == STEP_NAMES

    def test_fresh_instances(self):
        assert default_steps()[0] is not default_steps()[0]

    def test_every_step_described(self):
        assert all(s.description for s in default_steps())
