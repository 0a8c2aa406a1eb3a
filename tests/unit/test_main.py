# tests/unit/test_main.py — v1
"""Tests for main.py — CLI commands that need no media binaries."""

from __future__ import annotations

import asyncio
import logging

import pytest

from shortrender.api import facade
from shortrender.config.settings import ConfigurationError
from shortrender.main import EXIT_CONFIG, EXIT_FAILED, EXIT_OK, main
from shortrender.media import process_runner
from shortrender.media.process_runner import BinaryPaths
from shortrender.storage.run_store import SqliteRunStore


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Isolated working directory and env-based settings."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "runs.db"))
    monkeypatch.setenv("ARTIFACTS_DIR", str(tmp_path / "artifacts"))
    monkeypatch.setenv("LOG_FORMAT", "text")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("RENDER_DRY_RUN", raising=False)
    monkeypatch.delenv("RENDER_FAIL_STEP", raising=False)
    yield tmp_path
    root = logging.getLogger("shortrender")
    root.handlers.clear()
    root.setLevel(logging.NOTSET)


@pytest.fixture
def fake_binaries(monkeypatch):
    """Binary resolution that succeeds without ffmpeg installed."""
    paths = BinaryPaths(ffmpeg="/bin/ffmpeg", ffprobe="/bin/ffprobe")
    monkeypatch.setattr(process_runner, "resolve_binaries", lambda s: paths)
    monkeypatch.setattr(facade, "resolve_binaries", lambda s: paths)
    return paths


@pytest.fixture
def plan_file(cli_env, sample_plan):
    path = cli_env / "plan.json"
    path.write_text(sample_plan.model_dump_json(), encoding="utf-8")
    return path


def _runs(db):
    async def _list():
        store = SqliteRunStore(db)
        try:
            return await store.list()
        finally:
            store.close()

    return asyncio.run(_list())


class TestMain:
    def test_no_command(self, cli_env, capsys):
        assert main([]) == EXIT_FAILED
        assert "usage" in capsys.readouterr().out.lower()

    def test_invalid_fail_step_env(self, cli_env, monkeypatch, capsys):
        monkeypatch.setenv("RENDER_FAIL_STEP", "upload")
        assert main(["reset-stuck"]) == EXIT_CONFIG
        assert "Configuration error" in capsys.readouterr().err

    def test_fail_step_choices(self, cli_env, plan_file):
        with pytest.raises(SystemExit):
            main(["render", str(plan_file), "--fail-step", "upload"])

    def test_render_missing_plan(self, cli_env):
        assert main(["render", str(cli_env / "none.json")]) == EXIT_FAILED

    def test_render_invalid_plan(self, cli_env):
        bad = cli_env / "bad.json"
        bad.write_text('{"id": "p", "scenes": []}', encoding="utf-8")
        assert main(["render", str(bad), "--no-wait"]) == EXIT_FAILED

    def test_render_without_key_is_config_error(self, cli_env, plan_file):
        assert main(["render", str(plan_file)]) == EXIT_CONFIG

    def test_render_no_wait_creates_queued_run(self, cli_env, plan_file, fake_binaries, capsys):
        assert main(["render", str(plan_file), "--no-wait", "--dry-run"]) == EXIT_OK
        runs = _runs(cli_env / "runs.db")
        assert len(runs) == 1
        assert runs[0].status == "queued"
        assert runs[0].dry_run
        assert f"Run {runs[0].id}:" in capsys.readouterr().out

    def test_status_and_cancel(self, cli_env, plan_file, fake_binaries, capsys):
        main(["render", str(plan_file), "--no-wait", "--dry-run"])
        run_id = _runs(cli_env / "runs.db")[0].id
        capsys.readouterr()

        assert main(["status", run_id, "--logs"]) == EXIT_OK
        assert "Status:    queued" in capsys.readouterr().out

        assert main(["cancel", run_id]) == EXIT_OK
        out = capsys.readouterr().out
        assert "Status:    canceled" in out

    def test_no_wait_without_key_creates_nothing(self, cli_env, plan_file, fake_binaries):
        assert main(["render", str(plan_file), "--no-wait"]) == EXIT_CONFIG
        assert not (cli_env / "runs.db").exists()

    def test_no_wait_without_binaries_creates_nothing(self, cli_env, plan_file, monkeypatch):
        def _missing(settings):
            raise ConfigurationError("ffmpeg not found")

        monkeypatch.setattr(process_runner, "resolve_binaries", _missing)
        assert main(["render", str(plan_file), "--no-wait", "--dry-run"]) == EXIT_CONFIG
        assert not (cli_env / "runs.db").exists()

    def test_process_queued_runs_waiting_runs(self, cli_env, plan_file, fake_binaries, monkeypatch, capsys):
        main(["render", str(plan_file), "--no-wait", "--dry-run"])
        run_id = _runs(cli_env / "runs.db")[0].id
        capsys.readouterr()

        monkeypatch.setenv("RENDER_DRY_RUN", "true")
        monkeypatch.setenv("RENDER_FAIL_STEP", "tts_generate")
        assert main(["process-queued"]) == EXIT_FAILED
        out = capsys.readouterr().out
        assert "Processed 1 queued run(s)" in out
        assert f"{run_id}  failed" in out
        run = _runs(cli_env / "runs.db")[0]
        assert run.error_kind == "fault_injected"

    def test_process_queued_with_nothing_waiting(self, cli_env, fake_binaries, monkeypatch, capsys):
        monkeypatch.setenv("RENDER_DRY_RUN", "true")
        assert main(["process-queued"]) == EXIT_OK
        assert "Processed 0 queued run(s)" in capsys.readouterr().out

    def test_status_unknown(self, cli_env):
        assert main(["status", "missing"]) == EXIT_FAILED

    def test_reset_stuck(self, cli_env, capsys):
        assert main(["reset-stuck"]) == EXIT_OK
        assert "Reset 0 stuck run(s)" in capsys.readouterr().out
