# src/main.py — v1
"""CLI entry point: render, status, cancel, resubmit, process-queued, qa, reset-stuck.

Usage:
    shortrender render <plan.json> [--dry-run] [--fail-step NAME] [--no-wait]
    shortrender status <run_id>
    shortrender cancel <run_id>
    shortrender resubmit <run_id> [--from-step NAME]
    shortrender process-queued
    shortrender qa <video>
    shortrender reset-stuck
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from shortrender.config.settings import ConfigurationError, Settings, load_settings
from shortrender.core.models import STEP_NAMES, Plan
from shortrender.storage.models import Run, RunNotFoundError
from shortrender.version import __version__

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_FAILED

    try:
        settings = _load_settings(args)
    except (ConfigurationError, ValidationError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG
    except RunNotFoundError as exc:
        logger.error("Run not found: %s", exc)
        return EXIT_FAILED
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return EXIT_FAILED


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="shortrender",
        description=f"shortrender v{__version__}: render approved plans into vertical videos",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- render ---
    p_render = subparsers.add_parser("render", help="Render a plan file")
    p_render.add_argument("plan", type=Path, help="Path to plan JSON")
    p_render.add_argument(
        "--dry-run", action="store_true",
        help="Use free local stand-ins instead of billed providers",
    )
    p_render.add_argument(
        "--fail-step", choices=STEP_NAMES, default=None,
        help="Force a failure at the named step",
    )
    p_render.add_argument(
        "--no-wait", action="store_true",
        help="Only create the queued run; do not render in this process",
    )
    p_render.set_defaults(func=_cmd_render)

    # --- status ---
    p_status = subparsers.add_parser("status", help="Show a run")
    p_status.add_argument("run_id")
    p_status.add_argument("--logs", action="store_true", help="Include the run log")
    p_status.set_defaults(func=_cmd_status)

    # --- cancel ---
    p_cancel = subparsers.add_parser("cancel", help="Cancel a run")
    p_cancel.add_argument("run_id")
    p_cancel.set_defaults(func=_cmd_cancel)

    # --- resubmit ---
    p_resubmit = subparsers.add_parser("resubmit", help="Render a run's plan again as a new run")
    p_resubmit.add_argument("run_id")
    p_resubmit.add_argument(
        "--from-step", choices=STEP_NAMES, default=None,
        help="Reuse the previous run's outputs for every step before this one",
    )
    p_resubmit.set_defaults(func=_cmd_resubmit)

    # --- process-queued ---
    p_worker = subparsers.add_parser(
        "process-queued", help="Render every queued run, oldest first, then exit",
    )
    p_worker.set_defaults(func=_cmd_process_queued)

    # --- qa ---
    p_qa = subparsers.add_parser("qa", help="Run the quality gate on a video file")
    p_qa.add_argument("video", type=Path)
    p_qa.set_defaults(func=_cmd_qa)

    # --- reset-stuck ---
    p_reset = subparsers.add_parser(
        "reset-stuck", help="Fail runs left running by a crashed process",
    )
    p_reset.set_defaults(func=_cmd_reset_stuck)

    return parser


def _load_settings(args: argparse.Namespace) -> Settings:
    overrides: dict[str, object] = {}
    if getattr(args, "dry_run", False):
        overrides["render_dry_run"] = True
    if getattr(args, "fail_step", None):
        overrides["render_fail_step"] = args.fail_step
    return load_settings(**overrides)


async def _cmd_render(args: argparse.Namespace, settings: Settings) -> int:
    """Submit a plan and (by default) render it to completion."""
    plan_path: Path = args.plan
    if not plan_path.is_file():
        logger.error("Plan file not found: %s", plan_path)
        return EXIT_FAILED
    try:
        plan = Plan.model_validate_json(plan_path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        logger.error("Invalid plan %s: %s", plan_path, exc)
        return EXIT_FAILED

    if args.no_wait:
        from shortrender.media.process_runner import resolve_binaries
        from shortrender.storage.run_store import SqliteRunStore

        # A queued run is only created when a worker could render it
        settings.require_provider_credentials()
        resolve_binaries(settings)
        store = SqliteRunStore(settings.database_path)
        try:
            run = await store.create(plan, dry_run=settings.render_dry_run)
        finally:
            store.close()
        _print_run(run)
        return EXIT_OK

    from shortrender.api.facade import build_service

    service = build_service(settings)
    try:
        run = await service.submit(plan)
        logger.info("Rendering plan %s as run %s", plan.id, run.id)
        run = await service.wait(run.id)
    finally:
        await service.close()
    _print_run(run)
    return EXIT_OK if run.status == "done" else EXIT_FAILED


async def _cmd_status(args: argparse.Namespace, settings: Settings) -> int:
    from shortrender.storage.run_store import SqliteRunStore

    store = SqliteRunStore(settings.database_path)
    try:
        run = await store.get(args.run_id)
    finally:
        store.close()
    if run is None:
        raise RunNotFoundError(args.run_id)
    _print_run(run, with_logs=args.logs)
    return EXIT_OK


async def _cmd_cancel(args: argparse.Namespace, settings: Settings) -> int:
    from shortrender.storage.run_store import SqliteRunStore

    store = SqliteRunStore(settings.database_path)
    try:
        run = await store.request_cancel(args.run_id)
    finally:
        store.close()
    _print_run(run)
    return EXIT_OK


async def _cmd_resubmit(args: argparse.Namespace, settings: Settings) -> int:
    from shortrender.api.facade import build_service

    service = build_service(settings)
    try:
        run = await service.resubmit(args.run_id, from_step=args.from_step)
        run = await service.wait(run.id)
    finally:
        await service.close()
    _print_run(run)
    return EXIT_OK if run.status == "done" else EXIT_FAILED


async def _cmd_process_queued(args: argparse.Namespace, settings: Settings) -> int:
    """Drain runs created with ``render --no-wait`` (or left queued by a crash)."""
    from shortrender.api.facade import build_service

    service = build_service(settings)
    try:
        run_ids = await service.restore_queued()
        await service.queue.drain()
        runs = [await service.get_run(run_id) for run_id in run_ids]
    finally:
        await service.close()

    print(f"Processed {len(runs)} queued run(s)")
    for run in runs:
        print(f"  {run.id}  {run.status}")
    return EXIT_OK if all(r.status == "done" for r in runs) else EXIT_FAILED


async def _cmd_qa(args: argparse.Namespace, settings: Settings) -> int:
    from shortrender.media.process_runner import ProcessRunner, resolve_binaries
    from shortrender.qa.quality_gate import QualityGate

    runner = ProcessRunner(resolve_binaries(settings), settings.process_timeout_s)
    result = await QualityGate(runner).validate(args.video)
    print(result.model_dump_json(indent=2))
    return EXIT_OK if result.passed else EXIT_FAILED


async def _cmd_reset_stuck(args: argparse.Namespace, settings: Settings) -> int:
    from shortrender.storage.run_store import SqliteRunStore

    store = SqliteRunStore(settings.database_path)
    try:
        reset = await store.mark_interrupted()
    finally:
        store.close()
    print(f"Reset {len(reset)} stuck run(s)")
    for run_id in reset:
        print(f"  {run_id}")
    return EXIT_OK


def _print_run(run: Run, with_logs: bool = False) -> None:
    """Print a human-readable summary of a Run."""
    print(f"\nRun {run.id}:")
    print(f"  Plan:      {run.plan_id}")
    print(f"  Status:    {run.status}")
    print(f"  Step:      {run.current_step or '-'}")
    print(f"  Progress:  {run.progress}%")
    if run.dry_run:
        print("  Dry run:   yes")
    if run.error:
        print(f"  Error:     [{run.error_kind}] {run.error}")
    for name, path in sorted(run.artifacts.items()):
        print(f"  {name + ':':<10} {path}")
    if with_logs:
        print("  Log:")
        for entry in run.logs:
            step = f" ({entry.step})" if entry.step else ""
            print(f"    {entry.timestamp:%H:%M:%S} {entry.event}{step}: {entry.message}")
            if entry.data:
                print(f"      {json.dumps(entry.data, default=str)}")


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from shortrender.logging.logger import setup_logging_from_settings

    setup_logging_from_settings(settings, verbose=verbose)


if __name__ == "__main__":
    sys.exit(main())
