# src/stepscript/cli/main.py

"""
CLI entrypoint.

Initializes logging, loads the script's steps, then runs them once or, with
--watch, again after every change under the watched paths.

Exit codes: 0 finished, 1 failed or stalled, 2 the script could not be loaded,
130 interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
from collections.abc import Sequence

from rich.console import Console

from ..cli.bootstrap import create_runner
from ..cli.status_view import build_task_tree
from ..config import get_settings
from ..core.runner import RunReport, ScriptRunner
from ..errors import ScriptLoadError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stepscript",
        description="Run a step script: each step's operations must all complete before the next starts.",
    )
    parser.add_argument("script", help="Python file defining STEPS or build_steps()")
    parser.add_argument(
        "--watch",
        metavar="PATH",
        action="append",
        default=[],
        help="re-run the script from the first step when PATH changes (repeatable)",
    )
    parser.add_argument("--log-level", default=None, help="console log level (default from STEPSCRIPT_LOG_LEVEL)")
    parser.add_argument("--stall-timeout", type=float, default=None, help="seconds without progress before giving up")
    parser.add_argument("--tree", action="store_true", help="print the task tree when the run ends")
    return parser


async def _run(runner: ScriptRunner, watch_paths: Sequence[str]) -> RunReport:
    if watch_paths:
        return await runner.watch(watch_paths)
    return await runner.run()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    overrides = {}
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    if args.stall_timeout is not None:
        overrides["stall_timeout_seconds"] = max(0.0, args.stall_timeout)
    if args.tree:
        overrides["show_task_tree"] = True
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    console_level = getattr(logging, settings.log_level, logging.INFO)
    setup_logging(log_dir=settings.log_dir if settings.log_to_file else None, console_level=console_level)

    try:
        runner = create_runner(args.script, settings=settings)
    except ScriptLoadError as exc:
        logger.error("%s", exc)
        return 2

    logger.debug("Starting %s with %d step(s)", settings.app_name, runner.sequencer.step_count)

    try:
        report = asyncio.run(_run(runner, args.watch))
    except KeyboardInterrupt:
        logger.info("Interrupted at step %d.", runner.sequencer.current_index + 1)
        return 130
    finally:
        if settings.show_task_tree:
            Console(stderr=True).print(build_task_tree(runner.store))

    return 0 if report.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
