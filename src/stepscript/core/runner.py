# src/stepscript/core/runner.py

"""
Script runner (supervisor).

The sequencer never reports failure on its own: a failed task or a step with
no tasks simply stalls it. The runner watches the store and the sequencer and
turns that into an outcome:
- FINISHED: the last step was confirmed complete,
- FAILED: a task of the current step failed,
- STALLED: nothing changed for `stall_timeout_seconds` (0 disables this).

It never retries. In watch mode it re-runs the script from step 0 whenever a
watched path changes.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from ..config import Settings, get_settings
from ..tasks import task_api
from ..tasks.task_models import Task
from ..tasks.task_store import TaskStore
from .sequencer import StepSequencer
from .steps import as_steps
from .watch import snapshot_paths, wait_for_change

logger = logging.getLogger(__name__)


class RunStatus(StrEnum):
    FINISHED = "finished"
    FAILED = "failed"
    STALLED = "stalled"


@dataclass(slots=True)
class RunReport:
    status: RunStatus
    step_index: int
    step_count: int
    elapsed_seconds: float
    failed_tasks: list[Task] = field(default_factory=list)
    run_number: int = 1

    @property
    def ok(self) -> bool:
        return self.status == RunStatus.FINISHED


class ScriptRunner:
    def __init__(
        self,
        steps: Sequence[Any],
        settings: Settings | None = None,
        *,
        store: TaskStore | None = None,
    ) -> None:
        self.settings = settings if settings is not None else get_settings()
        self.store = store if store is not None else TaskStore()
        self.sequencer = StepSequencer(as_steps(steps), self.store)  # type: ignore[arg-type]
        self._changed = asyncio.Event()

    # ---- queries ----

    def failed_tasks(self) -> list[Task]:
        return task_api.failed_tasks(self.store, self.sequencer.current_index)

    # ---- running ----

    async def run(self) -> RunReport:
        """Run the script once and stop the sequencer afterwards."""
        unsubscribe = self.store.subscribe(self._on_store_change)
        try:
            self.sequencer.start()
            return await self._supervise(run_number=1)
        finally:
            unsubscribe()
            self.sequencer.stop()

    async def watch(self, paths: Iterable[str | Path], *, max_runs: int | None = None) -> RunReport:
        """
        Run, then re-run from step 0 after every change under `paths`.

        Runs until cancelled, or until `max_runs` runs have been reported.
        """
        paths = list(paths)
        interval = self.settings.watch_interval_seconds
        unsubscribe = self.store.subscribe(self._on_store_change)
        run_number = 1
        try:
            baseline = snapshot_paths(paths)
            self.sequencer.start()
            while True:
                report = await self._supervise(run_number=run_number)
                if max_runs is not None and run_number >= max_runs:
                    return report

                logger.info("Watching %s for changes...", ", ".join(str(p) for p in paths))
                changed = await wait_for_change(paths, interval=interval, baseline=baseline)
                baseline = snapshot_paths(paths)
                logger.info("Changed: %s", ", ".join(changed[:5]) + (" ..." if len(changed) > 5 else ""))

                run_number += 1
                # A new run starts from an empty store, including step 0 tasks.
                self.store.prune_above(-1)
                self.sequencer.reset(0)
        finally:
            unsubscribe()
            self.sequencer.stop()

    async def _supervise(self, *, run_number: int) -> RunReport:
        started = time.monotonic()
        timeout = self.settings.stall_timeout_seconds or None

        while True:
            if self.sequencer.finished:
                return self._report(RunStatus.FINISHED, started, run_number)

            failed = self.failed_tasks()
            if failed:
                return self._report(RunStatus.FAILED, started, run_number, failed)

            self._changed.clear()
            try:
                await asyncio.wait_for(self._wait_progress(), timeout)
            except asyncio.TimeoutError:
                return self._report(RunStatus.STALLED, started, run_number)

    async def _wait_progress(self) -> None:
        changed = asyncio.ensure_future(self._changed.wait())
        finished = asyncio.ensure_future(self.sequencer.wait_finished())
        try:
            await asyncio.wait({changed, finished}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            changed.cancel()
            finished.cancel()

    def _on_store_change(self, _state: Any) -> None:
        self._changed.set()

    def _report(
        self,
        status: RunStatus,
        started: float,
        run_number: int,
        failed: list[Task] | None = None,
    ) -> RunReport:
        report = RunReport(
            status=status,
            step_index=self.sequencer.current_index,
            step_count=self.sequencer.step_count,
            elapsed_seconds=time.monotonic() - started,
            failed_tasks=list(failed or []),
            run_number=run_number,
        )

        if status == RunStatus.FINISHED:
            logger.info("Finished %d step(s) in %.2fs", report.step_count, report.elapsed_seconds)
        elif status == RunStatus.FAILED:
            for task in report.failed_tasks:
                logger.error("Step %d stalled: task %r failed: %s", report.step_index + 1, task.name, task.error)
        else:
            logger.error(
                "Step %d stalled: no progress for %.1fs (%d task(s) registered)",
                report.step_index + 1,
                self.settings.stall_timeout_seconds,
                len(self.store.tasks_for_step(report.step_index)),
            )
        return report
