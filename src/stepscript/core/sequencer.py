# src/stepscript/core/sequencer.py

from __future__ import annotations

"""
Step sequencer.

Walks an ordered list of steps one at a time:
- mounts only the step at `current_index`,
- re-evaluates the completion predicate after every store change,
- advances once the predicate holds on two consecutive evaluations,
- prunes tasks above the new index whenever the index changes.

A step completes when it has at least one task and every task with its
step index is COMPLETED. A step with no tasks, or with a FAILED task, never
completes; the sequencer stalls there and leaves the decision to whoever
supervises it (see core/runner.py).
"""

import asyncio
import logging
from collections.abc import Callable, Sequence

from ..tasks.task_models import TaskState, TaskStatus
from ..tasks.task_store import TaskStore
from .context import ExecutionContext, use_context
from .ports import Step

logger = logging.getLogger(__name__)

IndexListener = Callable[[int, int], None]


class StepSequencer:
    def __init__(self, steps: Sequence[Step], store: TaskStore) -> None:
        self._steps: list[Step] = list(steps)
        self.store = store
        self.context = ExecutionContext(store, lambda: self._index)

        self._index = 0
        self._verdicts: dict[int, bool] = {}
        self._mounted: Step | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._evaluation_pending = False
        self._finished = asyncio.Event()
        self._listeners: list[IndexListener] = []
        self.evaluations = 0

    # ---- read-only state ----

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def step_count(self) -> int:
        return len(self._steps)

    @property
    def current_step(self) -> Step | None:
        if 0 <= self._index < len(self._steps):
            return self._steps[self._index]
        return None

    @property
    def started(self) -> bool:
        return self._unsubscribe is not None

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def add_listener(self, listener: IndexListener) -> None:
        """`listener(old_index, new_index)` is called after every index change."""
        self._listeners.append(listener)

    # ---- lifecycle ----

    def start(self) -> None:
        """Mount the first step. Must be called from a running event loop."""
        if self.started:
            return
        self._loop = asyncio.get_running_loop()
        self._unsubscribe = self.store.subscribe(self._on_store_change)

        if not self._steps:
            logger.info("No steps to run")
            self._finished.set()
            return

        self._enter(self._index)

    def stop(self) -> None:
        self._unmount_current()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def reset(self, index: int = 0) -> None:
        """
        Move back to `index` and mount that step again.

        Used by loop wrappers (watch mode). Tasks above `index` are pruned and
        the verdicts retained from `index` on are forgotten.
        """
        if not 0 <= index < max(1, len(self._steps)):
            raise IndexError(f"step index out of range: {index}")
        if not self.started:
            self._index = index
            return

        self._unmount_current()
        old = self._index
        self._index = index
        self._finished.clear()
        for i in [i for i in self._verdicts if i >= index]:
            del self._verdicts[i]
        if self._steps:
            self._enter(index, old=old)

    async def wait_finished(self) -> None:
        await self._finished.wait()

    # ---- completion ----

    def is_step_complete(self, index: int) -> bool:
        state = self.store.state
        step_tasks = [t for t in state.tasks.values() if t.step_index == index]
        return bool(step_tasks) and all(
            t.status == TaskStatus.COMPLETED or t.id in state.completed_task_ids for t in step_tasks
        )

    def evaluate(self) -> bool:
        """
        Run one evaluation of the current step. Returns True if it advanced.

        The verdict is kept per index; only a second consecutive True reading
        for the same index confirms completion.
        """
        self.evaluations += 1
        if self.finished or not self._steps:
            return False

        index = self._index
        complete = self.is_step_complete(index)
        previous = self._verdicts.get(index, False)
        self._verdicts[index] = complete

        if not complete:
            return False
        if not previous:
            # First sighting: confirm on the next cycle even if the store stays quiet.
            self._schedule_evaluation()
            return False

        if index < len(self._steps) - 1:
            self._advance()
            return True

        if not self._finished.is_set():
            logger.info("All %d step(s) completed", len(self._steps))
            self._finished.set()
        return False

    # ---- internals ----

    def _advance(self) -> None:
        self._unmount_current()
        old = self._index
        self._index = old + 1
        self._verdicts.pop(self._index, None)
        self._enter(self._index, old=old)

    def _enter(self, index: int, *, old: int | None = None) -> None:
        self.store.prune_above(index)

        step = self._steps[index]
        label = getattr(step, "label", None) or f"step {index}"
        logger.info("Step %d/%d: %s", index + 1, len(self._steps), label)

        with use_context(self.context):
            step.mount(self.context)
        self._mounted = step

        if old is not None:
            for listener in list(self._listeners):
                try:
                    listener(old, index)
                except Exception:
                    logger.exception("Sequencer listener failed")

        self._schedule_evaluation()

    def _unmount_current(self) -> None:
        if self._mounted is None:
            return
        step, self._mounted = self._mounted, None
        try:
            step.unmount()
        except Exception:
            logger.exception("Unmounting step %d failed", self._index)

    def _on_store_change(self, state: TaskState) -> None:
        self._schedule_evaluation()

    def _schedule_evaluation(self) -> None:
        if self._evaluation_pending or self._loop is None:
            return
        self._evaluation_pending = True
        self._loop.call_soon(self._run_scheduled_evaluation)

    def _run_scheduled_evaluation(self) -> None:
        self._evaluation_pending = False
        if not self.started:
            return
        self.evaluate()
