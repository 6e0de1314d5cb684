# src/stepscript/tasks/task_api.py

from __future__ import annotations

"""
Read-only helpers over a TaskStore for diagnostics and status views.

Nothing here mutates the store.
"""

from collections import Counter
from collections.abc import Iterator
from dataclasses import dataclass

from .task_models import Task, TaskStatus
from .task_store import TaskStore


@dataclass(slots=True, frozen=True)
class StepSummary:
    step_index: int
    pending: int
    running: int
    completed: int
    failed: int

    @property
    def total(self) -> int:
        return self.pending + self.running + self.completed + self.failed

    @property
    def has_failures(self) -> bool:
        return self.failed > 0


def summarize_step(store: TaskStore, step_index: int) -> StepSummary:
    counts = Counter(t.status for t in store.tasks_for_step(step_index))
    return StepSummary(
        step_index=step_index,
        pending=counts[TaskStatus.PENDING],
        running=counts[TaskStatus.RUNNING],
        completed=counts[TaskStatus.COMPLETED],
        failed=counts[TaskStatus.FAILED],
    )


def failed_tasks(store: TaskStore, step_index: int | None = None) -> list[Task]:
    tasks = store.tasks.values() if step_index is None else store.tasks_for_step(step_index)
    return [t for t in tasks if t.status == TaskStatus.FAILED]


def walk_tasks(store: TaskStore) -> Iterator[tuple[int, Task]]:
    """
    Yield (depth, task) for every reachable task: roots in registration order,
    each followed by its children depth-first.
    """
    seen: set[str] = set()

    def _walk(task: Task, depth: int) -> Iterator[tuple[int, Task]]:
        if task.id in seen:
            return
        seen.add(task.id)
        yield depth, task
        for child in store.children_of(task.id):
            yield from _walk(child, depth + 1)

    for root_id in store.root_task_ids:
        root = store.get(root_id)
        if root is not None:
            yield from _walk(root, 0)


def duration_seconds(task: Task) -> float | None:
    if task.start_time is None or task.end_time is None:
        return None
    return max(0.0, task.end_time - task.start_time)
