# src/stepscript/tasks/task_models.py

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    pending -> running -> completed | failed
    Terminal statuses never change again.
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    name: str
    status: TaskStatus
    step_index: int

    parent_id: str | None = None
    child_ids: tuple[str, ...] = ()

    error: BaseException | None = None
    start_time: float | None = None
    end_time: float | None = None


@dataclass(frozen=True, slots=True)
class TaskState:
    """
    Immutable snapshot of every registered task.

    - tasks: id -> Task
    - root_task_ids: ids without a parent link, in registration order
    - completed_task_ids: ids that reached COMPLETED, append-only
    """

    tasks: Mapping[str, Task] = field(default_factory=dict)
    root_task_ids: tuple[str, ...] = ()
    completed_task_ids: tuple[str, ...] = ()
