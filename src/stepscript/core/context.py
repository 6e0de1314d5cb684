# src/stepscript/core/context.py

"""
Shared execution context.

The read/write surface handed to every operation of the mounted step: task
mutators (tagged with the sequencer's current index) plus store queries.
The sequencer binds it with `use_context` while mounting a step; asyncio
tasks created during mounting inherit the binding.
"""

from __future__ import annotations

import contextlib
from collections.abc import Callable, Iterator, Mapping
from contextvars import ContextVar

from ..errors import OutsideContextError
from ..tasks.task_models import Task
from ..tasks.task_store import TaskStore

_current: ContextVar[ExecutionContext | None] = ContextVar("stepscript_context", default=None)


class ExecutionContext:
    def __init__(self, store: TaskStore, index_provider: Callable[[], int]) -> None:
        self.store = store
        self._index_provider = index_provider

    @property
    def current_step_index(self) -> int:
        return self._index_provider()

    # ---- mutators ----

    def register_task(self, name: str, parent_id: str | None = None) -> str:
        return self.store.register(name, step_index=self._index_provider(), parent_id=parent_id)

    def start_task(self, task_id: str) -> None:
        self.store.start(task_id)

    def complete_task(self, task_id: str) -> None:
        self.store.complete(task_id)

    def fail_task(self, task_id: str, error: BaseException) -> None:
        self.store.fail(task_id, error)

    def set_parent(self, task_id: str, parent_id: str) -> None:
        self.store.set_parent(task_id, parent_id)

    # ---- queries ----

    def get_task(self, task_id: str) -> Task | None:
        return self.store.get(task_id)

    def children_of(self, task_id: str) -> list[Task]:
        return self.store.children_of(task_id)

    def is_completed(self, task_id: str) -> bool:
        return self.store.is_completed(task_id)

    def has_failed(self, task_id: str) -> bool:
        return self.store.has_failed(task_id)

    @property
    def tasks(self) -> Mapping[str, Task]:
        return self.store.tasks

    @property
    def root_task_ids(self) -> tuple[str, ...]:
        return self.store.root_task_ids


@contextlib.contextmanager
def use_context(context: ExecutionContext) -> Iterator[ExecutionContext]:
    token = _current.set(context)
    try:
        yield context
    finally:
        _current.reset(token)


def current_context() -> ExecutionContext:
    """Return the bound context or raise OutsideContextError."""
    context = _current.get()
    if context is None:
        raise OutsideContextError("No execution context: operations must run inside a mounted step")
    return context
