# src/stepscript/tasks/task_store.py

from __future__ import annotations

"""
In-memory task store.

State changes are expressed as actions and applied by a pure reducer
(`reduce_task_state`) that returns a new TaskState snapshot. TaskStore owns the
current snapshot and serializes dispatches:
- one queue of pending actions, applied one at a time,
- listeners are notified after every state-changing action,
- actions dispatched by a listener are queued behind the current one.

Actions that reference unknown ids are no-ops. They are logged at DEBUG and
counted, never raised.
"""

import logging
import time
import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Mapping

from .task_models import Task, TaskState, TaskStatus

logger = logging.getLogger(__name__)

StoreListener = Callable[[TaskState], None]


# ---- actions ----


@dataclass(frozen=True, slots=True)
class RegisterTask:
    task: Task


@dataclass(frozen=True, slots=True)
class StartTask:
    id: str
    at: float


@dataclass(frozen=True, slots=True)
class CompleteTask:
    id: str
    at: float


@dataclass(frozen=True, slots=True)
class FailTask:
    id: str
    error: BaseException
    at: float


@dataclass(frozen=True, slots=True)
class SetParent:
    id: str
    parent_id: str


@dataclass(frozen=True, slots=True)
class PruneTasks:
    step_index: int


TaskAction = RegisterTask | StartTask | CompleteTask | FailTask | SetParent | PruneTasks


# ---- reducer ----


def _with_task(state: TaskState, task: Task, **changes) -> TaskState:
    tasks = dict(state.tasks)
    tasks[task.id] = task
    return replace(state, tasks=tasks, **changes)


def reduce_task_state(state: TaskState, action: TaskAction) -> TaskState:
    """
    Apply one action to a snapshot and return the resulting snapshot.

    Never mutates `state`. Returns `state` itself when the action changes
    nothing (unknown ids, transitions out of a terminal status,
    existing parent link).
    """
    if isinstance(action, RegisterTask):
        task = action.task
        if task.id in state.tasks:
            return state
        root_ids = state.root_task_ids if task.parent_id else (*state.root_task_ids, task.id)
        return _with_task(state, task, root_task_ids=root_ids)

    if isinstance(action, StartTask):
        task = state.tasks.get(action.id)
        if task is None or task.status.is_terminal:
            return state
        return _with_task(state, replace(task, status=TaskStatus.RUNNING, start_time=action.at))

    if isinstance(action, CompleteTask):
        task = state.tasks.get(action.id)
        if task is None or task.status.is_terminal:
            return state
        completed = state.completed_task_ids
        if task.id not in completed:
            completed = (*completed, task.id)
        return _with_task(
            state,
            replace(task, status=TaskStatus.COMPLETED, end_time=action.at),
            completed_task_ids=completed,
        )

    if isinstance(action, FailTask):
        task = state.tasks.get(action.id)
        if task is None or task.status.is_terminal:
            return state
        return _with_task(
            state,
            replace(task, status=TaskStatus.FAILED, error=action.error, end_time=action.at),
        )

    if isinstance(action, SetParent):
        task = state.tasks.get(action.id)
        parent = state.tasks.get(action.parent_id)
        if task is None or parent is None or task.id == parent.id:
            return state
        # A parent is set once; a different parent later is ignored.
        if task.parent_id is not None and task.parent_id != parent.id:
            return state
        if task.id in parent.child_ids:
            return state

        tasks = dict(state.tasks)
        tasks[task.id] = replace(task, parent_id=parent.id)
        tasks[parent.id] = replace(parent, child_ids=(*parent.child_ids, task.id))
        root_ids = tuple(tid for tid in state.root_task_ids if tid != task.id)
        return replace(state, tasks=tasks, root_task_ids=root_ids)

    if isinstance(action, PruneTasks):
        kept = {tid: t for tid, t in state.tasks.items() if t.step_index <= action.step_index}
        if len(kept) == len(state.tasks):
            return state
        root_ids = tuple(tid for tid in state.root_task_ids if tid in kept)
        return replace(state, tasks=kept, root_task_ids=root_ids)

    raise TypeError(f"Unknown task action: {action!r}")


def new_task_id(step_index: int) -> str:
    """Unique within a run; the step index stays readable as the prefix."""
    return f"{step_index}-{uuid.uuid4().hex[:9]}"


# ---- store ----


class TaskStore:
    """
    Authoritative record of all tasks for one script run.

    Mutators are synchronous and total. Readers get immutable snapshots or
    read-only views, so the only way to change state is `dispatch`.
    """

    def __init__(self, initial: TaskState | None = None) -> None:
        self._state = initial if initial is not None else TaskState()
        self._queue: deque[TaskAction] = deque()
        self._dispatching = False
        self._listeners: list[StoreListener] = []
        self.ignored_actions = 0

    # ---- dispatch / subscription ----

    def dispatch(self, action: TaskAction) -> None:
        self._queue.append(action)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._queue:
                current = self._queue.popleft()
                before = self._state
                after = reduce_task_state(before, current)
                if after is before:
                    self.ignored_actions += 1
                    logger.debug("Ignored task action (no effect): %r", current)
                    continue
                self._state = after
                logger.debug("Applied %s", type(current).__name__)
                self._notify(after)
        finally:
            self._dispatching = False

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, state: TaskState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Task store listener failed: %r", listener)

    # ---- mutators ----

    def register(self, name: str, *, step_index: int, parent_id: str | None = None) -> str:
        task_id = new_task_id(step_index)
        task = Task(
            id=task_id,
            name=name,
            status=TaskStatus.PENDING,
            step_index=step_index,
            parent_id=parent_id,
        )
        self.dispatch(RegisterTask(task))
        logger.debug("Task registered id=%s name=%r step=%s parent=%s", task_id, name, step_index, parent_id)
        return task_id

    def start(self, task_id: str) -> None:
        self.dispatch(StartTask(task_id, at=time.time()))

    def complete(self, task_id: str) -> None:
        self.dispatch(CompleteTask(task_id, at=time.time()))

    def fail(self, task_id: str, error: BaseException) -> None:
        self.dispatch(FailTask(task_id, error=error, at=time.time()))

    def set_parent(self, task_id: str, parent_id: str) -> None:
        self.dispatch(SetParent(task_id, parent_id))

    def prune_above(self, step_index: int) -> None:
        self.dispatch(PruneTasks(step_index))

    # ---- queries ----

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def tasks(self) -> Mapping[str, Task]:
        return MappingProxyType(dict(self._state.tasks))

    @property
    def root_task_ids(self) -> tuple[str, ...]:
        return self._state.root_task_ids

    @property
    def completed_task_ids(self) -> tuple[str, ...]:
        return self._state.completed_task_ids

    def get(self, task_id: str) -> Task | None:
        return self._state.tasks.get(task_id)

    def children_of(self, task_id: str) -> list[Task]:
        task = self._state.tasks.get(task_id)
        if task is None:
            return []
        return [self._state.tasks[cid] for cid in task.child_ids if cid in self._state.tasks]

    def is_completed(self, task_id: str) -> bool:
        task = self._state.tasks.get(task_id)
        return task is not None and task.status == TaskStatus.COMPLETED

    def has_failed(self, task_id: str) -> bool:
        task = self._state.tasks.get(task_id)
        return task is not None and task.status == TaskStatus.FAILED

    def tasks_for_step(self, step_index: int) -> list[Task]:
        return [t for t in self._state.tasks.values() if t.step_index == step_index]
