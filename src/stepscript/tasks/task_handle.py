# src/stepscript/tasks/task_handle.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from ..errors import NotInitializedError, TaskCancelledError
from .task_models import Task, TaskStatus

if TYPE_CHECKING:
    from ..core.context import ExecutionContext

logger = logging.getLogger(__name__)


class TaskHandle:
    """
    Single-registration facade an operation uses to take part in the store.

    `activate` registers one task per live handle; calling it again returns the
    same id. `execute` brackets an async body with start/complete/fail and
    re-raises whatever the body raised.
    """

    def __init__(self, context: ExecutionContext, name: str, parent_id: str | None = None) -> None:
        self._context = context
        self.name = name
        self.parent_id = parent_id
        self._task_id: str | None = None

    def activate(self) -> str:
        if self._task_id is None:
            self._task_id = self._context.register_task(self.name, self.parent_id)
            if self.parent_id is not None:
                self._context.set_parent(self._task_id, self.parent_id)
        return self._task_id

    def deactivate(self) -> None:
        self._task_id = None

    @property
    def task_id(self) -> str | None:
        return self._task_id

    @property
    def task(self) -> Task | None:
        if self._task_id is None:
            return None
        return self._context.get_task(self._task_id)

    @property
    def status(self) -> TaskStatus | None:
        task = self.task
        return task.status if task else None

    @property
    def error(self) -> BaseException | None:
        task = self.task
        return task.error if task else None

    async def execute(self, body: Callable[[], Awaitable[Any]]) -> Any:
        task_id = self._task_id
        if task_id is None:
            raise NotInitializedError(f"Task not initialized: {self.name!r}")

        self._context.start_task(task_id)
        try:
            result = await body()
        except asyncio.CancelledError:
            self._context.fail_task(task_id, TaskCancelledError(f"Task cancelled: {self.name}"))
            raise
        except Exception as exc:
            logger.debug("Task %s failed: %s", task_id, exc)
            self._context.fail_task(task_id, exc)
            raise

        self._context.complete_task(task_id)
        return result
