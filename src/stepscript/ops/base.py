# src/stepscript/ops/base.py

"""
Operation lifecycle shared by every leaf operation.

An operation is activated by the mounted step (or by a parent operation's
success/error branch). Activation registers exactly one task through a
TaskHandle and schedules a driver coroutine that:
- runs `run()` inside `TaskHandle.execute` (start -> complete | fail),
- calls `on_success` / `on_error` and builds the `then(result)` /
  `otherwise(error)` branch inside the task body,
- mounts the branch's child operations with this operation's task as their
  parent once the task is settled.

The driver is the operation's error boundary: it logs the failure and mounts
the error branch. The failure itself stays recorded on the task, so the step
never completes. A driver that outlives its activation writes nothing back.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Iterable
from typing import Any

from ..core.context import ExecutionContext, current_context
from ..tasks.task_handle import TaskHandle
from ..tasks.task_models import TaskStatus

logger = logging.getLogger(__name__)

Branch = Callable[[Any], Any]


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _as_operations(produced: Any) -> list[Operation]:
    if produced is None or produced is False:
        return []
    if isinstance(produced, Operation):
        return [produced]
    if isinstance(produced, Iterable) and not isinstance(produced, (str, bytes)):
        out: list[Operation] = []
        for item in produced:
            out.extend(_as_operations(item))
        return out
    raise TypeError(f"Branch must return operations, got {type(produced).__name__}")


def _build_branch(branch: Branch | None, value: Any) -> list[Operation]:
    if branch is None:
        return []
    return _as_operations(branch(value))


class Operation:
    """Base class for leaf operations (Shell, FileReader, Prompt, ...)."""

    def __init__(
        self,
        *,
        label: str | None = None,
        then: Branch | None = None,
        otherwise: Branch | None = None,
        on_success: Callable[[Any], Any] | None = None,
        on_error: Callable[[BaseException], Any] | None = None,
    ) -> None:
        self.label = label
        self.then = then
        self.otherwise = otherwise
        self.on_success = on_success
        self.on_error = on_error

        self._context: ExecutionContext | None = None
        self._handle: TaskHandle | None = None
        self._driver: asyncio.Task[None] | None = None
        self._children: list[Operation] = []

        self.loading = False
        self.result: Any = None
        self.error: BaseException | None = None

    # ---- naming ----

    def describe(self) -> str:
        return type(self).__name__

    @property
    def name(self) -> str:
        return self.label or self.describe()

    # ---- body ----

    async def run(self) -> Any:
        raise NotImplementedError

    async def _body(self, children: list[Operation]) -> Any:
        """
        Run the operation and build the branch it selects.

        Branch builders run inside the task body: a builder that raises fails
        this operation's task (for the error branch, the builder's exception
        replaces the original one, which stays chained as its context).
        """
        try:
            result = await self.run()
        except Exception as exc:
            if self.on_error is not None:
                await maybe_await(self.on_error(exc))
            children.extend(_build_branch(self.otherwise, exc))
            raise
        if self.on_success is not None:
            await maybe_await(self.on_success(result))
        children.extend(_build_branch(self.then, result))
        return result

    # ---- lifecycle ----

    @property
    def active(self) -> bool:
        return self._handle is not None

    def activate(self, context: ExecutionContext | None = None, parent_id: str | None = None) -> str:
        if self._handle is not None and self._handle.task_id is not None:
            return self._handle.task_id

        self._context = context if context is not None else current_context()
        self._handle = TaskHandle(self._context, self.name, parent_id=parent_id)
        task_id = self._handle.activate()

        self.loading = True
        self.result = None
        self.error = None
        self._driver = asyncio.get_running_loop().create_task(self._drive(self._handle), name=self.name)
        return task_id

    def deactivate(self) -> None:
        for child in self._children:
            child.deactivate()
        self._children = []
        if self._handle is not None:
            self._handle.deactivate()
        self._handle = None

    async def _drive(self, handle: TaskHandle) -> None:
        task_id = handle.task_id
        children: list[Operation] = []
        try:
            result = await handle.execute(lambda: self._body(children))
        except Exception as exc:
            if self._handle is not handle:
                logger.debug("%s finished after deactivation: %s", self.name, exc)
                return
            self.loading = False
            self.error = exc
            logger.warning("%s failed: %s", self.name, exc)
            self._mount_children(task_id, children)
            return

        # A deactivated operation no longer owns a place in the step.
        if self._handle is not handle:
            logger.debug("%s finished after deactivation", self.name)
            return
        self.loading = False
        self.result = result
        self._mount_children(task_id, children)

    def _mount_children(self, task_id: str | None, children: list[Operation]) -> None:
        for child in children:
            child.activate(self._context, parent_id=task_id)
            self._children.append(child)

    # ---- observation ----

    @property
    def task_id(self) -> str | None:
        return self._handle.task_id if self._handle else None

    @property
    def status(self) -> TaskStatus | None:
        return self._handle.status if self._handle else None

    @property
    def succeeded(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @property
    def failed(self) -> bool:
        return self.status == TaskStatus.FAILED

    @property
    def children(self) -> list[Operation]:
        return list(self._children)

    async def wait(self) -> None:
        """Wait for this operation and every child mounted so far."""
        if self._driver is not None:
            await asyncio.shield(self._driver)
        for child in list(self._children):
            await child.wait()
