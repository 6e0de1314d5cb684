# src/stepscript/core/steps.py

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .context import ExecutionContext
    from .ports import Mountable

logger = logging.getLogger(__name__)


class OperationStep:
    """
    A step made of operations that all start when the step is mounted.

    Siblings run concurrently; ordering inside a step comes only from nesting
    operations in each other's `then`/`otherwise` branches.
    """

    def __init__(self, *operations: Mountable, label: str | None = None) -> None:
        self.operations: list[Mountable] = list(operations)
        self.label = label
        self.mounted = False

    def mount(self, context: ExecutionContext) -> None:
        if self.mounted:
            return
        self.mounted = True
        logger.debug("Mounting step %r with %d operation(s)", self.label, len(self.operations))
        for operation in self.operations:
            operation.activate(context)

    def unmount(self) -> None:
        if not self.mounted:
            return
        self.mounted = False
        for operation in self.operations:
            operation.deactivate()

    def __repr__(self) -> str:
        return f"OperationStep(label={self.label!r}, operations={len(self.operations)})"


def step(*operations: Mountable, label: str | None = None) -> OperationStep:
    return OperationStep(*operations, label=label)


def as_steps(items: Iterable[object]) -> list[object]:
    """
    Normalize a script's step list.

    Objects that already look like steps (have mount/unmount) are kept; any
    other item with `activate` becomes a one-operation step.
    """
    out: list[object] = []
    for item in items:
        if hasattr(item, "mount") and hasattr(item, "unmount"):
            out.append(item)
        elif hasattr(item, "activate") and hasattr(item, "deactivate"):
            out.append(OperationStep(item))  # type: ignore[arg-type]
        else:
            raise TypeError(f"Not a step or operation: {item!r}")
    return out
