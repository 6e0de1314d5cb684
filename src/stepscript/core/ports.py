# src/stepscript/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The sequencer depends on these Protocols rather than on concrete step or
operation classes, so scripts can bring their own step nodes and tests can use
fakes.
"""

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .context import ExecutionContext


class Step(Protocol):
    """
    One node of the script's ordered step list.

    The sequencer calls `mount` when the step becomes the active one and
    `unmount` before moving away from it. A dormant step registers no tasks.
    """

    label: str | None

    def mount(self, context: ExecutionContext) -> None: ...
    def unmount(self) -> None: ...


class Mountable(Protocol):
    """Anything a step can activate with a context and an optional parent task."""

    def activate(self, context: ExecutionContext | None = None, parent_id: str | None = None) -> Any: ...
    def deactivate(self) -> None: ...
