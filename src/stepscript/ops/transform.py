# src/stepscript/ops/transform.py

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from .base import Operation, maybe_await

logger = logging.getLogger(__name__)


class Transform(Operation):
    """Apply a (sync or async) user function to `input`."""

    def __init__(
        self,
        transform: Callable[[Any], Any],
        input: Any = None,
        *,
        log_transformation: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.transform = transform
        self.input = input
        self.log_transformation = log_transformation

    def describe(self) -> str:
        name = getattr(self.transform, "__name__", "") or "anonymous"
        if name == "<lambda>":
            name = "anonymous"
        return f"Transform: {name}"

    async def run(self) -> Any:
        result = await maybe_await(self.transform(self.input))
        if self.log_transformation:
            logger.debug("%s: %r -> %r", self.name, self.input, result)
        return result


class Filter(Transform):
    def __init__(self, predicate: Callable[[Any], bool], input: Iterable[Any] = (), **kwargs: Any) -> None:
        def _filter(data: Iterable[Any]) -> list[Any]:
            return [item for item in data if predicate(item)]

        super().__init__(_filter, input, **kwargs)


class Map(Transform):
    def __init__(self, mapper: Callable[[Any], Any], input: Iterable[Any] = (), **kwargs: Any) -> None:
        def _map(data: Iterable[Any]) -> list[Any]:
            return [mapper(item) for item in data]

        super().__init__(_map, input, **kwargs)
