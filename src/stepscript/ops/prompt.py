# src/stepscript/ops/prompt.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from ..errors import PromptCancelledError, PromptValidationError
from .base import Operation, maybe_await

logger = logging.getLogger(__name__)

Validator = Callable[[str], Any]


class Prompt(Operation):
    """
    Ask a question on stdin.

    - empty answer falls back to `default`; if still empty, `on_cancel` runs and
      the result is None
    - `validate` returns True, False or an error message
    """

    def __init__(
        self,
        message: str,
        *,
        default: str = "",
        validate: Validator | None = None,
        on_cancel: Callable[[], Any] | None = None,
        input_func: Callable[[str], str] = input,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.message = message
        self.default = default
        self.validate = validate
        self.on_cancel = on_cancel
        self.input_func = input_func

    def describe(self) -> str:
        return f"Prompt: {self.message}"

    @property
    def question(self) -> str:
        return f"{self.message} ({self.default}): " if self.default else f"{self.message}: "

    async def run(self) -> str | None:
        try:
            raw = await asyncio.to_thread(self.input_func, self.question)
        except (EOFError, KeyboardInterrupt) as exc:
            raise PromptCancelledError("User cancelled") from exc

        answer = (raw or "").strip() or self.default
        if not answer:
            logger.debug("Prompt %r got no answer", self.message)
            if self.on_cancel is not None:
                await maybe_await(self.on_cancel())
            return None

        if self.validate is not None:
            verdict = await maybe_await(self.validate(answer))
            if isinstance(verdict, str):
                raise PromptValidationError(verdict)
            if not verdict:
                raise PromptValidationError("Invalid input")

        return answer
