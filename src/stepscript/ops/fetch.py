# src/stepscript/ops/fetch.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import get_settings
from .base import Operation

logger = logging.getLogger(__name__)


class Fetch(Operation):
    """GET (or another method) a URL and return the decoded JSON body."""

    def __init__(
        self,
        url: str,
        *,
        method: str = "GET",
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.url = url
        self.method = method.upper()
        self.timeout = timeout
        self.transport = transport

    def describe(self) -> str:
        return f"Fetch: {self.url}"

    async def run(self) -> Any:
        timeout = self.timeout if self.timeout is not None else get_settings().fetch_timeout_seconds
        async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
            response = await client.request(self.method, self.url)

        if response.is_error:
            logger.warning("HTTP error %s for %s", response.status_code, self.url)
        return response.json()
