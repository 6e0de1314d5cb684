# src/stepscript/ops/files.py

from __future__ import annotations

import asyncio
import base64
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal

from .base import Operation, maybe_await

logger = logging.getLogger(__name__)

FileFormat = Literal["text", "json", "base64", "binary"]


def resolve_path(path: str | Path) -> Path:
    """Relative paths are taken from the current working directory."""
    return Path.cwd().joinpath(path).resolve()


def decode_content(raw: bytes, fmt: FileFormat) -> Any:
    if fmt == "text":
        return raw.decode("utf-8")
    if fmt == "json":
        return json.loads(raw.decode("utf-8"))
    if fmt == "base64":
        return base64.b64encode(raw).decode("ascii")
    return raw


def encode_content(content: Any, fmt: FileFormat, encoding: str = "utf-8") -> str | bytes:
    if fmt == "json":
        return json.dumps(content, indent=2, ensure_ascii=False)
    if fmt == "base64":
        return base64.b64encode(str(content).encode(encoding)).decode("ascii")
    if fmt == "binary":
        if isinstance(content, str):
            return content.encode(encoding)
        return content if isinstance(content, bytes) else bytes(content)
    return str(content)


class FileReader(Operation):
    def __init__(self, path: str | Path, *, format: FileFormat = "text", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.path = path
        self.format = format

    def describe(self) -> str:
        return f"FileReader: {self.path}"

    async def run(self) -> Any:
        resolved = resolve_path(self.path)
        raw = await asyncio.to_thread(resolved.read_bytes)
        logger.debug("Read %d bytes from %s", len(raw), resolved)
        return decode_content(raw, self.format)


class FileWriter(Operation):
    """
    Encode `content`, optionally pass it through `transform`, write it.

    Returns the resolved path that was written.
    """

    def __init__(
        self,
        path: str | Path,
        content: Any = "",
        *,
        format: FileFormat = "text",
        transform: Callable[[str | bytes], Any] | None = None,
        create_directory: bool = False,
        encoding: str = "utf-8",
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.path = path
        self.content = content
        self.format = format
        self.transform = transform
        self.create_directory = create_directory
        self.encoding = encoding

    def describe(self) -> str:
        return f"FileWriter: {self.path}"

    async def run(self) -> Path:
        data = encode_content(self.content, self.format, self.encoding)
        if self.transform is not None:
            data = await maybe_await(self.transform(data))

        resolved = resolve_path(self.path)
        await asyncio.to_thread(self._write, resolved, data)
        logger.debug("Wrote %s", resolved)
        return resolved

    def _write(self, resolved: Path, data: str | bytes) -> None:
        if self.create_directory:
            resolved.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, bytes):
            resolved.write_bytes(data)
        else:
            resolved.write_text(data, encoding=self.encoding)
