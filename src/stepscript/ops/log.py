# src/stepscript/ops/log.py

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, Literal

from rich.console import Console
from rich.text import Text

from .base import Operation

LogLevel = Literal["info", "success", "warning", "error", "debug", "trace"]
LogFormat = Literal["default", "json", "table"]

LEVEL_STYLES: dict[str, str] = {
    "info": "blue",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "debug": "grey50",
    "trace": "magenta",
}

LEVEL_PREFIXES: dict[str, str] = {
    "info": "ℹ",
    "success": "✓",
    "warning": "⚠",
    "error": "✖",
    "debug": "⚙",
    "trace": "→",
}

_console = Console(highlight=False, soft_wrap=True)


def format_table(rows: Sequence[Mapping[str, Any]]) -> str:
    """Render rows as `a | b` columns with a `-+-` separator under the header."""
    if not rows:
        return ""
    headers = list(rows[0].keys())
    cells = [["" if row.get(h) is None else str(row.get(h)) for h in headers] for row in rows]
    widths = [max(len(h), *(len(r[i]) for r in cells)) for i, h in enumerate(headers)]

    def fmt_row(values: Sequence[str]) -> str:
        return " | ".join(v.ljust(widths[i]) for i, v in enumerate(values))

    separator = "-+-".join("-" * w for w in widths)
    return "\n".join([fmt_row(headers), separator, *(fmt_row(r) for r in cells)])


def format_content(content: Any, fmt: LogFormat = "default") -> str:
    if fmt == "json":
        return json.dumps(content, indent=2, ensure_ascii=False, default=str)
    if fmt == "table" and isinstance(content, Mapping):
        return format_table([content])
    if fmt == "table" and isinstance(content, Sequence) and not isinstance(content, (str, bytes)):
        return format_table(list(content))
    return str(content)


class Log(Operation):
    """Print one styled line to the console (a task like any other)."""

    def __init__(
        self,
        content: Any = None,
        *,
        level: LogLevel = "info",
        format: LogFormat = "default",
        timestamp: bool = True,
        prefix: str | None = None,
        indent: int = 0,
        muted: bool = False,
        console: Console | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.content = content
        self.level = level
        self.format = format
        self.timestamp = timestamp
        self.prefix = prefix
        self.indent = indent
        self.muted = muted
        self.console = console

    def describe(self) -> str:
        return f"Log: {str(self.content)[:20]}..."

    def render(self) -> Text:
        line = Text("  " * self.indent)
        if self.timestamp:
            now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
            line.append(f"[{now}] ", style="grey50")
        symbol = self.prefix if self.prefix is not None else LEVEL_PREFIXES.get(self.level, "")
        if symbol:
            line.append(f"{symbol} ")
        style = "grey50" if self.muted else LEVEL_STYLES.get(self.level, "")
        line.append(format_content(self.content, self.format), style=style)
        return line

    async def run(self) -> str | None:
        if self.content is None or self.content == "":
            return None
        line = self.render()
        (self.console or _console).print(line)
        return line.plain


def LogSuccess(content: Any = None, **kwargs: Any) -> Log:
    return Log(content, level="success", **kwargs)


def LogWarning(content: Any = None, **kwargs: Any) -> Log:
    return Log(content, level="warning", **kwargs)


def LogError(content: Any = None, **kwargs: Any) -> Log:
    return Log(content, level="error", **kwargs)


def LogDebug(content: Any = None, **kwargs: Any) -> Log:
    return Log(content, level="debug", **kwargs)


def LogTrace(content: Any = None, **kwargs: Any) -> Log:
    return Log(content, level="trace", **kwargs)


def log_group(label: str | None, *operations: Operation, collapsed: bool = False, indent: int = 0) -> list[Operation]:
    """
    A muted `▼ label` line followed by the operations, one indent deeper.

    Collapsed groups keep only the `▶ label` line.
    """
    out: list[Operation] = []
    if label:
        out.append(Log(f"▶ {label}" if collapsed else f"▼ {label}", indent=indent, muted=True))
    if not collapsed:
        for op in operations:
            if isinstance(op, Log):
                op.indent = max(op.indent, indent + 1)
            out.append(op)
    return out
