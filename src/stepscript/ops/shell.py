# src/stepscript/ops/shell.py

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from ..config import get_settings
from ..errors import CommandFailedError
from .base import Operation, maybe_await

logger = logging.getLogger(__name__)

ShellMode = Literal["exec", "stream"]
ChunkCallback = Callable[[str], Any]


@dataclass(slots=True, frozen=True)
class ShellResult:
    stdout: str
    stderr: str
    exit_code: int


def merged_env(env: Mapping[str, str] | None) -> dict[str, str]:
    out = dict(os.environ)
    if env:
        out.update(env)
    return out


async def _pump(stream: asyncio.StreamReader | None, sink: list[str], callback: ChunkCallback | None) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(4096)
        if not chunk:
            return
        text = chunk.decode("utf-8", errors="replace")
        sink.append(text)
        if callback is not None:
            await maybe_await(callback(text))


class Shell(Operation):
    """
    Run a command through a shell.

    - mode="exec": collect output and return it when the command exits
    - mode="stream": forward stdout/stderr chunks to callbacks as they arrive

    A non-zero exit code raises CommandFailedError (the task fails).
    """

    def __init__(
        self,
        command: str,
        *,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        shell: str | None = None,
        mode: ShellMode = "exec",
        on_stdout: ChunkCallback | None = None,
        on_stderr: ChunkCallback | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.command = command
        self.cwd = cwd
        self.env = dict(env or {})
        self.shell = shell
        self.mode = mode
        self.on_stdout = on_stdout
        self.on_stderr = on_stderr

    def describe(self) -> str:
        return f"Shell: {self.command[:20]}..."

    async def run(self) -> ShellResult:
        executable = self.shell or get_settings().default_shell
        logger.debug("Shell exec %r (shell=%s cwd=%s mode=%s)", self.command, executable, self.cwd, self.mode)

        proc = await asyncio.create_subprocess_shell(
            self.command,
            cwd=str(self.cwd) if self.cwd is not None else None,
            env=merged_env(self.env),
            executable=executable,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        if self.mode == "stream":
            out: list[str] = []
            err: list[str] = []
            await asyncio.gather(
                _pump(proc.stdout, out, self.on_stdout),
                _pump(proc.stderr, err, self.on_stderr),
            )
            code = await proc.wait()
            stdout, stderr = "".join(out), "".join(err)
        else:
            raw_out, raw_err = await proc.communicate()
            code = proc.returncode if proc.returncode is not None else -1
            stdout = raw_out.decode("utf-8", errors="replace")
            stderr = raw_err.decode("utf-8", errors="replace")
            if stderr and self.on_stderr is not None:
                await maybe_await(self.on_stderr(stderr))

        if code != 0:
            raise CommandFailedError(self.command, code, stderr=stderr, stdout=stdout)
        return ShellResult(stdout=stdout, stderr=stderr, exit_code=code)
