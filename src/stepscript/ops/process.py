# src/stepscript/ops/process.py

from __future__ import annotations

import asyncio
import logging
import shlex
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Literal

from ..errors import CommandFailedError
from .base import Operation
from .shell import merged_env

logger = logging.getLogger(__name__)

PackageManager = Literal["npm", "yarn", "pnpm", "bun"]


class Process(Operation):
    """Spawn a program without a shell and return its stdout."""

    def __init__(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.command = command
        self.args = [str(a) for a in args]
        self.cwd = cwd
        self.env = dict(env or {})

    def describe(self) -> str:
        return f"Process {self.command}"

    @property
    def command_line(self) -> str:
        return shlex.join([self.command, *self.args])

    async def run(self) -> str:
        logger.debug("Process spawn %s (cwd=%s)", self.command_line, self.cwd)
        proc = await asyncio.create_subprocess_exec(
            self.command,
            *self.args,
            cwd=str(self.cwd) if self.cwd is not None else None,
            env=merged_env(self.env),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        raw_out, raw_err = await proc.communicate()
        stdout = raw_out.decode("utf-8", errors="replace")
        stderr = raw_err.decode("utf-8", errors="replace")

        if proc.returncode != 0:
            raise CommandFailedError(self.command_line, proc.returncode, stderr=stderr, stdout=stdout)
        return stdout


class PackageScript(Process):
    """Run `<package manager> run <script>` (npm, yarn, pnpm or bun)."""

    def __init__(
        self,
        script: str,
        *,
        package_manager: PackageManager = "npm",
        flags: Sequence[str] = (),
        **kwargs: Any,
    ) -> None:
        if package_manager not in ("npm", "yarn", "pnpm", "bun"):
            raise ValueError(f"unsupported package manager: {package_manager}")
        super().__init__(package_manager, ["run", script, *flags], **kwargs)
        self.script = script
        self.package_manager = package_manager

    def describe(self) -> str:
        return f"{self.package_manager} run {self.script}"
