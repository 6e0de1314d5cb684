# src/stepscript/errors.py

"""Exceptions raised by stepscript.

Two families:
- usage errors: a collaborator used the core outside a valid task/step context;
- operation failures: raised by operation bodies and recorded on their task.

The task store itself never raises; failures are stored as data on the task.
"""

from __future__ import annotations


class StepScriptError(Exception):
    """Base exception for all stepscript errors."""


class NotInitializedError(StepScriptError):
    """Raised when a task handle executes before it registered its task."""


class OutsideContextError(StepScriptError):
    """Raised when the execution context is requested outside a mounted step."""


class ScriptLoadError(StepScriptError):
    """Raised when a script file cannot be imported or defines no steps."""


class OperationError(StepScriptError):
    """Base class for failures raised by operation bodies."""


class CommandFailedError(OperationError):
    """A shell command or process exited with a non-zero code."""

    def __init__(self, command: str, exit_code: int | None, stderr: str = "", stdout: str = "") -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        self.stdout = stdout
        super().__init__(f"Command failed with exit code {exit_code}: {command}")


class PromptCancelledError(OperationError):
    """The user closed stdin or pressed Ctrl+C at a prompt."""


class PromptValidationError(OperationError):
    """The prompt answer was rejected by its validator."""


class TaskCancelledError(OperationError):
    """The task body was cancelled before it finished."""
