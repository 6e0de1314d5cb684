# src/stepscript/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- imports the user's script file,
- collects its step list (`STEPS` or `build_steps()`),
- wires settings and a fresh TaskStore into a ScriptRunner.
"""

from __future__ import annotations

import importlib.util
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Any

from ..config import Settings, get_settings
from ..core.runner import ScriptRunner
from ..core.steps import as_steps
from ..errors import ScriptLoadError
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def import_script(path: str | Path) -> ModuleType:
    path = Path(path).expanduser().resolve()
    if not path.is_file():
        raise ScriptLoadError(f"Script not found: {path}")

    module_name = f"stepscript_user_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ScriptLoadError(f"Cannot import script: {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(module_name, None)
        raise ScriptLoadError(f"Script {path.name} raised during import: {exc}") from exc
    return module


def load_steps(path: str | Path) -> list[Any]:
    """
    Return the normalized step list defined by a script file.

    The script defines either `STEPS` (a list) or `build_steps()` returning one.
    Bare operations become one-operation steps.
    """
    module = import_script(path)

    build = getattr(module, "build_steps", None)
    if callable(build):
        raw = build()
    elif hasattr(module, "STEPS"):
        raw = module.STEPS
    else:
        raise ScriptLoadError(f"{Path(path).name} defines neither STEPS nor build_steps()")

    try:
        steps = as_steps(list(raw))
    except TypeError as exc:
        raise ScriptLoadError(str(exc)) from exc
    if not steps:
        raise ScriptLoadError(f"{Path(path).name} defines an empty step list")

    logger.debug("Loaded %d step(s) from %s", len(steps), path)
    return steps


def create_runner(path: str | Path, *, settings: Settings | None = None) -> ScriptRunner:
    if settings is None:
        settings = get_settings()
    return ScriptRunner(load_steps(path), settings, store=TaskStore())
