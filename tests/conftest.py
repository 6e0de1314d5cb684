# tests/conftest.py

from __future__ import annotations

import pytest

from stepscript import config
from stepscript.config import Settings
from stepscript.core.context import ExecutionContext
from stepscript.tasks.task_store import TaskStore


@pytest.fixture()
def store() -> TaskStore:
    return TaskStore()


@pytest.fixture()
def context(store: TaskStore) -> ExecutionContext:
    """Context pinned to step 0, for operations tested outside a sequencer."""
    return ExecutionContext(store, lambda: 0)


@pytest.fixture()
def settings() -> Settings:
    """
    Deterministic settings for runner tests.

    Built directly rather than from the environment so a developer's .env
    cannot change test timing.
    """
    return Settings(
        default_shell="/bin/sh",
        fetch_timeout_seconds=5.0,
        stall_timeout_seconds=0.3,
        watch_interval_seconds=0.05,
    )


@pytest.fixture(autouse=True)
def _pinned_settings(monkeypatch: pytest.MonkeyPatch, settings: Settings) -> None:
    # Operations that call get_settings() see the test settings.
    monkeypatch.setattr(config, "_SETTINGS", settings)
