# src/stepscript/core/watch.py

"""Polling change detection for watch mode (no OS notification APIs)."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

Snapshot = dict[str, tuple[int, int]]


def snapshot_paths(paths: Iterable[str | Path]) -> Snapshot:
    """Map every file under `paths` to (mtime_ns, size). Missing paths are skipped."""
    out: Snapshot = {}
    for raw in paths:
        root = Path(raw)
        if root.is_file():
            candidates: Iterable[Path] = [root]
        elif root.is_dir():
            candidates = (p for p in root.rglob("*") if p.is_file())
        else:
            continue
        for p in candidates:
            try:
                st = p.stat()
            except OSError:
                continue
            out[os.fspath(p)] = (st.st_mtime_ns, st.st_size)
    return out


def changed_files(before: Snapshot, after: Snapshot) -> list[str]:
    keys = set(before) | set(after)
    return sorted(k for k in keys if before.get(k) != after.get(k))


async def wait_for_change(
    paths: Iterable[str | Path],
    *,
    interval: float = 1.0,
    baseline: Snapshot | None = None,
) -> list[str]:
    """Poll until something under `paths` changes; return the changed files."""
    paths = list(paths)
    before = baseline if baseline is not None else snapshot_paths(paths)
    sleep_s = max(0.05, float(interval))

    while True:
        await asyncio.sleep(sleep_s)
        after = await asyncio.to_thread(snapshot_paths, paths)
        changed = changed_files(before, after)
        if changed:
            logger.debug("Change detected in %d file(s)", len(changed))
            return changed
