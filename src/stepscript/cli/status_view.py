# src/stepscript/cli/status_view.py

from __future__ import annotations

from rich.markup import escape
from rich.tree import Tree

from ..tasks.task_api import duration_seconds
from ..tasks.task_models import Task, TaskStatus
from ..tasks.task_store import TaskStore

STATUS_STYLE = {
    TaskStatus.PENDING: ("○", "grey50"),
    TaskStatus.RUNNING: ("◐", "yellow"),
    TaskStatus.COMPLETED: ("✓", "green"),
    TaskStatus.FAILED: ("✖", "red"),
}


def task_label(task: Task) -> str:
    symbol, style = STATUS_STYLE[task.status]
    label = f"[{style}]{symbol}[/] {escape(task.name)} [grey50](step {task.step_index + 1})[/]"
    took = duration_seconds(task)
    if took is not None:
        label += f" [grey50]{took:.2f}s[/]"
    if task.status == TaskStatus.FAILED and task.error is not None:
        label += f"\n[red]{type(task.error).__name__}: {escape(str(task.error))}[/]"
    return label


def build_task_tree(store: TaskStore, title: str = "Tasks") -> Tree:
    tree = Tree(f"[bold]{title}[/]")

    def _add(node: Tree, task: Task) -> None:
        branch = node.add(task_label(task))
        for child in store.children_of(task.id):
            _add(branch, child)

    for root_id in store.root_task_ids:
        task = store.get(root_id)
        if task is not None:
            _add(tree, task)
    return tree
