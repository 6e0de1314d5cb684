# tests/test_sequencer.py

from __future__ import annotations

import asyncio

import pytest

from stepscript.core.sequencer import StepSequencer
from stepscript.core.steps import OperationStep
from stepscript.tasks.task_models import TaskState, TaskStatus
from stepscript.tasks.task_store import TaskStore

from .fakes import FakeStep, Instant, ManualOperation, settle


@pytest.mark.asyncio
async def test_advances_after_step_completes(store: TaskStore) -> None:
    a, b = FakeStep("A"), FakeStep("B")
    seq = StepSequencer([a, b], store)
    moves: list[tuple[int, int]] = []
    seq.add_listener(lambda old, new: moves.append((old, new)))

    seq.start()
    await settle()
    assert seq.current_index == 0
    assert b.mounts == 0

    a.complete_all()
    await settle()

    assert seq.current_index == 1
    assert (a.unmounts, b.mounts) == (1, 1)
    assert all(store.get(tid).step_index == 1 for tid in b.task_ids)
    assert moves == [(0, 1)]
    seq.stop()


@pytest.mark.asyncio
async def test_next_step_registers_only_after_all_tasks_complete(store: TaskStore) -> None:
    a, b = FakeStep("A", ("x", "y")), FakeStep("B")
    seq = StepSequencer([a, b], store)
    violations: list[str] = []

    def check(state: TaskState) -> None:
        step0 = [t for t in state.tasks.values() if t.step_index == 0]
        if any(t.step_index == 1 for t in state.tasks.values()):
            if not all(t.status == TaskStatus.COMPLETED for t in step0):
                violations.append("step 1 registered early")

    store.subscribe(check)
    seq.start()
    await settle()

    a.context.complete_task(a.task_ids[0])
    await settle()
    assert seq.current_index == 0

    a.context.complete_task(a.task_ids[1])
    await settle()
    assert seq.current_index == 1
    assert violations == []
    seq.stop()


@pytest.mark.asyncio
async def test_partial_completion_does_not_advance(store: TaskStore) -> None:
    a = FakeStep("A", ("done", "pending"))
    seq = StepSequencer([a, FakeStep("B")], store)
    seq.start()
    a.context.complete_task(a.task_ids[0])
    await settle()

    assert not seq.is_step_complete(0)
    assert seq.current_index == 0
    seq.stop()


@pytest.mark.asyncio
async def test_failed_task_stalls_forever(store: TaskStore) -> None:
    a = FakeStep("A")
    seq = StepSequencer([a, FakeStep("B")], store)
    seq.start()
    a.fail_first()
    await settle()

    for _ in range(100):
        assert seq.evaluate() is False
    assert seq.current_index == 0
    assert not seq.finished
    seq.stop()


@pytest.mark.asyncio
async def test_step_without_tasks_stalls_forever(store: TaskStore) -> None:
    empty = FakeStep("empty", task_names=())
    seq = StepSequencer([empty, FakeStep("B")], store)
    seq.start()
    await settle()

    for _ in range(100):
        seq.evaluate()
    assert seq.current_index == 0
    assert not seq.is_step_complete(0)
    seq.stop()


@pytest.mark.asyncio
async def test_advance_needs_two_consecutive_true_evaluations(store: TaskStore) -> None:
    a = FakeStep("A")
    seq = StepSequencer([a, FakeStep("B")], store)
    seq.start()
    await settle()

    # No loop turn between these calls, so only the direct evaluations count.
    a.complete_all()
    assert seq.evaluate() is False
    assert seq.current_index == 0
    assert seq.evaluate() is True
    assert seq.current_index == 1
    seq.stop()


@pytest.mark.asyncio
async def test_last_step_sets_finished(store: TaskStore) -> None:
    only = FakeStep("only")
    seq = StepSequencer([only], store)
    seq.start()
    only.complete_all()

    await asyncio.wait_for(seq.wait_finished(), timeout=1)
    assert seq.finished
    assert seq.current_index == 0
    seq.stop()


@pytest.mark.asyncio
async def test_empty_step_list_finishes_immediately(store: TaskStore) -> None:
    seq = StepSequencer([], store)
    seq.start()
    assert seq.finished
    assert seq.current_step is None


@pytest.mark.asyncio
async def test_reset_prunes_and_remounts_first_step(store: TaskStore) -> None:
    steps = [FakeStep("A"), FakeStep("B"), FakeStep("C")]
    seq = StepSequencer(steps, store)
    seq.start()
    for s in steps[:2]:
        await settle()
        s.complete_all()
    await settle()
    assert seq.current_index == 2
    old_ids = set(steps[0].task_ids)

    seq.reset(0)

    assert seq.current_index == 0
    assert not any(t.step_index > 0 for t in store.tasks.values())
    assert steps[0].mounts == 2
    assert steps[2].unmounts == 1
    assert not old_ids & set(steps[0].task_ids)
    seq.stop()


@pytest.mark.asyncio
async def test_reset_rejects_out_of_range_index(store: TaskStore) -> None:
    seq = StepSequencer([FakeStep("A")], store)
    with pytest.raises(IndexError):
        seq.reset(5)


@pytest.mark.asyncio
async def test_nested_operation_links_child_to_parent(store: TaskStore) -> None:
    child = Instant("c", label="child")
    parent = Instant("p", label="parent", then=lambda _value: child)
    seq = StepSequencer([OperationStep(parent), FakeStep("after")], store)
    seq.start()
    await parent.wait()
    parent_id, child_id = parent.task_id, child.task_id
    await settle()

    assert parent_id is not None and child_id is not None
    assert child_id in store.get(parent_id).child_ids
    assert child_id not in store.root_task_ids
    assert store.get(child_id).step_index == 0
    assert seq.current_index == 1
    seq.stop()


@pytest.mark.asyncio
async def test_step_waits_for_running_operation(store: TaskStore) -> None:
    slow = ManualOperation("slow")
    seq = StepSequencer([OperationStep(slow), FakeStep("after")], store)
    seq.start()
    await settle()
    assert store.get(slow.task_id).status == TaskStatus.RUNNING
    assert seq.current_index == 0

    slow.succeed("done")
    await slow.wait()
    await settle()

    assert slow.result == "done"
    assert seq.current_index == 1
    seq.stop()


@pytest.mark.asyncio
async def test_stop_unsubscribes_from_store(store: TaskStore) -> None:
    a = FakeStep("A")
    seq = StepSequencer([a, FakeStep("B")], store)
    seq.start()
    seq.stop()
    a.complete_all()
    await settle()

    assert seq.current_index == 0
    assert a.unmounts == 1


@pytest.mark.asyncio
async def test_raising_success_branch_fails_parent_and_stalls(store: TaskStore) -> None:
    parent = Instant("p", label="parent", then=lambda _value: 1 / 0)
    seq = StepSequencer([OperationStep(parent), FakeStep("after")], store)
    seq.start()
    await parent.wait()
    parent_id = parent.task_id
    await settle()

    assert store.has_failed(parent_id)
    assert isinstance(store.get(parent_id).error, ZeroDivisionError)
    assert parent.children == []
    for _ in range(10):
        seq.evaluate()
    assert seq.current_index == 0
    seq.stop()


@pytest.mark.asyncio
async def test_raising_error_branch_is_recorded_on_parent(store: TaskStore) -> None:
    def broken_branch(exc: BaseException):
        raise LookupError(f"no handler for {exc}")

    failing = ManualOperation("failing", otherwise=broken_branch)
    seq = StepSequencer([OperationStep(failing), FakeStep("after")], store)
    seq.start()
    await settle()
    failing.fail_with(ValueError("bad input"))
    await failing.wait()
    await settle()

    error = store.get(failing.task_id).error
    assert isinstance(error, LookupError)
    assert isinstance(error.__context__, ValueError)
    assert failing.error is error
    assert seq.current_index == 0
    seq.stop()
