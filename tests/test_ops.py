# tests/test_ops.py

from __future__ import annotations

import io
import json
from pathlib import Path

import httpx
import pytest
from rich.console import Console

from stepscript.core.context import ExecutionContext, use_context
from stepscript.errors import (
    CommandFailedError,
    OutsideContextError,
    PromptCancelledError,
    PromptValidationError,
)
from stepscript.ops.fetch import Fetch
from stepscript.ops.files import FileReader, FileWriter, encode_content
from stepscript.ops.log import Log, LogSuccess, format_table, log_group
from stepscript.ops.process import PackageScript, Process
from stepscript.ops.prompt import Prompt
from stepscript.ops.shell import Shell
from stepscript.ops.transform import Filter, Map, Transform
from stepscript.tasks.task_models import TaskStatus
from stepscript.tasks.task_store import TaskStore

from .fakes import GatedOperation, Instant, settle


async def run_op(op, context: ExecutionContext):
    op.activate(context)
    await op.wait()
    return op


# ---- base lifecycle ----


@pytest.mark.asyncio
async def test_activate_without_context_raises() -> None:
    with pytest.raises(OutsideContextError):
        Instant(1).activate()


@pytest.mark.asyncio
async def test_activate_uses_bound_context(context: ExecutionContext, store: TaskStore) -> None:
    op = Instant(1)
    with use_context(context):
        op.activate()
    await op.wait()

    assert op.succeeded
    assert store.get(op.task_id).name == "instant 1"


@pytest.mark.asyncio
async def test_activate_twice_registers_one_task(context: ExecutionContext, store: TaskStore) -> None:
    op = Instant(1)
    first = op.activate(context)
    second = op.activate(context)
    await op.wait()

    assert first == second
    assert len(store.tasks) == 1


@pytest.mark.asyncio
async def test_success_callback_and_then_branch(context: ExecutionContext, store: TaskStore) -> None:
    seen: list[object] = []
    child = Instant("child")
    op = Instant(7, on_success=seen.append, then=lambda value: child if value == 7 else None)
    await run_op(op, context)

    assert seen == [7]
    assert op.children == [child]
    assert store.get(child.task_id).parent_id == op.task_id
    assert child.succeeded


@pytest.mark.asyncio
async def test_failure_runs_error_branch(context: ExecutionContext, store: TaskStore) -> None:
    errors: list[BaseException] = []
    report = Instant("reported")
    op = Shell("exit 3", shell="/bin/sh", on_error=errors.append, otherwise=lambda exc: report)
    await run_op(op, context)

    assert op.failed
    assert isinstance(op.error, CommandFailedError)
    assert op.error.exit_code == 3
    assert errors == [op.error]
    assert store.get(report.task_id).parent_id == op.task_id
    assert report.succeeded


@pytest.mark.asyncio
async def test_deactivate_drops_children(context: ExecutionContext) -> None:
    child = Instant("child")
    op = Instant(1, then=lambda _v: child)
    await run_op(op, context)

    op.deactivate()
    assert not op.active
    assert not child.active
    assert op.children == []


@pytest.mark.asyncio
async def test_stale_driver_leaves_new_activation_alone(context: ExecutionContext, store: TaskStore) -> None:
    op = GatedOperation()
    first_id = op.activate(context)
    await settle()
    op.deactivate()
    second_id = op.activate(context)
    await settle()
    assert len(op.gates) == 2

    op.gates[0].set_result("old")
    await settle()

    assert store.get(first_id).status == TaskStatus.COMPLETED
    assert op.task_id == second_id
    assert op.loading
    assert op.result is None
    assert op.status == TaskStatus.RUNNING

    op.gates[1].set_result("new")
    await op.wait()
    assert op.result == "new"
    assert op.succeeded


# ---- shell / process ----


@pytest.mark.asyncio
async def test_shell_collects_output(context: ExecutionContext) -> None:
    op = await run_op(Shell("echo hello; echo oops >&2", shell="/bin/sh"), context)

    assert op.succeeded
    assert op.result.stdout.strip() == "hello"
    assert op.result.stderr.strip() == "oops"
    assert op.result.exit_code == 0


@pytest.mark.asyncio
async def test_shell_stream_mode_forwards_chunks(context: ExecutionContext, tmp_path: Path) -> None:
    chunks: list[str] = []
    op = Shell(
        "printf 'a\\nb\\n'",
        shell="/bin/sh",
        cwd=tmp_path,
        env={"STEPSCRIPT_TEST": "1"},
        mode="stream",
        on_stdout=chunks.append,
    )
    await run_op(op, context)

    assert "".join(chunks) == "a\nb\n"
    assert op.result.stdout == "a\nb\n"


@pytest.mark.asyncio
async def test_shell_uses_env_and_cwd(context: ExecutionContext, tmp_path: Path) -> None:
    op = Shell('echo "$GREETING"; pwd', shell="/bin/sh", cwd=tmp_path, env={"GREETING": "hi"})
    await run_op(op, context)

    lines = op.result.stdout.splitlines()
    assert lines[0] == "hi"
    assert Path(lines[1]).resolve() == tmp_path.resolve()


def test_shell_describe_truncates_command() -> None:
    assert Shell("git branch --merged main").describe() == "Shell: git branch --merged ..."


@pytest.mark.asyncio
async def test_process_runs_without_shell(context: ExecutionContext) -> None:
    op = await run_op(Process("echo", ["a b", "c"]), context)

    assert op.result == "a b c\n"
    assert op.command_line == "echo 'a b' c"


@pytest.mark.asyncio
async def test_process_nonzero_exit_fails(context: ExecutionContext) -> None:
    op = await run_op(Process("sh", ["-c", "exit 2"]), context)

    assert op.status == TaskStatus.FAILED
    assert op.error.exit_code == 2


def test_package_script_command_line() -> None:
    op = PackageScript("build", package_manager="pnpm", flags=["--silent"])
    assert op.command_line == "pnpm run build --silent"
    assert op.describe() == "pnpm run build"

    with pytest.raises(ValueError):
        PackageScript("build", package_manager="pip")  # type: ignore[arg-type]


# ---- files ----


@pytest.mark.asyncio
async def test_write_then_read_json(context: ExecutionContext, tmp_path: Path) -> None:
    target = tmp_path / "nested" / "data.json"
    writer = await run_op(FileWriter(target, {"a": 1}, format="json", create_directory=True), context)

    assert writer.result == target.resolve()
    assert target.read_text(encoding="utf-8") == json.dumps({"a": 1}, indent=2)

    reader = await run_op(FileReader(target, format="json"), context)
    assert reader.result == {"a": 1}


@pytest.mark.asyncio
async def test_writer_transform_and_relative_path(
    context: ExecutionContext, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    await run_op(FileWriter("out.txt", "hello", transform=str.upper), context)
    assert (tmp_path / "out.txt").read_text(encoding="utf-8") == "HELLO"


@pytest.mark.asyncio
async def test_reader_base64_and_missing_file(context: ExecutionContext, tmp_path: Path) -> None:
    (tmp_path / "bin").write_bytes(b"\x00\x01")
    ok = await run_op(FileReader(tmp_path / "bin", format="base64"), context)
    assert ok.result == "AAE="

    missing = await run_op(FileReader(tmp_path / "missing.txt"), context)
    assert missing.failed
    assert isinstance(missing.error, FileNotFoundError)


@pytest.mark.asyncio
async def test_writer_without_directory_fails(context: ExecutionContext, tmp_path: Path) -> None:
    op = await run_op(FileWriter(tmp_path / "no" / "such" / "f.txt", "x"), context)
    assert op.failed


@pytest.mark.asyncio
async def test_writer_binary_accepts_text_and_bytes(context: ExecutionContext, tmp_path: Path) -> None:
    text_target = tmp_path / "text.bin"
    await run_op(FileWriter(text_target, "h\u00e9", format="binary", encoding="latin-1"), context)
    assert text_target.read_bytes() == b"h\xe9"

    raw_target = tmp_path / "raw.bin"
    await run_op(FileWriter(raw_target, b"\x00\xff", format="binary"), context)
    assert raw_target.read_bytes() == b"\x00\xff"

    assert encode_content("abc", "binary") == b"abc"


# ---- prompt ----


@pytest.mark.asyncio
async def test_prompt_returns_answer_or_default(context: ExecutionContext) -> None:
    asked: list[str] = []

    def answer(question: str) -> str:
        asked.append(question)
        return "  "

    op = await run_op(Prompt("Branch", default="main", input_func=answer), context)
    assert op.result == "main"
    assert asked == ["Branch (main): "]


@pytest.mark.asyncio
async def test_prompt_empty_answer_cancels(context: ExecutionContext) -> None:
    cancelled: list[bool] = []
    op = Prompt("Name", input_func=lambda _q: "", on_cancel=lambda: cancelled.append(True))
    await run_op(op, context)

    assert op.succeeded
    assert op.result is None
    assert cancelled == [True]


@pytest.mark.asyncio
async def test_prompt_validation(context: ExecutionContext) -> None:
    op = Prompt("Port", input_func=lambda _q: "abc", validate=lambda v: v.isdigit() or "Port must be a number")
    await run_op(op, context)

    assert isinstance(op.error, PromptValidationError)
    assert str(op.error) == "Port must be a number"


@pytest.mark.asyncio
async def test_prompt_eof_is_cancellation(context: ExecutionContext) -> None:
    def closed(_q: str) -> str:
        raise EOFError

    op = await run_op(Prompt("Name", input_func=closed), context)
    assert isinstance(op.error, PromptCancelledError)


# ---- transform ----


@pytest.mark.asyncio
async def test_transform_filter_map(context: ExecutionContext) -> None:
    async def double(values):
        return [v * 2 for v in values]

    t = await run_op(Transform(double, [1, 2]), context)
    f = await run_op(Filter(lambda v: v % 2, [1, 2, 3]), context)
    m = await run_op(Map(str.strip, [" a ", "b "]), context)

    assert t.result == [2, 4]
    assert f.result == [1, 3]
    assert m.result == ["a", "b"]
    assert t.describe() == "Transform: double"
    assert Transform(lambda v: v).describe() == "Transform: anonymous"


@pytest.mark.asyncio
async def test_transform_error_fails_task(context: ExecutionContext) -> None:
    op = await run_op(Transform(lambda v: 1 / v, 0), context)
    assert isinstance(op.error, ZeroDivisionError)


# ---- fetch ----


@pytest.mark.asyncio
async def test_fetch_decodes_json(context: ExecutionContext) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        return httpx.Response(200, json={"items": [1, 2]})

    op = Fetch("https://example.test/items", transport=httpx.MockTransport(handler))
    await run_op(op, context)
    assert op.result == {"items": [1, 2]}


@pytest.mark.asyncio
async def test_fetch_invalid_body_fails(context: ExecutionContext) -> None:
    transport = httpx.MockTransport(lambda _r: httpx.Response(500, text="oops"))
    op = await run_op(Fetch("https://example.test/broken", transport=transport), context)
    assert op.failed


# ---- log ----


def _capture() -> tuple[Console, io.StringIO]:
    buf = io.StringIO()
    return Console(file=buf, force_terminal=False, width=200), buf


@pytest.mark.asyncio
async def test_log_prints_prefixed_line(context: ExecutionContext) -> None:
    console, buf = _capture()
    op = await run_op(LogSuccess("deployed", timestamp=False, console=console), context)

    assert op.result == "✓ deployed"
    assert buf.getvalue().strip() == "✓ deployed"


@pytest.mark.asyncio
async def test_log_empty_content_prints_nothing(context: ExecutionContext) -> None:
    console, buf = _capture()
    op = await run_op(Log("", console=console), context)

    assert op.succeeded
    assert op.result is None
    assert buf.getvalue() == ""


def test_log_json_and_table_formats() -> None:
    line = Log({"a": 1}, format="json", timestamp=False, prefix="").render().plain
    assert json.loads(line) == {"a": 1}

    assert format_table([{"name": "x", "n": 10}, {"name": "long", "n": None}]) == (
        "name | n \n-----+---\nx    | 10\nlong |   "
    )


def test_log_group_indents_members() -> None:
    inner = Log("child")
    ops = log_group("Build", inner, indent=1)
    assert isinstance(ops[0], Log) and ops[0].content == "▼ Build"
    assert inner.indent == 2

    collapsed = log_group("Build", Log("hidden"), collapsed=True)
    assert [op.content for op in collapsed] == ["▶ Build"]
