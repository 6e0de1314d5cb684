# examples/build_report.py
#
# Run with:  stepscript examples/build_report.py --tree

from stepscript.core.steps import step
from stepscript.ops.files import FileReader, FileWriter
from stepscript.ops.log import LogError, LogSuccess, log_group
from stepscript.ops.shell import Shell
from stepscript.ops.transform import Map


def _summary(lines):
    return Map(str.upper, lines, then=lambda upper: FileWriter(
        ".local/report.json", {"branches": upper}, format="json", create_directory=True,
        then=lambda path: LogSuccess(f"report written to {path}"),
    ))


def build_steps():
    return [
        step(*log_group("Environment", LogSuccess("starting", timestamp=False)), label="intro"),
        step(
            Shell(
                "git branch --format='%(refname:short)'",
                then=lambda res: _summary(res.stdout.split()),
                otherwise=lambda exc: LogError(f"git failed: {exc}"),
            ),
            label="collect branches",
        ),
        step(FileReader(".local/report.json", format="json"), label="verify report"),
    ]
