"""Replay of schema files against a target server through sqlcmd.

Files run strictly in name order, one process at a time. Each file's outcome
is judged only by the client's exit code; SQL error text is left to the
client's own console output. There is no abort-on-first-error mode and no
rollback.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Callable, Protocol, Sequence

from ddlops.core.cleaner import list_sql_files
from ddlops.core.models import CommandResult, ReplayResult

log = logging.getLogger(__name__)

OutputSink = Callable[[str], None]


class CommandRunner(Protocol):
    """Interface for running an external command to completion."""

    def run(self, args: Sequence[str], on_output: OutputSink | None = None) -> CommandResult:
        """Run `args`, streaming output lines to `on_output`, and wait for exit."""
        ...


def find_sqlcmd(executable: str) -> str | None:
    """Return the full path of the sqlcmd client, or None if it is not on PATH."""
    return shutil.which(executable)


def build_sqlcmd_args(
    sqlcmd: str,
    server: str,
    database: str,
    script: Path,
    *,
    username: str | None = None,
    password: str | None = None,
) -> list[str]:
    """
    Build the sqlcmd argument list for one file.

    Every batch of the file runs even after one fails, since `-b` is not
    passed. `-f 65001` reads the input file as UTF-8. SQL Authentication is
    used only when both username and password are given, Integrated
    Security otherwise.
    """
    args = [sqlcmd, "-S", server, "-d", database, "-i", str(script), "-f", "65001"]
    if username and password:
        args.extend(["-U", username, "-P", password])
    else:
        args.append("-E")
    return args


def masked(args: Sequence[str]) -> list[str]:
    """Return a copy of sqlcmd args with the password value hidden."""
    out = list(args)
    for i, arg in enumerate(out[:-1]):
        if arg == "-P":
            out[i + 1] = "***"
    return out


def replay_file(
    runner: CommandRunner,
    args: Sequence[str],
    script: Path,
    on_output: OutputSink | None = None,
) -> ReplayResult:
    """Run one file; a runner exception counts as that file's failure."""
    log.debug("Running %s", " ".join(masked(args)))
    try:
        result = runner.run(args, on_output)
    except OSError as exc:
        log.debug("Could not start client for %s", script, exc_info=True)
        return ReplayResult(path=script, exit_code=-1, error=str(exc))
    return ReplayResult(path=script, exit_code=result.exit_code)


def replay_directory(
    runner: CommandRunner,
    sqlcmd: str,
    directory: Path,
    server: str,
    database: str,
    *,
    username: str | None = None,
    password: str | None = None,
    on_start: Callable[[Path], None] | None = None,
    on_result: Callable[[ReplayResult], None] | None = None,
    on_output: OutputSink | None = None,
) -> list[ReplayResult]:
    """
    Execute every `.sql` file in `directory`, in name order.

    Processing always continues to the next file regardless of failures.
    """
    results: list[ReplayResult] = []
    for script in list_sql_files(directory):
        if on_start is not None:
            on_start(script)
        args = build_sqlcmd_args(
            sqlcmd, server, database, script, username=username, password=password
        )
        result = replay_file(runner, args, script, on_output)
        results.append(result)
        if on_result is not None:
            on_result(result)
    return results
