"""Run sqlcmd (or any command) as a child process, streaming its output."""

from __future__ import annotations

import subprocess
from typing import Sequence

from ddlops.core.models import CommandResult
from ddlops.core.replay import OutputSink


class SubprocessRunner:
    """Run external commands, streaming their console output as it arrives."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def run(self, args: Sequence[str], on_output: OutputSink | None = None) -> CommandResult:
        """
        Run a command to completion.

        stderr is folded into stdout so the client's messages keep their
        order; `stderr` on the result is therefore always empty.
        """
        captured: list[str] = []
        with subprocess.Popen(
            list(args),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            text=True,
            encoding=self.encoding,
            errors="replace",
        ) as proc:
            if proc.stdout is None:
                raise RuntimeError(f"No output pipe for {args[0]}")
            for line in proc.stdout:
                captured.append(line)
                if on_output is not None:
                    on_output(line.rstrip("\r\n"))
            exit_code = proc.wait()
        return CommandResult(exit_code=exit_code, stdout="".join(captured), stderr="")
