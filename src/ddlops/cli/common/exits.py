"""
Exit handling for the ddlops commands.

Exit code 0 means the command finished, or had nothing to do (no `.sql`
files, a dry run, a declined confirmation). Exit code 1 means a setup
error stopped the command before any work, or at least one server,
database or file failed.
"""

from typing import NoReturn

import typer

from ddlops.cli.common.output import out


def ok_exit(msg: str | None = None) -> NoReturn:
    """Stop with code 0, e.g. when the operator declines to go on."""
    if msg:
        out.info(msg)
    raise typer.Exit(0)


def die(msg: str, code: int = 1) -> NoReturn:
    """Stop before any work is done: a missing directory or missing sqlcmd."""
    out.error(msg)
    raise typer.Exit(code)


def warn_exit(msg: str, code: int = 0) -> NoReturn:
    """Stop with a warning; used for empty folders and dry runs."""
    out.warn(msg)
    raise typer.Exit(code)


def exit_from_exc(exc: Exception, *, message: str, code: int = 1) -> NoReturn:
    """Report a setup error caught in an `except` block and stop, keeping `exc` as the cause."""
    out.error(message)
    raise typer.Exit(code) from exc


def exit_if_failed(failed: int, total: int, what: str) -> None:
    """
    Exit 1 once a run is over if any of its units failed.

    Called after every server, file or database has been attempted and the
    reports are written, so one failure never cuts a run short.
    """
    if failed:
        out.error(f"{failed} of {total} {what}")
        raise typer.Exit(1)
