"""Output formatting utilities for the CLI."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import questionary
from prompt_toolkit.styles import Style
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

from ddlops.core.models import CleanResult, EntryStatus, ReplayResult, RunReport, SummaryEntry

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
        "info": "cyan",
    }
)

_STATUS_STYLES = {
    EntryStatus.SUCCESS: "ok",
    EntryStatus.FAILURE: "err",
    EntryStatus.SKIP: "warn",
    EntryStatus.INFO: "info",
}

# Questionary prompt style (prompt_toolkit) for confirmations.
_CONFIRM_STYLE = Style.from_dict(
    {
        "qmark": "bold ansiyellow",
        "question": "bold ansibrightcyan",
        "answer": "bold ansibrightred",
        "instruction": "ansibrightblack",
        "error": "bold ansired",
    }
)

console = Console(theme=_THEME)


def configure_logging(verbose: bool = False) -> None:
    """Route library logging through Rich; DEBUG when verbose, else WARNING."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=verbose, markup=False)],
        force=True,
    )


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages and tables."""

    def _q_try(self, fn, *args, **kwargs):
        """Call questionary prompts and drop unsupported kwargs on older versions."""
        try:
            return fn(*args, **kwargs)
        except TypeError:
            for k in ("pointer", "auto_enter"):
                kwargs.pop(k, None)
            return fn(*args, **kwargs)

    def _q(self, message: str) -> str:
        """Prefix Questionary prompts to be DDLOPS consistent."""
        return f"[DDLOPS] {message}"

    def info(self, msg: str) -> None:
        """Print an info message."""
        console.print(f"[title]›[/] {msg}")

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        """Print a success message."""
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        """Print a warning message."""
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        """Print an error message."""
        console.print(f"[err]✗[/] {msg}")

    def header(self, title: str) -> None:
        """Print a header message."""
        console.print(f"[title]{title}[/]")

    def passthrough(self, line: str) -> None:
        """Echo a line of external tool output without markup interpretation."""
        console.print(line, markup=False, highlight=False)

    def kv(self, items: Mapping[str, Any]) -> None:
        """Print key-value pairs."""
        for k, v in items.items():
            console.print(f"[meta]{k}[/]: {escape(str(v))}")

    def confirm(self, message: str, *, default: bool = False) -> bool:
        """
        Ask the user for confirmation using a standardized Questionary prompt.

        Args:
            message: Confirmation question shown to the user.
            default: Default answer if the user just presses enter.

        Returns:
            True if the user confirms, False otherwise.
        """
        console.print("[meta]Use y/n then Enter[/]")

        prompt = self._q_try(
            questionary.confirm,
            self._q(message),
            default=default,
            style=_CONFIRM_STYLE,
            qmark="✦",
            auto_enter=False,
        )
        return bool(prompt.ask())

    def entry(self, entry: SummaryEntry) -> None:
        """Print one summary entry, colour-coded by status."""
        style = _STATUS_STYLES[entry.status]
        where = escape(entry.server or "-")
        if entry.database:
            where += f" / {escape(entry.database)}"
        line = f"[{style}]{entry.status.value:<7}[/{style}] {where}: {escape(entry.message)}"
        if entry.file_path:
            line += f" [meta]({escape(entry.file_path)})[/]"
        console.print(line)

    def summary_table(self, report: RunReport, title: str = "Export summary") -> None:
        """Render per-status totals of an export run."""
        t = Table(title=title, show_lines=False)
        t.add_column("Status")
        t.add_column("Count", justify="right")

        for status, count in report.counts().items():
            style = _STATUS_STYLES[status]
            t.add_row(f"[{style}]{status.value}[/{style}]", str(count))

        console.print(t)

    def clean_results_table(
        self, results: Iterable[CleanResult], title: str = "Cleaned files"
    ) -> None:
        """
        Expects objects with .path .commented .written and optional .error
        (e.g. ddlops.core.models.CleanResult)
        """
        t = Table(title=title, show_lines=False)
        t.add_column("File", style="ok")
        t.add_column("Commented", justify="right")
        t.add_column("Result")

        for r in results:
            if r.error:
                result = f"[err]FAIL[/] {escape(r.error)}"
            elif r.written:
                result = "[ok]UPDATED[/]"
            elif r.commented:
                result = "[warn]WOULD UPDATE[/]"
            else:
                result = "[meta]unchanged[/]"
            t.add_row(escape(r.path.name), str(r.commented), result)

        console.print(t)

    def replay_results_table(
        self, results: Iterable[ReplayResult], title: str = "Replay results"
    ) -> None:
        """Expects objects with .path .exit_code and optional .error."""
        t = Table(title=title, show_lines=False)
        t.add_column("File", style="ok")
        t.add_column("Exit code", justify="right")
        t.add_column("Result")

        for r in results:
            if r.ok:
                result = "[ok]SUCCESS[/]"
            else:
                detail = f" {escape(r.error)}" if r.error else ""
                result = f"[err]FAILURE[/]{detail}"
            t.add_row(escape(r.path.name), str(r.exit_code), result)

        console.print(t)


out = Out()
