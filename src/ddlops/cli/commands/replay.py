"""Command for executing DDL files against a target server."""

from pathlib import Path

import typer

from ddlops.cli.common.context import build_replay_context
from ddlops.cli.common.exits import die, exit_if_failed, ok_exit, warn_exit
from ddlops.cli.common.options import ConfirmOpt, DryRunOpt, SqlPasswordOpt
from ddlops.cli.common.output import out
from ddlops.core.cleaner import list_sql_files
from ddlops.core.config import load_settings
from ddlops.core.models import ReplayResult
from ddlops.core.replay import replay_directory


def _report_result(result: ReplayResult) -> None:
    if result.ok:
        out.success(f"{result.path.name} executed successfully")
    elif result.error:
        out.error(f"{result.path.name} could not be executed: {result.error}")
    else:
        out.error(f"{result.path.name} failed (exit code {result.exit_code})")


def replay(
    sql_directory: Path = typer.Option(
        ..., "--sql-directory", "-d", help="Folder with the .sql files to execute"
    ),
    server_name: str = typer.Option(..., "--server-name", "-S", help="Target server"),
    database_name: str = typer.Option(
        ..., "--database-name", "-D", help="Target database"
    ),
    sql_username: str | None = typer.Option(
        None,
        "--sql-username",
        "-u",
        help="SQL Server Authentication login (Integrated Security when omitted)",
    ),
    sql_password: str | None = SqlPasswordOpt,
    dry_run: bool = DryRunOpt,
    confirm: bool = ConfirmOpt,
):
    """
    Execute every .sql file of a folder, in name order, with sqlcmd.
    """
    appctx = build_replay_context(load_settings())

    if not sql_directory.is_dir():
        die(f"Directory '{sql_directory}' does not exist.", code=1)

    files = list_sql_files(sql_directory)
    if not files:
        warn_exit(f"No .sql files found in '{sql_directory}'", code=0)

    sql_auth = bool(sql_username) and bool(sql_password)
    out.header("Schema replay")
    out.kv(
        {
            "Server": server_name,
            "Database": database_name,
            "Files": len(files),
            "Authentication": "SQL Server" if sql_auth else "Windows Integrated Security",
        }
    )

    if dry_run:
        for f in files:
            out.info(f.name)
        warn_exit("Dry-run enabled: no files were executed", code=0)

    if confirm and not out.confirm(
        f"Execute {len(files)} file(s) against {server_name}/{database_name}?"
    ):
        ok_exit("Cancelled")

    results = replay_directory(
        appctx.runner,
        appctx.sqlcmd,
        sql_directory,
        server_name,
        database_name,
        username=sql_username,
        password=sql_password,
        on_start=lambda p: out.info(f"Executing {p.name}"),
        on_result=_report_result,
        on_output=out.passthrough,
    )

    out.replay_results_table(results)

    exit_if_failed(sum(1 for r in results if not r.ok), len(results), "file(s) failed")

    out.success(f"All {len(results)} file(s) executed successfully")
