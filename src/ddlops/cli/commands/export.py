"""Command for exporting SQL Server schemas to DDL files."""

from pathlib import Path

import typer

from ddlops.cli.common.context import build_export_context
from ddlops.cli.common.exits import exit_from_exc, exit_if_failed
from ddlops.cli.common.options import SqlPasswordOpt
from ddlops.cli.common.output import out
from ddlops.core.config import load_settings
from ddlops.core.export import export_servers
from ddlops.core.models import EntryStatus, ServerTarget
from ddlops.core.report import write_html, write_log
from ddlops.core.servers import InputError, resolve_server_names


def export(
    sql_server_instance: list[str] = typer.Option(
        [],
        "--sql-server-instance",
        "-s",
        help="Server or host\\instance to export (repeatable or comma-separated)",
        show_default=False,
    ),
    input_file: Path | None = typer.Option(
        None,
        "--input-file",
        "-i",
        help="CSV file with a ServerName column",
    ),
    output_directory: Path = typer.Option(
        ...,
        "--output-directory",
        "-o",
        help="Folder for the DDL files, run log and HTML summary",
    ),
    sql_user: str | None = typer.Option(
        None,
        "--sql-user",
        "-u",
        help="SQL Server Authentication login (Windows Authentication when omitted)",
    ),
    sql_password: str | None = SqlPasswordOpt,
):
    """
    Export the schema of every user database to one DDL file per database.
    """
    settings = load_settings()
    appctx = build_export_context(settings)

    try:
        names = resolve_server_names(sql_server_instance, input_file)
    except InputError as exc:
        exit_from_exc(exc, message=str(exc), code=1)

    try:
        output_directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        exit_from_exc(
            exc, message=f"Cannot create output directory '{output_directory}': {exc}", code=1
        )

    if bool(sql_user) != bool(sql_password):
        out.warn(
            "Both --sql-user and --sql-password are needed for SQL Server "
            "Authentication; using Windows Authentication."
        )
    targets = [ServerTarget(name=n, username=sql_user, password=sql_password) for n in names]

    out.header("Schema export")
    out.kv(
        {
            "Servers": len(targets),
            "Output": output_directory,
            "Authentication": "SQL Server" if targets[0].uses_sql_auth else "Windows",
        }
    )

    report = export_servers(targets, output_directory, appctx.connect, on_entry=out.entry)

    try:
        log_path = write_log(report, output_directory)
        html_path = write_html(report, output_directory, log_path)
    except OSError as exc:
        exit_from_exc(exc, message=f"Could not write the run report: {exc}", code=1)

    out.summary_table(report)
    out.info(f"Log file: {log_path}")
    out.info(f"HTML summary: {html_path}")

    exit_if_failed(
        report.count(EntryStatus.FAILURE), len(report.entries), "run entries are failures"
    )

    out.success(f"Exported {report.count(EntryStatus.SUCCESS)} database(s)")
