"""Application context management for the CLI."""

from dataclasses import dataclass

from ddlops.cli.common.exits import die, exit_from_exc
from ddlops.core.adapters.subprocess_runner import SubprocessRunner
from ddlops.core.config import Settings
from ddlops.core.export import Connector
from ddlops.core.replay import CommandRunner, find_sqlcmd


@dataclass
class ExportAppContext:
    """Application context holding settings and the server connector."""

    settings: Settings
    connect: Connector


@dataclass
class ReplayAppContext:
    """Application context holding settings, the resolved sqlcmd path and a runner."""

    settings: Settings
    sqlcmd: str
    runner: CommandRunner


def build_export_context(settings: Settings) -> ExportAppContext:
    """
    Build the export context, failing fast when pyodbc is unavailable.

    Returns:
        ExportAppContext: Context whose `connect` opens a pyodbc-backed catalog.
    """
    try:
        from ddlops.core.adapters.mssql import MssqlSchemaCatalog
    except ImportError as exc:
        exit_from_exc(
            exc,
            message=f"pyodbc is required for schema export but could not be loaded: {exc}",
            code=1,
        )

    def connect(target):
        return MssqlSchemaCatalog.connect(target, settings)

    return ExportAppContext(settings=settings, connect=connect)


def build_replay_context(settings: Settings) -> ReplayAppContext:
    """Build the replay context; exits when the sqlcmd client is not on PATH."""
    sqlcmd = find_sqlcmd(settings.sqlcmd)
    if sqlcmd is None:
        die(
            f"'{settings.sqlcmd}' was not found on PATH. Install the sqlcmd utility "
            "or point DDLOPS_SQLCMD at it.",
            code=1,
        )
    return ReplayAppContext(settings=settings, sqlcmd=sqlcmd, runner=SubprocessRunner())
