"""Common CLI options for the CLI."""

import typer

PASSWORD_ENV = "DDLOPS_SQL_PASSWORD"

SqlPasswordOpt = typer.Option(
    None,
    "--sql-password",
    envvar=PASSWORD_ENV,
    show_envvar=True,
    show_default=False,
    help="SQL Server Authentication password (used together with the user name)",
)

DryRunOpt = typer.Option(
    False,
    "--dry-run",
    help="Show what would be done, but don't change anything",
)

ConfirmOpt = typer.Option(
    False,
    "--confirm/--no-confirm",
    help="Ask for confirmation before executing",
)

VerboseOpt = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Enable debug logging",
)
