"""CLI application for SQL Server schema export tooling."""

import typer

from ddlops.cli.commands.clean import clean
from ddlops.cli.commands.export import export
from ddlops.cli.commands.replay import replay
from ddlops.cli.common.options import VerboseOpt
from ddlops.cli.common.output import configure_logging

app = typer.Typer(
    help="ddlops - export, clean and replay SQL Server schema scripts",
    no_args_is_help=True,
)


@app.callback()
def _init(verbose: bool = VerboseOpt):
    """Configure logging once per invocation."""
    configure_logging(verbose)


app.command("export")(export)
app.command("clean")(clean)
app.command("replay")(replay)


if __name__ == "__main__":
    app()
