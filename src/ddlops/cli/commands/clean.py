"""Command for post-processing exported DDL files."""

from pathlib import Path

import typer

from ddlops.cli.common.exits import exit_from_exc, exit_if_failed, warn_exit
from ddlops.cli.common.options import DryRunOpt
from ddlops.cli.common.output import out
from ddlops.core.cleaner import clean_folder
from ddlops.core.config import load_settings


def clean(
    folder: Path | None = typer.Argument(
        None,
        help="Folder with exported .sql files (default: DDLOPS_CLEAN_DIR or the built-in folder)",
        show_default=False,
    ),
    dry_run: bool = DryRunOpt,
):
    """
    Comment out CREATE ROLE and ALTER DATABASE lines in every .sql file of a folder.
    """
    target = folder or load_settings().clean_dir

    try:
        with out.status(f"Cleaning {target}..."):
            results = clean_folder(target, dry_run=dry_run)
    except FileNotFoundError as exc:
        exit_from_exc(exc, message=str(exc), code=1)

    if not results:
        warn_exit(f"No .sql files found in '{target}'", code=0)

    out.clean_results_table(results, title=f"Cleaned files ({target})")

    exit_if_failed(
        sum(1 for r in results if not r.ok), len(results), "file(s) could not be cleaned"
    )

    if dry_run:
        warn_exit("Dry-run enabled: no files were modified", code=0)

    out.success(f"Processed {len(results)} file(s)")
