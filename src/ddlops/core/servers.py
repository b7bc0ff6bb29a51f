"""Server list resolution and output naming for the exporter."""

from __future__ import annotations

import csv
import re
from pathlib import Path
from typing import Iterable

SERVER_NAME_COLUMN = "ServerName"

_UNSAFE_PATH_CHARS = re.compile(r"[\\/:]")


class InputError(ValueError):
    """Raised when the exporter's server input cannot be resolved."""


def read_server_csv(path: Path) -> list[str]:
    """
    Read server names from the `ServerName` column of a CSV file.

    Other columns are ignored. Values are trimmed and blank values dropped,
    so they never reach the per-server loop.
    """
    try:
        with path.open(newline="", encoding="utf-8-sig") as fh:
            reader = csv.DictReader(fh)
            fields = [(f or "").strip() for f in (reader.fieldnames or [])]
            if SERVER_NAME_COLUMN not in fields:
                raise InputError(
                    f"CSV file '{path}' has no '{SERVER_NAME_COLUMN}' column."
                )
            column = (reader.fieldnames or [])[fields.index(SERVER_NAME_COLUMN)]
            names = [(row.get(column) or "").strip() for row in reader]
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise InputError(f"Could not read CSV file '{path}': {exc}") from exc
    return [n for n in names if n]


def split_instances(values: Iterable[str]) -> list[str]:
    """Split comma-separated instance arguments; entries are not trimmed."""
    names: list[str] = []
    for value in values:
        names.extend(value.split(","))
    return names


def resolve_server_names(
    instances: Iterable[str] | None,
    input_file: Path | None,
) -> list[str]:
    """
    Return the servers to process from exactly one input source.

    Raises:
        InputError: If neither or both sources are given, the CSV cannot be
                    used, or the resolved list is empty.
    """
    given = list(instances or [])
    if given and input_file is not None:
        raise InputError("Provide either --sql-server-instance or --input-file, not both.")
    if not given and input_file is None:
        raise InputError("Provide either --sql-server-instance or --input-file.")

    names = read_server_csv(input_file) if input_file is not None else split_instances(given)
    if not names:
        raise InputError("No server names to process.")
    return names


def sanitize_server_name(name: str) -> str:
    """Make a server/instance name safe to use in a file name."""
    return _UNSAFE_PATH_CHARS.sub("_", name.strip())


def schema_file_path(output_dir: Path, server: str, database: str) -> Path:
    """Path of one database's DDL file; both names are made path-safe."""
    return output_dir / f"{sanitize_server_name(server)}_{sanitize_server_name(database)}_DDL.sql"
