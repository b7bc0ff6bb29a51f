"""Post-processing of exported schema files.

Database-creation settings and role creation are environment specific, so
those statements are commented out rather than removed: the original text
stays in the file for manual inspection.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from ddlops.core.models import CleanResult

log = logging.getLogger(__name__)

COMMENT_MARKER = "-- "
_BOM = "\ufeff"
_COMMENT_OUT = re.compile(r"^\s*(CREATE ROLE|ALTER DATABASE)", re.IGNORECASE)


def comment_out_line(line: str) -> str:
    """
    Prefix the line with `-- ` when it starts a CREATE ROLE or ALTER DATABASE.

    Leading whitespace and letter case are ignored. Lines that are already
    commented never match again.
    """
    if _COMMENT_OUT.match(line):
        return COMMENT_MARKER + line
    return line


def clean_text(text: str) -> tuple[str, int]:
    """Return the cleaned text and the number of lines commented out."""
    changed = 0
    out: list[str] = []
    for line in text.splitlines(keepends=True):
        new = comment_out_line(line)
        if new != line:
            changed += 1
        out.append(new)
    return "".join(out), changed


def list_sql_files(folder: Path) -> list[Path]:
    """`.sql` files directly inside `folder` (case-insensitive), in name order."""
    files = [p for p in folder.iterdir() if p.is_file() and p.suffix.lower() == ".sql"]
    return sorted(files, key=lambda p: p.name.lower())


def clean_file(path: Path, *, dry_run: bool = False) -> CleanResult:
    """
    Comment out matching lines of one file, in place.

    Line endings and a UTF-8 byte order mark are preserved. The file is only
    rewritten when something changed.
    """
    try:
        with path.open(encoding="utf-8", newline="") as fh:
            text = fh.read()
        has_bom = text.startswith(_BOM)
        cleaned, changed = clean_text(text[1:] if has_bom else text)
        if changed and not dry_run:
            with path.open("w", encoding="utf-8", newline="") as fh:
                fh.write((_BOM if has_bom else "") + cleaned)
    except (OSError, UnicodeDecodeError) as exc:
        log.debug("Cleaning %s failed", path, exc_info=True)
        return CleanResult(path=path, error=str(exc))
    return CleanResult(path=path, commented=changed, written=bool(changed) and not dry_run)


def clean_folder(folder: Path, *, dry_run: bool = False) -> list[CleanResult]:
    """
    Clean every `.sql` file directly inside `folder`.

    Raises:
        FileNotFoundError: If the folder does not exist; no file is touched.
    """
    if not folder.is_dir():
        raise FileNotFoundError(f"Folder '{folder}' does not exist.")
    return [clean_file(p, dry_run=dry_run) for p in list_sql_files(folder)]
