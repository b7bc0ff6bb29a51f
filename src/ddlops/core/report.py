"""Run log and HTML summary rendering for the exporter.

Both artifacts are named from the run's start timestamp so repeated runs
in the same folder never overwrite each other.
"""

from __future__ import annotations

from datetime import datetime
from html import escape
from pathlib import Path

from ddlops.core.models import EntryStatus, RunReport, SummaryEntry

LOG_PREFIX = "SchemaExport_Log"
HTML_PREFIX = "SchemaExport_Summary"

_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
_FILE_STAMP_FORMAT = "%Y%m%d_%H%M%S"

_STATUS_COLORS = {
    EntryStatus.FAILURE: "#f8d7da",
    EntryStatus.SUCCESS: "#d4edda",
    EntryStatus.SKIP: "#fff3cd",
    EntryStatus.INFO: "#d1ecf1",
}

_HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
body {{ font-family: Segoe UI, Arial, sans-serif; margin: 24px; color: #212529; }}
h1 {{ font-size: 1.5em; }}
.meta {{ color: #6c757d; }}
table {{ border-collapse: collapse; width: 100%; margin-top: 16px; }}
th, td {{ border: 1px solid #dee2e6; padding: 6px 10px; text-align: left; vertical-align: top; }}
th {{ background: #343a40; color: #ffffff; }}
{status_css}
</style>
</head>
<body>
<h1>{title}</h1>
<p class="meta">Generated: {generated}</p>
<p class="meta">Log file: {log_path}</p>
<p class="meta">{totals}</p>
<table>
<thead>
<tr><th>Timestamp</th><th>Status</th><th>Server</th><th>Database</th><th>File Path</th><th>Message</th></tr>
</thead>
<tbody>
{rows}
</tbody>
</table>
</body>
</html>
"""


def status_class(status: EntryStatus) -> str:
    return f"status-{status.value.lower()}"


def file_stamp(report: RunReport) -> str:
    return report.started_at.strftime(_FILE_STAMP_FORMAT)


def log_path_for(report: RunReport, output_dir: Path) -> Path:
    return output_dir / f"{LOG_PREFIX}_{file_stamp(report)}.log"


def html_path_for(report: RunReport, output_dir: Path) -> Path:
    return output_dir / f"{HTML_PREFIX}_{file_stamp(report)}.html"


def format_log_line(entry: SummaryEntry) -> str:
    return (
        f"[{entry.timestamp.strftime(_TIMESTAMP_FORMAT)}] [{entry.status.value}] "
        f"Server: {entry.server} | Database: {entry.database} | "
        f"FilePath: {entry.file_path} | Message: {entry.message}"
    )


def write_log(report: RunReport, output_dir: Path) -> Path:
    """Write one line per entry to the run's plain-text log."""
    path = log_path_for(report, output_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [format_log_line(e) for e in report.entries]
    path.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")
    return path


def _row(entry: SummaryEntry) -> str:
    cells = (
        entry.timestamp.strftime(_TIMESTAMP_FORMAT),
        entry.status.value,
        entry.server,
        entry.database,
        entry.file_path,
        entry.message,
    )
    tds = "".join(f"<td>{escape(c)}</td>" for c in cells)
    return f'<tr class="{status_class(entry.status)}">{tds}</tr>'


def render_html(
    report: RunReport,
    log_path: Path,
    *,
    generated_at: datetime | None = None,
    title: str = "SQL Server Schema Export Summary",
) -> str:
    """Return a self-contained HTML document with one row per entry."""
    generated = (generated_at or datetime.now()).strftime(_TIMESTAMP_FORMAT)
    status_css = "\n".join(
        f"tr.{status_class(s)} td {{ background-color: {color}; }}"
        for s, color in _STATUS_COLORS.items()
    )
    totals = " | ".join(f"{s.value}: {n}" for s, n in report.counts().items())
    rows = "\n".join(_row(e) for e in report.entries)
    return _HTML_TEMPLATE.format(
        title=escape(title),
        generated=escape(generated),
        log_path=escape(str(log_path)),
        totals=escape(totals),
        status_css=status_css,
        rows=rows,
    )


def write_html(report: RunReport, output_dir: Path, log_path: Path) -> Path:
    path = html_path_for(report, output_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_html(report, log_path), encoding="utf-8")
    return path
