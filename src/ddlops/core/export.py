"""Schema export orchestration.

Servers and databases are processed strictly one at a time. Every unit of
work (a connection attempt, a database export) ends in at least one
SummaryEntry; failures are caught at the unit boundary and never abort
the remaining units.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Protocol

from ddlops.core.catalog import (
    SchemaCatalog,
    collect_objects,
    unavailable_databases,
    user_databases,
)
from ddlops.core.connection import innermost_message
from ddlops.core.models import (
    DatabaseHandle,
    EntryStatus,
    RunReport,
    ServerTarget,
    SummaryEntry,
)
from ddlops.core.scripting import DefinitionSource, Scripter, ScriptingOptions, write_script
from ddlops.core.servers import schema_file_path

log = logging.getLogger(__name__)


class ExportCatalog(SchemaCatalog, DefinitionSource, Protocol):
    """A connected server that can both enumerate and define objects."""


Connector = Callable[[ServerTarget], ExportCatalog]
EntrySink = Callable[[SummaryEntry], None]


class _Recorder:
    """Collects the entries of one server and forwards them to the sink."""

    def __init__(self, server: str, on_entry: EntrySink | None, clock: Callable[[], datetime]):
        self.server = server
        self.on_entry = on_entry
        self.clock = clock
        self.entries: list[SummaryEntry] = []

    def __call__(
        self,
        status: EntryStatus,
        message: str,
        *,
        database: str = "",
        file_path: str = "",
    ) -> None:
        entry = SummaryEntry(
            timestamp=self.clock(),
            server=self.server,
            database=database,
            status=status,
            message=message,
            file_path=file_path,
        )
        self.entries.append(entry)
        if self.on_entry is not None:
            self.on_entry(entry)


def _close(catalog: SchemaCatalog, server: str) -> None:
    try:
        catalog.close()
    except Exception as exc:  # noqa: BLE001
        log.warning("Closing connection to %s failed: %s", server, innermost_message(exc))


def export_database(
    catalog: ExportCatalog,
    server: str,
    database: DatabaseHandle,
    output_dir: Path,
    record: Callable[..., None],
    options: ScriptingOptions,
    clock: Callable[[], datetime] = datetime.now,
) -> None:
    """Script one database to `<sanitized-server>_<database>_DDL.sql`."""
    path = schema_file_path(output_dir, server, database.name)
    try:
        objects = collect_objects(catalog, database.name)
        batches = Scripter(catalog, options, clock=clock).script(objects)
        write_script(batches, path, options)
    except Exception as exc:  # noqa: BLE001
        log.debug("Export of %s on %s failed", database.name, server, exc_info=True)
        record(
            EntryStatus.FAILURE,
            innermost_message(exc),
            database=database.name,
            file_path=str(path),
        )
        return
    record(
        EntryStatus.SUCCESS,
        f"Schema exported ({len(objects)} object(s) requested)",
        database=database.name,
        file_path=str(path),
    )


def export_server(
    target: ServerTarget,
    output_dir: Path,
    connect: Connector,
    *,
    options: ScriptingOptions | None = None,
    on_entry: EntrySink | None = None,
    clock: Callable[[], datetime] = datetime.now,
) -> list[SummaryEntry]:
    """
    Export every user database of one server.

    Returns the entries produced for this server, in order.
    """
    options = options or ScriptingOptions()
    server = target.name.strip()
    record = _Recorder(server, on_entry, clock)

    if not server:
        record(EntryStatus.SKIP, "Empty server name")
        return record.entries

    catalog: ExportCatalog | None = None
    try:
        catalog = connect(replace(target, name=server))
        handles = catalog.list_databases()
        databases = user_databases(handles)
    except Exception as exc:  # noqa: BLE001
        log.debug("Connection to %s failed", server, exc_info=True)
        record(EntryStatus.FAILURE, f"Connection failed: {innermost_message(exc)}")
        if catalog is not None:
            _close(catalog, server)
        return record.entries

    try:
        if not databases:
            record(EntryStatus.SKIP, "No user databases in Normal state")
        else:
            record(EntryStatus.INFO, f"Connected; {len(databases)} user database(s) to export")
        for db in unavailable_databases(handles):
            record(EntryStatus.SKIP, f"Database state is {db.status}", database=db.name)
        for db in databases:
            export_database(catalog, server, db, output_dir, record, options, clock)
    finally:
        _close(catalog, server)
    record(EntryStatus.INFO, "Disconnected")
    return record.entries


def export_servers(
    targets: Iterable[ServerTarget],
    output_dir: Path,
    connect: Connector,
    *,
    options: ScriptingOptions | None = None,
    on_entry: EntrySink | None = None,
    clock: Callable[[], datetime] = datetime.now,
) -> RunReport:
    """Export every server in order and return the run's report."""
    report = RunReport(started_at=clock())
    for target in targets:
        report.extend(
            export_server(
                target,
                output_dir,
                connect,
                options=options,
                on_entry=on_entry,
                clock=clock,
            )
        )
    return report
