"""Database enumeration over a schema catalog.

The catalog is an interface: the workflow only needs to list databases and
the objects of each kind, so the pyodbc-backed adapter (or a test stub) can
be swapped freely.
"""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from ddlops.core.models import DatabaseHandle, ObjectKind, ObjectRef, ScriptableObjectSet

log = logging.getLogger(__name__)

SYSTEM_DATABASES = frozenset({"master", "model", "msdb", "tempdb"})

# Kinds enumerated for every export, in the order they are requested.
EXPORTED_KINDS = (
    ObjectKind.SCHEMA,
    ObjectKind.ROLE,
    ObjectKind.USER,
    ObjectKind.FUNCTION,
    ObjectKind.PROCEDURE,
    ObjectKind.TABLE,
    ObjectKind.VIEW,
    ObjectKind.TRIGGER,
    ObjectKind.SYNONYM,
)


class SchemaCatalog(Protocol):
    """Interface for database/object enumeration on one connected server."""

    def list_databases(self) -> list[DatabaseHandle]:
        """Return every database on the server with its status."""
        ...

    def list_objects(self, database: str, kind: ObjectKind) -> list[ObjectRef]:
        """Return the user objects of one kind in a database."""
        ...

    def close(self) -> None:
        """Release the underlying connection."""
        ...


def is_system_database(name: str) -> bool:
    return name.lower() in SYSTEM_DATABASES


def user_databases(handles: Iterable[DatabaseHandle]) -> list[DatabaseHandle]:
    """
    Filter a server's databases down to the ones worth exporting.

    System databases and databases that are not in the normal operating
    state (restoring, offline, suspect...) are dropped. Server order is kept.
    """
    keep: list[DatabaseHandle] = []
    for db in handles:
        if is_system_database(db.name):
            continue
        if not db.is_normal:
            continue
        keep.append(db)
    return keep


def unavailable_databases(handles: Iterable[DatabaseHandle]) -> list[DatabaseHandle]:
    """User databases that exist but are not in the normal operating state."""
    return [db for db in handles if not is_system_database(db.name) and not db.is_normal]


def collect_objects(catalog: SchemaCatalog, database: str) -> ScriptableObjectSet:
    """
    Build the set of objects to script for one database.

    The set always starts with the database's own definition, followed by
    every schema, role, user, function, procedure, table, view, database
    trigger and synonym the catalog reports.
    """
    refs: list[ObjectRef] = [ObjectRef(kind=ObjectKind.DATABASE, name=database)]
    for kind in EXPORTED_KINDS:
        found = catalog.list_objects(database, kind)
        log.debug("%s: %d %s object(s)", database, len(found), kind.value)
        refs.extend(found)
    return ScriptableObjectSet(database=database, objects=tuple(refs))
