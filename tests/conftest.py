from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

import pytest

# Import the local src tree, never an installed ddlops wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from ddlops.core.ddl import (  # noqa: E402
    ColumnDef,
    DatabaseDef,
    ModuleDef,
    PrincipalDef,
    SchemaDef,
    SynonymDef,
    TableDef,
)
from ddlops.core.models import DatabaseHandle, ObjectKind  # noqa: E402

FIXED_NOW = datetime(2026, 3, 14, 15, 9, 26)


@pytest.fixture
def clock():
    """A clock that always returns the same instant."""
    return lambda: FIXED_NOW


@pytest.fixture
def sql_folder(tmp_path: Path):
    """Return a helper that writes `.sql` files into a fresh folder."""
    folder = tmp_path / "scripts"
    folder.mkdir()

    def _write(name: str, text: str = "SELECT 1;\n") -> Path:
        path = folder / name
        path.write_text(text, encoding="utf-8", newline="")
        return path

    _write.folder = folder
    return _write


class FakeServer:
    """In-memory stand-in for a connected server: catalog plus definitions."""

    def __init__(self, databases=None, objects=None, *, failing=(), list_error=None):
        self.databases = [DatabaseHandle("SalesDB")] if databases is None else databases
        self.objects = objects or {}
        self.failing = set(failing)
        self.list_error = list_error
        self.tables = {}
        self.modules = {}
        self.deps = []
        self.memberships = []
        self.perms = []
        self.props = []
        self.closed = 0

    def list_databases(self):
        if self.list_error is not None:
            raise self.list_error
        return list(self.databases)

    def list_objects(self, database, kind):
        return list(self.objects.get(kind, []))

    def close(self):
        self.closed += 1

    def database_definition(self, database):
        if database in self.failing:
            try:
                raise PermissionError(f"VIEW DEFINITION denied on {database}")
            except PermissionError as exc:
                raise RuntimeError("An exception occurred while reading the database") from exc
        return DatabaseDef(name=database, compatibility_level=160, recovery_model="FULL")

    def schema_definition(self, database, ref):
        return SchemaDef(name=ref.name, owner="dbo")

    def principal_definition(self, database, ref):
        if ref.kind == ObjectKind.ROLE:
            return PrincipalDef(name=ref.name, type_desc="DATABASE_ROLE", owner="dbo")
        return PrincipalDef(name=ref.name, type_desc="SQL_USER", default_schema="dbo")

    def role_memberships(self, database):
        return list(self.memberships)

    def synonym_definition(self, database, ref):
        return SynonymDef(schema=ref.schema, name=ref.name, base_object="[dbo].[Orders]")

    def table_definition(self, database, ref):
        if ref.name in self.tables:
            return self.tables[ref.name]
        return TableDef(
            schema=ref.schema,
            name=ref.name,
            columns=(ColumnDef("Id", "int", is_nullable=False),),
        )

    def module_definition(self, database, ref):
        if ref.name in self.modules:
            return self.modules[ref.name]
        return ModuleDef(
            kind=ref.kind,
            name=ref.name,
            schema=ref.schema,
            definition=f"CREATE {ref.kind.value} {ref.name} AS SELECT 1",
        )

    def dependencies(self, database):
        return list(self.deps)

    def permissions(self, database):
        return list(self.perms)

    def extended_properties(self, database):
        return list(self.props)


@pytest.fixture
def fake_server():
    """The FakeServer class, for tests that build their own servers."""
    return FakeServer
