"""Schema script generation.

The scripter walks a ScriptableObjectSet, asks a DefinitionSource for each
object's definition and renders the batches in dependency order. The
behaviour is driven by ScriptingOptions, whose defaults are the settings
the exporter uses: user objects only, full DDL (keys, indexes, triggers,
permissions, extended properties, full-text indexes), object headers, a
database context statement, no DROP statements. Row data is never scripted.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Hashable, Iterable, Protocol, Sequence

from ddlops.core.ddl import (
    DatabaseDef,
    ExtendedPropertyDef,
    ModuleDef,
    PermissionDef,
    PrincipalDef,
    SchemaDef,
    SynonymDef,
    TableDef,
    object_header,
    qualified,
    quote_name,
    render_checks,
    render_database,
    render_defaults,
    render_drop,
    render_extended_property,
    render_foreign_keys,
    render_fulltext_catalog,
    render_fulltext_index,
    render_indexes,
    render_module,
    render_permission,
    render_role,
    render_role_member,
    render_schema,
    render_synonym,
    render_table,
    render_user,
)
from ddlops.core.models import ObjectKind, ObjectRef, ScriptableObjectSet

log = logging.getLogger(__name__)

ObjectKey = tuple[str, str]

# Kinds that take part in the cross-object dependency sort, in preference order.
_ORDERED_KINDS = (
    ObjectKind.TABLE,
    ObjectKind.FUNCTION,
    ObjectKind.VIEW,
    ObjectKind.PROCEDURE,
)


class ScriptingError(RuntimeError):
    """Raised when an object definition cannot be loaded or rendered."""


@dataclass(frozen=True)
class ScriptingOptions:
    """Switches controlling what the scripter emits."""

    append_to_file: bool = False
    encoding: str = "utf-8"
    clustered_indexes: bool = True
    dri_all: bool = True
    extended_properties: bool = True
    full_text_indexes: bool = True
    include_headers: bool = True
    indexes: bool = True
    permissions: bool = True
    triggers: bool = True
    schema_qualify: bool = True
    script_schema: bool = True
    script_drops: bool = False
    include_database_context: bool = True


class DefinitionSource(Protocol):
    """Interface for loading object definitions from one server."""

    def database_definition(self, database: str) -> DatabaseDef: ...

    def schema_definition(self, database: str, ref: ObjectRef) -> SchemaDef: ...

    def principal_definition(self, database: str, ref: ObjectRef) -> PrincipalDef: ...

    def role_memberships(self, database: str) -> list[tuple[str, str]]:
        """Return `(role, member)` pairs."""
        ...

    def synonym_definition(self, database: str, ref: ObjectRef) -> SynonymDef: ...

    def table_definition(self, database: str, ref: ObjectRef) -> TableDef: ...

    def module_definition(self, database: str, ref: ObjectRef) -> ModuleDef: ...

    def dependencies(self, database: str) -> list[tuple[ObjectKey, ObjectKey]]:
        """Return `(referencing, referenced)` pairs of `(schema, name)` keys."""
        ...

    def permissions(self, database: str) -> list[PermissionDef]: ...

    def extended_properties(self, database: str) -> list[ExtendedPropertyDef]: ...


def object_key(schema: str | None, name: str) -> ObjectKey:
    return ((schema or "").lower(), name.lower())


def dependency_order(
    keys: Sequence[Hashable],
    edges: Iterable[tuple[Hashable, Hashable]],
) -> list[Hashable]:
    """
    Order keys so every referenced key precedes the keys referencing it.

    Ties keep the input order. Edges to unknown keys and self references are
    ignored. When only keys caught in a cycle remain, the earliest one is
    released and sorting goes on, so objects that merely depend on a cycle
    still come after everything they reference.
    """
    position = {k: i for i, k in enumerate(keys)}
    dependents: dict[Hashable, set[Hashable]] = {k: set() for k in keys}
    pending: dict[Hashable, int] = {k: 0 for k in keys}
    for referencing, referenced in edges:
        if referencing == referenced:
            continue
        if referencing not in position or referenced not in position:
            continue
        if referencing in dependents[referenced]:
            continue
        dependents[referenced].add(referencing)
        pending[referencing] += 1

    ready = [position[k] for k in keys if pending[k] == 0]
    heapq.heapify(ready)
    ordered: list[Hashable] = []
    done: set[Hashable] = set()
    while len(done) < len(position):
        if not ready:
            stuck = next(k for k in keys if k not in done)
            log.warning("Dependency cycle through %s; scripting it before its references", stuck)
            heapq.heappush(ready, position[stuck])
        key = keys[heapq.heappop(ready)]
        if key in done:
            continue
        done.add(key)
        ordered.append(key)
        for dep in dependents[key]:
            if dep in done:
                continue
            pending[dep] -= 1
            if pending[dep] == 0:
                heapq.heappush(ready, position[dep])
    return ordered


class Scripter:
    """Render a ScriptableObjectSet to a list of T-SQL batches."""

    def __init__(
        self,
        source: DefinitionSource,
        options: ScriptingOptions | None = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.source = source
        self.options = options or ScriptingOptions()
        self.clock = clock

    def _load(self, ref: ObjectRef, loader: Callable[[], object]):
        try:
            return loader()
        except Exception as exc:
            raise ScriptingError(f"Failed to script {ref.kind.value} {ref.full_name}") from exc

    def _name(self, schema: str | None, name: str) -> str:
        return qualified(schema, name, schema_qualify=self.options.schema_qualify)

    def _emit(self, out: list[str], label: str, full_name: str, batches: list[str]) -> None:
        if not batches:
            return
        if self.options.include_headers:
            header = object_header(label, full_name, self.clock())
            batches = [f"{header}\n{batches[0]}", *batches[1:]]
        out.extend(batches)

    def script(self, objects: ScriptableObjectSet) -> list[str]:
        """Return the batches for every object in the set."""
        if self.options.script_drops:
            return self._script_drops(objects)
        if not self.options.script_schema:
            return []

        opts = self.options
        database = objects.database
        src = self.source
        out: list[str] = []

        if objects.of_kind(ObjectKind.DATABASE):
            ref = objects.of_kind(ObjectKind.DATABASE)[0]
            db_def: DatabaseDef = self._load(ref, lambda: src.database_definition(database))
            if opts.include_database_context:
                out.append("USE [master]")
            self._emit(out, "Database", quote_name(database), render_database(db_def))
        else:
            db_def = DatabaseDef(name=database)

        if opts.include_database_context:
            out.append(f"USE {quote_name(database)}")

        if opts.full_text_indexes:
            for name, is_default in db_def.fulltext_catalogs:
                self._emit(
                    out, "FullTextCatalog", quote_name(name),
                    [render_fulltext_catalog(name, is_default)],
                )

        principals: set[str] = set()
        for ref in objects.of_kind(ObjectKind.ROLE):
            role = self._load(ref, lambda r=ref: src.principal_definition(database, r))
            principals.add(role.name.lower())
            self._emit(out, ObjectKind.ROLE.value, quote_name(role.name), render_role(role))
        for ref in objects.of_kind(ObjectKind.USER):
            user = self._load(ref, lambda r=ref: src.principal_definition(database, r))
            principals.add(user.name.lower())
            self._emit(out, ObjectKind.USER.value, quote_name(user.name), render_user(user))
        for ref in objects.of_kind(ObjectKind.SCHEMA):
            schema = self._load(ref, lambda r=ref: src.schema_definition(database, r))
            self._emit(out, ObjectKind.SCHEMA.value, quote_name(schema.name), render_schema(schema))

        if principals:
            for role, member in src.role_memberships(database):
                if member.lower() in principals:
                    out.append(render_role_member(role, member))

        for ref in objects.of_kind(ObjectKind.SYNONYM):
            syn = self._load(ref, lambda r=ref: src.synonym_definition(database, r))
            self._emit(
                out, ObjectKind.SYNONYM.value, self._name(syn.schema, syn.name),
                render_synonym(syn, schema_qualify=opts.schema_qualify),
            )

        tables: list[TableDef] = []
        for ref in self._ordered(objects):
            if ref.kind == ObjectKind.TABLE:
                table = self._load(ref, lambda r=ref: src.table_definition(database, r))
                tables.append(table)
                self._emit(out, ObjectKind.TABLE.value, self._name(table.schema, table.name),
                           self._table_batches(table))
            else:
                module = self._load(ref, lambda r=ref: src.module_definition(database, r))
                self._emit(out, ref.kind.value, self._name(module.schema, module.name),
                           render_module(module, schema_qualify=opts.schema_qualify))

        if opts.triggers:
            for table in tables:
                for trg in table.triggers:
                    self._emit(out, "Trigger", self._name(trg.schema, trg.name),
                               render_module(trg, schema_qualify=opts.schema_qualify))
            for ref in objects.of_kind(ObjectKind.TRIGGER):
                trg = self._load(ref, lambda r=ref: src.module_definition(database, r))
                self._emit(out, "DdlTrigger", quote_name(trg.name),
                           render_module(trg, schema_qualify=opts.schema_qualify))

        for table in tables:
            if opts.dri_all:
                out.extend(render_foreign_keys(table, schema_qualify=opts.schema_qualify))
        if opts.full_text_indexes:
            for table in tables:
                out.extend(render_fulltext_index(table, schema_qualify=opts.schema_qualify))

        if opts.permissions:
            for perm in src.permissions(database):
                if perm.grantee.lower() in principals or perm.grantee.lower() == "public":
                    out.append(render_permission(perm))

        if opts.extended_properties:
            out.extend(render_extended_property(p) for p in src.extended_properties(database))

        log.debug("%s: %d batch(es) scripted", database, len(out))
        return out

    def _table_batches(self, table: TableDef) -> list[str]:
        opts = self.options
        batches = render_table(
            table, include_keys=opts.dri_all, schema_qualify=opts.schema_qualify
        )
        if opts.dri_all:
            batches.extend(render_defaults(table, schema_qualify=opts.schema_qualify))
            batches.extend(render_checks(table, schema_qualify=opts.schema_qualify))
        batches.extend(
            render_indexes(
                table,
                clustered=opts.clustered_indexes,
                nonclustered=opts.indexes,
                schema_qualify=opts.schema_qualify,
            )
        )
        return batches

    def _ordered(self, objects: ScriptableObjectSet) -> list[ObjectRef]:
        refs: list[ObjectRef] = []
        for kind in _ORDERED_KINDS:
            refs.extend(
                sorted(objects.of_kind(kind), key=lambda r: object_key(r.schema, r.name))
            )
        if not refs:
            return []
        by_key = {object_key(r.schema, r.name): r for r in refs}
        edges = [
            (object_key(*referencing), object_key(*referenced))
            for referencing, referenced in self.source.dependencies(objects.database)
        ]
        keys = list(by_key)
        return [by_key[k] for k in dependency_order(keys, edges)]

    def _script_drops(self, objects: ScriptableObjectSet) -> list[str]:
        out: list[str] = []
        if self.options.include_database_context:
            out.append(f"USE {quote_name(objects.database)}")
        simple = [
            *objects.of_kind(ObjectKind.TRIGGER),
            *objects.of_kind(ObjectKind.SYNONYM),
        ]
        ordered = list(reversed(self._ordered(objects)))
        tail = [
            *objects.of_kind(ObjectKind.SCHEMA),
            *objects.of_kind(ObjectKind.USER),
            *objects.of_kind(ObjectKind.ROLE),
        ]
        for ref in [*simple, *ordered, *tail]:
            out.append(render_drop(ref, schema_qualify=self.options.schema_qualify))
        databases = objects.of_kind(ObjectKind.DATABASE)
        if databases:
            if self.options.include_database_context:
                out.append("USE [master]")
            out.append(render_drop(databases[0]))
        return out


def write_script(batches: Sequence[str], path: Path, options: ScriptingOptions) -> Path:
    """Write GO-separated batches to `path`, creating the folder if needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    mode = "a" if options.append_to_file else "w"
    with path.open(mode, encoding=options.encoding) as fh:
        for batch in batches:
            fh.write(batch.rstrip())
            fh.write("\nGO\n")
    return path
