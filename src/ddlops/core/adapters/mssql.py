"""
SQL Server catalog adapter over pyodbc.

`MssqlSchemaCatalog` enumerates databases and user objects and reads their
definitions from the catalog views into the dataclasses of `core.ddl`.
"""

from __future__ import annotations

import logging
from typing import Any

import pyodbc

from ddlops.core.config import Settings
from ddlops.core.connection import ConnectError, build_connection_string, mask_connection_string
from ddlops.core.ddl import (
    CheckDef,
    ColumnDef,
    DatabaseDef,
    DatabaseFile,
    ExtendedPropertyDef,
    ForeignKeyDef,
    FullTextIndexDef,
    IndexDef,
    KeyConstraintDef,
    ModuleDef,
    PermissionDef,
    PrincipalDef,
    SchemaDef,
    SynonymDef,
    TableDef,
    quote_name,
)
from ddlops.core.models import NORMAL_STATUS, DatabaseHandle, ObjectKind, ObjectRef, ServerTarget

log = logging.getLogger(__name__)

# Objects flagged by SSMS tooling (database diagrams) count as system objects.
_NOT_TOOLING = """
    AND NOT EXISTS (
        SELECT 1 FROM sys.extended_properties ep
        WHERE ep.class = 1 AND ep.major_id = o.object_id AND ep.minor_id = 0
          AND ep.name = N'microsoft_database_tools_support'
    )"""

_OBJECT_TYPES = {
    ObjectKind.FUNCTION: "('FN', 'IF', 'TF')",
    ObjectKind.PROCEDURE: "('P')",
    ObjectKind.TABLE: "('U')",
    ObjectKind.VIEW: "('V')",
    ObjectKind.SYNONYM: "('SN')",
}

_LIST_QUERIES = {
    ObjectKind.SCHEMA: """
        SELECT NULL, s.name FROM sys.schemas s
        WHERE s.schema_id BETWEEN 5 AND 16383
        ORDER BY s.name""",
    ObjectKind.ROLE: """
        SELECT NULL, p.name FROM sys.database_principals p
        WHERE p.type = 'R' AND p.is_fixed_role = 0 AND p.principal_id > 0
          AND p.name <> N'public'
        ORDER BY p.name""",
    ObjectKind.USER: """
        SELECT NULL, p.name FROM sys.database_principals p
        WHERE p.type IN ('S', 'U', 'G', 'E', 'X', 'C', 'K') AND p.principal_id > 4
          AND p.name NOT LIKE N'##%'
        ORDER BY p.name""",
    ObjectKind.TRIGGER: """
        SELECT NULL, t.name FROM sys.triggers t
        WHERE t.parent_class = 0 AND t.is_ms_shipped = 0
        ORDER BY t.name""",
}

_EXTENDED_PROPERTY_LEVEL1 = {
    "U": "TABLE",
    "V": "VIEW",
    "P": "PROCEDURE",
    "FN": "FUNCTION",
    "IF": "FUNCTION",
    "TF": "FUNCTION",
    "SN": "SYNONYM",
}

_DATABASE_OPTIONS = (
    ("ANSI_NULL_DEFAULT", "is_ansi_null_default_on"),
    ("ANSI_NULLS", "is_ansi_nulls_on"),
    ("ANSI_PADDING", "is_ansi_padding_on"),
    ("ANSI_WARNINGS", "is_ansi_warnings_on"),
    ("ARITHABORT", "is_arithabort_on"),
    ("AUTO_CLOSE", "is_auto_close_on"),
    ("AUTO_SHRINK", "is_auto_shrink_on"),
    ("AUTO_UPDATE_STATISTICS", "is_auto_update_stats_on"),
    ("QUOTED_IDENTIFIER", "is_quoted_identifier_on"),
    ("RECURSIVE_TRIGGERS", "is_recursive_triggers_on"),
    ("READ_COMMITTED_SNAPSHOT", "is_read_committed_snapshot_on"),
)


def database_status(state_desc: str, is_in_standby: bool = False) -> str:
    """
    Map sys.databases state to a status name.

    ONLINE is `Normal` (or `Standby` for a read-only standby copy); other
    states become CamelCase (`RECOVERY_PENDING` -> `RecoveryPending`).
    """
    if state_desc == "ONLINE":
        return "Standby" if is_in_standby else NORMAL_STATUS
    return "".join(part.capitalize() for part in state_desc.split("_"))


class MssqlSchemaCatalog:
    """Adapter around pyodbc and the SQL Server catalog views of one server."""

    def __init__(self, connection: Any, server: str) -> None:
        self.connection = connection
        self.server = server
        self._database: str | None = None

    @classmethod
    def connect(cls, target: ServerTarget, settings: Settings) -> "MssqlSchemaCatalog":
        """Open a connection to the target server."""
        conn_str = build_connection_string(target, settings)
        log.debug("Connecting with %s", mask_connection_string(conn_str))
        try:
            connection = pyodbc.connect(
                conn_str, timeout=settings.connect_timeout, autocommit=True
            )
        except pyodbc.Error as exc:
            raise ConnectError(f"Could not connect to '{target.name}'") from exc
        log.debug("Connected to %s", target.name)
        return cls(connection, target.name)

    def close(self) -> None:
        """Close the connection; calling it again is a no-op."""
        if self.connection is None:
            return
        try:
            self.connection.close()
        finally:
            self.connection = None
            self._database = None
            log.debug("Disconnected from %s", self.server)

    def _rows(self, sql: str, *params: Any) -> list[Any]:
        if self.connection is None:
            raise RuntimeError(f"Connection to '{self.server}' is closed.")
        cursor = self.connection.cursor()
        try:
            cursor.execute(sql, *params)
            return cursor.fetchall()
        finally:
            cursor.close()

    def _use(self, database: str) -> None:
        if self._database == database:
            return
        if self.connection is None:
            raise RuntimeError(f"Connection to '{self.server}' is closed.")
        cursor = self.connection.cursor()
        try:
            cursor.execute(f"USE {quote_name(database)}")
        finally:
            cursor.close()
        self._database = database

    def _object_id(self, ref: ObjectRef) -> int:
        rows = self._rows("SELECT OBJECT_ID(?)", ref.full_name)
        if not rows or rows[0][0] is None:
            raise LookupError(f"{ref.kind.value} {ref.full_name} no longer exists.")
        return int(rows[0][0])

    # --- enumeration --------------------------------------------------------

    def list_databases(self) -> list[DatabaseHandle]:
        """List every database on the server with its status."""
        rows = self._rows(
            "SELECT name, state_desc, is_in_standby FROM sys.databases ORDER BY name"
        )
        return [
            DatabaseHandle(name=name, status=database_status(state, bool(standby)))
            for name, state, standby in rows
        ]

    def list_objects(self, database: str, kind: ObjectKind) -> list[ObjectRef]:
        """List the user objects of one kind in a database."""
        self._use(database)
        if kind in _LIST_QUERIES:
            sql = _LIST_QUERIES[kind]
        elif kind in _OBJECT_TYPES:
            sql = (
                "SELECT SCHEMA_NAME(o.schema_id), o.name FROM sys.objects o "
                f"WHERE o.type IN {_OBJECT_TYPES[kind]} AND o.is_ms_shipped = 0"
                f"{_NOT_TOOLING} ORDER BY 1, 2"
            )
        else:
            raise ValueError(f"Cannot list objects of kind {kind.value}")
        return [ObjectRef(kind=kind, name=name, schema=schema) for schema, name in self._rows(sql)]

    # --- definitions --------------------------------------------------------

    def database_definition(self, database: str) -> DatabaseDef:
        columns = ", ".join(col for _, col in _DATABASE_OPTIONS)
        rows = self._rows(
            "SELECT collation_name, compatibility_level, recovery_model_desc, "
            f"page_verify_option_desc, {columns} FROM sys.databases WHERE name = ?",
            database,
        )
        if not rows:
            raise LookupError(f"Database {quote_name(database)} no longer exists.")
        collation, compat, recovery, page_verify, *flags = rows[0]
        options = [
            (option, "ON" if flag else "OFF")
            for (option, _), flag in zip(_DATABASE_OPTIONS, flags)
        ]
        if page_verify:
            options.append(("PAGE_VERIFY", page_verify))

        self._use(database)
        files = tuple(
            DatabaseFile(
                name=name,
                physical_name=physical,
                is_log=type_desc == "LOG",
                filegroup=filegroup,
                size_pages=size,
                max_size_pages=max_size,
                growth=growth,
                is_percent_growth=bool(percent),
            )
            for name, physical, type_desc, filegroup, size, max_size, growth, percent in self._rows(
                "SELECT f.name, f.physical_name, f.type_desc, fg.name, f.size, f.max_size, "
                "f.growth, f.is_percent_growth FROM sys.database_files f "
                "LEFT JOIN sys.filegroups fg ON fg.data_space_id = f.data_space_id "
                "WHERE f.type_desc IN ('ROWS', 'LOG') ORDER BY f.file_id"
            )
        )
        catalogs = tuple(
            (name, bool(is_default))
            for name, is_default in self._rows(
                "SELECT name, is_default FROM sys.fulltext_catalogs ORDER BY name"
            )
        )
        return DatabaseDef(
            name=database,
            collation=collation,
            compatibility_level=compat,
            recovery_model=recovery,
            files=files,
            options=tuple(options),
            fulltext_catalogs=catalogs,
        )

    def schema_definition(self, database: str, ref: ObjectRef) -> SchemaDef:
        self._use(database)
        rows = self._rows(
            "SELECT s.name, p.name FROM sys.schemas s "
            "LEFT JOIN sys.database_principals p ON p.principal_id = s.principal_id "
            "WHERE s.name = ?",
            ref.name,
        )
        if not rows:
            raise LookupError(f"Schema {ref.full_name} no longer exists.")
        name, owner = rows[0]
        return SchemaDef(name=name, owner=owner)

    def principal_definition(self, database: str, ref: ObjectRef) -> PrincipalDef:
        self._use(database)
        rows = self._rows(
            "SELECT p.name, p.type_desc, o.name, l.name, p.default_schema_name "
            "FROM sys.database_principals p "
            "LEFT JOIN sys.database_principals o ON o.principal_id = p.owning_principal_id "
            "LEFT JOIN sys.server_principals l ON l.sid = p.sid "
            "WHERE p.name = ?",
            ref.name,
        )
        if not rows:
            raise LookupError(f"Principal {ref.full_name} no longer exists.")
        name, type_desc, owner, login, default_schema = rows[0]
        if not login and type_desc in ("WINDOWS_USER", "WINDOWS_GROUP"):
            login = name
        return PrincipalDef(
            name=name,
            type_desc=type_desc,
            owner=owner,
            login_name=login,
            default_schema=default_schema,
        )

    def role_memberships(self, database: str) -> list[tuple[str, str]]:
        self._use(database)
        rows = self._rows(
            "SELECT r.name, m.name FROM sys.database_role_members rm "
            "JOIN sys.database_principals r ON r.principal_id = rm.role_principal_id "
            "JOIN sys.database_principals m ON m.principal_id = rm.member_principal_id "
            "ORDER BY r.name, m.name"
        )
        return [(role, member) for role, member in rows]

    def synonym_definition(self, database: str, ref: ObjectRef) -> SynonymDef:
        self._use(database)
        rows = self._rows(
            "SELECT SCHEMA_NAME(schema_id), name, base_object_name FROM sys.synonyms "
            "WHERE object_id = OBJECT_ID(?)",
            ref.full_name,
        )
        if not rows:
            raise LookupError(f"Synonym {ref.full_name} no longer exists.")
        schema, name, base = rows[0]
        return SynonymDef(schema=schema, name=name, base_object=base)

    def table_definition(self, database: str, ref: ObjectRef) -> TableDef:
        self._use(database)
        object_id = self._object_id(ref)
        columns = tuple(
            ColumnDef(
                name=name,
                type_name=type_name,
                type_schema=type_schema,
                is_user_defined=bool(user_defined),
                max_length=max_length,
                precision=precision,
                scale=scale,
                is_nullable=bool(nullable),
                collation=collation,
                identity=(int(seed), int(increment)) if is_identity else None,
                computed_definition=computed,
                is_persisted=bool(persisted),
                is_rowguidcol=bool(rowguid),
                default_name=default_name,
                default_definition=default_definition,
            )
            for (
                name, type_name, type_schema, user_defined, max_length, precision, scale,
                nullable, collation, is_identity, seed, increment, computed, persisted,
                rowguid, default_name, default_definition,
            ) in self._rows(
                "SELECT c.name, t.name, SCHEMA_NAME(t.schema_id), t.is_user_defined, "
                "c.max_length, c.precision, c.scale, c.is_nullable, c.collation_name, "
                "c.is_identity, CAST(ic.seed_value AS bigint), "
                "CAST(ic.increment_value AS bigint), cc.definition, cc.is_persisted, "
                "c.is_rowguidcol, dc.name, dc.definition "
                "FROM sys.columns c "
                "JOIN sys.types t ON t.user_type_id = c.user_type_id "
                "LEFT JOIN sys.identity_columns ic "
                "  ON ic.object_id = c.object_id AND ic.column_id = c.column_id "
                "LEFT JOIN sys.computed_columns cc "
                "  ON cc.object_id = c.object_id AND cc.column_id = c.column_id "
                "LEFT JOIN sys.default_constraints dc ON dc.object_id = c.default_object_id "
                "WHERE c.object_id = ? ORDER BY c.column_id",
                object_id,
            )
        )
        keys, indexes = self._indexes(object_id)
        return TableDef(
            schema=ref.schema or "dbo",
            name=ref.name,
            columns=columns,
            data_space=self._data_space(object_id),
            key_constraints=keys,
            indexes=indexes,
            checks=tuple(
                CheckDef(
                    name=name,
                    definition=definition,
                    is_not_trusted=bool(untrusted),
                    is_disabled=bool(disabled),
                )
                for name, definition, untrusted, disabled in self._rows(
                    "SELECT name, definition, is_not_trusted, is_disabled "
                    "FROM sys.check_constraints WHERE parent_object_id = ? ORDER BY name",
                    object_id,
                )
            ),
            foreign_keys=self._foreign_keys(object_id),
            fulltext=self._fulltext(object_id),
            triggers=self._table_triggers(object_id, ref),
        )

    def _data_space(self, object_id: int) -> str | None:
        rows = self._rows(
            "SELECT ds.name, ds.type FROM sys.indexes i "
            "JOIN sys.data_spaces ds ON ds.data_space_id = i.data_space_id "
            "WHERE i.object_id = ? AND i.index_id IN (0, 1)",
            object_id,
        )
        if not rows or rows[0][1] != "FG":
            return None
        return rows[0][0]

    def _indexes(
        self, object_id: int
    ) -> tuple[tuple[KeyConstraintDef, ...], tuple[IndexDef, ...]]:
        key_cols: dict[int, list[tuple[str, bool]]] = {}
        included: dict[int, list[str]] = {}
        for index_id, column, descending, is_included in self._rows(
            "SELECT ic.index_id, c.name, ic.is_descending_key, ic.is_included_column "
            "FROM sys.index_columns ic "
            "JOIN sys.columns c ON c.object_id = ic.object_id AND c.column_id = ic.column_id "
            "WHERE ic.object_id = ? "
            "ORDER BY ic.index_id, ic.is_included_column, ic.key_ordinal, ic.index_column_id",
            object_id,
        ):
            if is_included:
                included.setdefault(index_id, []).append(column)
            else:
                key_cols.setdefault(index_id, []).append((column, bool(descending)))

        keys: list[KeyConstraintDef] = []
        indexes: list[IndexDef] = []
        for index_id, name, type_, unique, primary, unique_constraint, filter_def in self._rows(
            "SELECT index_id, name, type, is_unique, is_primary_key, is_unique_constraint, "
            "filter_definition FROM sys.indexes "
            "WHERE object_id = ? AND type IN (1, 2) AND is_hypothetical = 0 "
            "ORDER BY index_id",
            object_id,
        ):
            cols = tuple(key_cols.get(index_id, []))
            if primary or unique_constraint:
                keys.append(
                    KeyConstraintDef(
                        name=name,
                        is_primary_key=bool(primary),
                        is_clustered=type_ == 1,
                        columns=cols,
                    )
                )
                continue
            indexes.append(
                IndexDef(
                    name=name,
                    is_clustered=type_ == 1,
                    is_unique=bool(unique),
                    columns=cols,
                    included=tuple(included.get(index_id, [])),
                    filter_definition=filter_def,
                )
            )
        return tuple(keys), tuple(indexes)

    def _foreign_keys(self, object_id: int) -> tuple[ForeignKeyDef, ...]:
        columns: dict[int, list[tuple[str, str]]] = {}
        for fk_id, parent_col, ref_col in self._rows(
            "SELECT fkc.constraint_object_id, pc.name, rc.name "
            "FROM sys.foreign_key_columns fkc "
            "JOIN sys.columns pc "
            "  ON pc.object_id = fkc.parent_object_id AND pc.column_id = fkc.parent_column_id "
            "JOIN sys.columns rc "
            "  ON rc.object_id = fkc.referenced_object_id "
            "  AND rc.column_id = fkc.referenced_column_id "
            "WHERE fkc.parent_object_id = ? "
            "ORDER BY fkc.constraint_object_id, fkc.constraint_column_id",
            object_id,
        ):
            columns.setdefault(fk_id, []).append((parent_col, ref_col))

        out: list[ForeignKeyDef] = []
        for fk_id, name, ref_schema, ref_table, on_delete, on_update, untrusted, disabled in self._rows(
            "SELECT fk.object_id, fk.name, SCHEMA_NAME(rt.schema_id), rt.name, "
            "fk.delete_referential_action_desc, fk.update_referential_action_desc, "
            "fk.is_not_trusted, fk.is_disabled "
            "FROM sys.foreign_keys fk JOIN sys.tables rt ON rt.object_id = fk.referenced_object_id "
            "WHERE fk.parent_object_id = ? ORDER BY fk.name",
            object_id,
        ):
            pairs = columns.get(fk_id, [])
            out.append(
                ForeignKeyDef(
                    name=name,
                    columns=tuple(p for p, _ in pairs),
                    referenced_schema=ref_schema,
                    referenced_table=ref_table,
                    referenced_columns=tuple(r for _, r in pairs),
                    on_delete=on_delete,
                    on_update=on_update,
                    is_not_trusted=bool(untrusted),
                    is_disabled=bool(disabled),
                )
            )
        return tuple(out)

    def _fulltext(self, object_id: int) -> FullTextIndexDef | None:
        rows = self._rows(
            "SELECT c.name, i.name, fi.change_tracking_state_desc "
            "FROM sys.fulltext_indexes fi "
            "JOIN sys.fulltext_catalogs c ON c.fulltext_catalog_id = fi.fulltext_catalog_id "
            "JOIN sys.indexes i ON i.object_id = fi.object_id AND i.index_id = fi.unique_index_id "
            "WHERE fi.object_id = ?",
            object_id,
        )
        if not rows:
            return None
        catalog, key_index, tracking = rows[0]
        columns = tuple(
            (name, int(language))
            for name, language in self._rows(
                "SELECT c.name, fic.language_id FROM sys.fulltext_index_columns fic "
                "JOIN sys.columns c ON c.object_id = fic.object_id AND c.column_id = fic.column_id "
                "WHERE fic.object_id = ? ORDER BY fic.column_id",
                object_id,
            )
        )
        return FullTextIndexDef(
            catalog=catalog,
            key_index=key_index,
            columns=columns,
            change_tracking=tracking if tracking in ("AUTO", "MANUAL") else "OFF",
        )

    def _table_triggers(self, object_id: int, table: ObjectRef) -> tuple[ModuleDef, ...]:
        return tuple(
            ModuleDef(
                kind=ObjectKind.TRIGGER,
                name=name,
                schema=table.schema,
                definition=definition,
                uses_ansi_nulls=bool(ansi_nulls),
                uses_quoted_identifier=bool(quoted),
                parent=table.full_name,
                is_disabled=bool(disabled),
            )
            for name, definition, ansi_nulls, quoted, disabled in self._rows(
                "SELECT t.name, m.definition, m.uses_ansi_nulls, m.uses_quoted_identifier, "
                "t.is_disabled FROM sys.triggers t "
                "LEFT JOIN sys.sql_modules m ON m.object_id = t.object_id "
                "WHERE t.parent_id = ? AND t.is_ms_shipped = 0 ORDER BY t.name",
                object_id,
            )
        )

    def module_definition(self, database: str, ref: ObjectRef) -> ModuleDef:
        self._use(database)
        if ref.kind == ObjectKind.TRIGGER:
            rows = self._rows(
                "SELECT m.definition, m.uses_ansi_nulls, m.uses_quoted_identifier, t.is_disabled "
                "FROM sys.triggers t LEFT JOIN sys.sql_modules m ON m.object_id = t.object_id "
                "WHERE t.parent_class = 0 AND t.name = ?",
                ref.name,
            )
            parent = "DATABASE"
        else:
            rows = self._rows(
                "SELECT m.definition, m.uses_ansi_nulls, m.uses_quoted_identifier, 0 "
                "FROM sys.objects o LEFT JOIN sys.sql_modules m ON m.object_id = o.object_id "
                "WHERE o.object_id = OBJECT_ID(?)",
                ref.full_name,
            )
            parent = None
        if not rows:
            raise LookupError(f"{ref.kind.value} {ref.full_name} no longer exists.")
        definition, ansi_nulls, quoted, disabled = rows[0]
        return ModuleDef(
            kind=ref.kind,
            name=ref.name,
            schema=ref.schema,
            definition=definition,
            uses_ansi_nulls=bool(ansi_nulls) if ansi_nulls is not None else True,
            uses_quoted_identifier=bool(quoted) if quoted is not None else True,
            parent=parent,
            is_disabled=bool(disabled),
        )

    def dependencies(self, database: str) -> list[tuple[tuple[str, str], tuple[str, str]]]:
        """
        Expression dependencies between objects, keyed on the owning object.

        Foreign keys are left out: they are scripted after every table, so
        they never constrain creation order.
        """
        self._use(database)
        rows = self._rows(
            "SELECT SCHEMA_NAME(src.schema_id), src.name, SCHEMA_NAME(dst.schema_id), dst.name "
            "FROM sys.sql_expression_dependencies d "
            "JOIN sys.objects o ON o.object_id = d.referencing_id "
            "JOIN sys.objects src ON src.object_id = "
            "  CASE WHEN o.parent_object_id <> 0 THEN o.parent_object_id ELSE o.object_id END "
            "JOIN sys.objects dst ON dst.object_id = d.referenced_id "
            "WHERE d.referencing_class = 1 AND d.referenced_id IS NOT NULL AND o.type <> 'TR'"
        )
        return [((s1, n1), (s2, n2)) for s1, n1, s2, n2 in rows]

    def permissions(self, database: str) -> list[PermissionDef]:
        """Explicit database, schema and object permissions on user objects."""
        self._use(database)
        grouped: dict[tuple[str, str, str, str | None, str | None], list[str]] = {}
        for class_, state, permission, grantee, grantor, obj_schema, obj_name, schema, column in self._rows(
            "SELECT p.class, p.state_desc, p.permission_name, gp.name, gr.name, "
            "SCHEMA_NAME(o.schema_id), o.name, s.name, c.name "
            "FROM sys.database_permissions p "
            "JOIN sys.database_principals gp ON gp.principal_id = p.grantee_principal_id "
            "LEFT JOIN sys.database_principals gr ON gr.principal_id = p.grantor_principal_id "
            "LEFT JOIN sys.objects o ON p.class = 1 AND o.object_id = p.major_id "
            "LEFT JOIN sys.columns c "
            "  ON p.class = 1 AND p.minor_id <> 0 "
            "  AND c.object_id = p.major_id AND c.column_id = p.minor_id "
            "LEFT JOIN sys.schemas s ON p.class = 3 AND s.schema_id = p.major_id "
            "WHERE p.class IN (0, 1, 3) AND (p.class <> 1 OR o.is_ms_shipped = 0) "
            "ORDER BY p.class, 6, 7, gp.name, p.permission_name"
        ):
            if class_ == 1:
                securable = f"{quote_name(obj_schema)}.{quote_name(obj_name)}"
            elif class_ == 3:
                securable = f"SCHEMA::{quote_name(schema)}"
            else:
                securable = None
            key = (state, permission, grantee, securable, grantor)
            cols = grouped.setdefault(key, [])
            if column:
                cols.append(column)
        return [
            PermissionDef(
                state=state,
                permission=permission,
                grantee=grantee,
                securable=securable,
                columns=tuple(cols),
                grantor=grantor,
            )
            for (state, permission, grantee, securable, grantor), cols in grouped.items()
        ]

    def extended_properties(self, database: str) -> list[ExtendedPropertyDef]:
        """Extended properties on the database, schemas, user objects and their columns."""
        self._use(database)
        out: list[ExtendedPropertyDef] = []
        for class_, name, value, obj_schema, obj_name, obj_type, column, schema in self._rows(
            "SELECT ep.class, ep.name, CAST(ep.value AS nvarchar(max)), "
            "SCHEMA_NAME(o.schema_id), o.name, RTRIM(o.type), c.name, s.name "
            "FROM sys.extended_properties ep "
            "LEFT JOIN sys.objects o ON ep.class = 1 AND o.object_id = ep.major_id "
            "LEFT JOIN sys.columns c "
            "  ON ep.class = 1 AND ep.minor_id <> 0 "
            "  AND c.object_id = ep.major_id AND c.column_id = ep.minor_id "
            "LEFT JOIN sys.schemas s ON ep.class = 3 AND s.schema_id = ep.major_id "
            "WHERE ep.class IN (0, 1, 3) "
            "  AND (ep.class <> 1 OR (o.is_ms_shipped = 0 AND o.parent_object_id = 0)) "
            "  AND ep.name <> N'microsoft_database_tools_support' "
            "ORDER BY ep.class, 4, 5, 7, ep.name"
        ):
            value = "" if value is None else value
            if class_ == 0:
                out.append(ExtendedPropertyDef(name=name, value=value))
            elif class_ == 3:
                out.append(
                    ExtendedPropertyDef(
                        name=name, value=value, level0type="SCHEMA", level0name=schema
                    )
                )
            else:
                level1 = _EXTENDED_PROPERTY_LEVEL1.get(obj_type or "")
                if level1 is None:
                    continue
                out.append(
                    ExtendedPropertyDef(
                        name=name,
                        value=value,
                        level0type="SCHEMA",
                        level0name=obj_schema,
                        level1type=level1,
                        level1name=obj_name,
                        level2type="COLUMN" if column else None,
                        level2name=column,
                    )
                )
        return out
