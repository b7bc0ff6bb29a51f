"""T-SQL rendering for scripted schema objects.

Definitions are loaded by an adapter into the small dataclasses below;
this module only turns them into text. Each `render_*` function returns a
list of batches (statements that are separated by `GO` in the output file).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ddlops.core.models import ObjectKind, ObjectRef

_LENGTH_TYPES = {"char", "varchar", "binary", "varbinary"}
_UNICODE_TYPES = {"nchar", "nvarchar"}
_PRECISION_SCALE_TYPES = {"decimal", "numeric"}
_SCALE_ONLY_TYPES = {"datetime2", "time", "datetimeoffset"}
_COLLATABLE_TYPES = {"char", "varchar", "text", "nchar", "nvarchar", "ntext"}

_DROP_KEYWORDS = {
    ObjectKind.DATABASE: "DATABASE",
    ObjectKind.SCHEMA: "SCHEMA",
    ObjectKind.ROLE: "ROLE",
    ObjectKind.USER: "USER",
    ObjectKind.FUNCTION: "FUNCTION",
    ObjectKind.PROCEDURE: "PROCEDURE",
    ObjectKind.TABLE: "TABLE",
    ObjectKind.VIEW: "VIEW",
    ObjectKind.TRIGGER: "TRIGGER",
    ObjectKind.SYNONYM: "SYNONYM",
}


def quote_name(name: str) -> str:
    """Bracket-quote an identifier, escaping embedded `]`."""
    return "[" + name.replace("]", "]]") + "]"


def quote_string(value: str) -> str:
    """Return a Unicode string literal."""
    return "N'" + value.replace("'", "''") + "'"


def qualified(schema: str | None, name: str, *, schema_qualify: bool = True) -> str:
    if schema and schema_qualify:
        return f"{quote_name(schema)}.{quote_name(name)}"
    return quote_name(name)


def format_type(
    type_name: str,
    max_length: int = 0,
    precision: int = 0,
    scale: int = 0,
    *,
    type_schema: str = "sys",
    is_user_defined: bool = False,
) -> str:
    """
    Render a column data type the way SQL Server scripts it.

    `max_length` is in bytes as reported by `sys.columns` (-1 for `max`).
    """
    if is_user_defined:
        return f"{quote_name(type_schema)}.{quote_name(type_name)}"
    base = quote_name(type_name)
    t = type_name.lower()
    if t in _LENGTH_TYPES:
        return f"{base}({'max' if max_length == -1 else max_length})"
    if t in _UNICODE_TYPES:
        return f"{base}({'max' if max_length == -1 else max_length // 2})"
    if t in _PRECISION_SCALE_TYPES:
        return f"{base}({precision}, {scale})"
    if t in _SCALE_ONLY_TYPES:
        return f"{base}({scale})"
    if t == "float" and precision and precision != 53:
        return f"{base}({precision})"
    return base


def object_header(type_label: str, full_name: str, when: datetime) -> str:
    """Return the `/****** Object: ... ******/` banner placed above an object."""
    hour = when.hour % 12 or 12
    suffix = "AM" if when.hour < 12 else "PM"
    stamp = (
        f"{when.month}/{when.day}/{when.year} "
        f"{hour}:{when.minute:02d}:{when.second:02d} {suffix}"
    )
    return f"/****** Object:  {type_label} {full_name}    Script Date: {stamp} ******/"


# --- database -------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseFile:
    """One data or log file; sizes are in 8 KB pages as in sys.database_files."""

    name: str
    physical_name: str
    is_log: bool = False
    filegroup: str | None = "PRIMARY"
    size_pages: int = 0
    max_size_pages: int = -1
    growth: int = 0
    is_percent_growth: bool = False


@dataclass(frozen=True)
class DatabaseDef:
    name: str
    collation: str | None = None
    compatibility_level: int | None = None
    recovery_model: str | None = None
    files: tuple[DatabaseFile, ...] = ()
    options: tuple[tuple[str, str], ...] = ()
    fulltext_catalogs: tuple[tuple[str, bool], ...] = ()


def _file_spec(f: DatabaseFile) -> str:
    if f.max_size_pages == -1:
        max_size = "UNLIMITED"
    elif f.max_size_pages == 268435456:
        max_size = "2048GB"
    else:
        max_size = f"{f.max_size_pages * 8}KB"
    growth = f"{f.growth}%" if f.is_percent_growth else f"{f.growth * 8}KB"
    return (
        f"( NAME = {quote_string(f.name)}, FILENAME = {quote_string(f.physical_name)} , "
        f"SIZE = {f.size_pages * 8}KB , MAXSIZE = {max_size} , FILEGROWTH = {growth} )"
    )


def render_database(db: DatabaseDef) -> list[str]:
    """CREATE DATABASE followed by one ALTER DATABASE batch per setting."""
    name = quote_name(db.name)
    lines = [f"CREATE DATABASE {name}"]
    rows = [f for f in db.files if not f.is_log]
    logs = [f for f in db.files if f.is_log]
    if rows:
        groups: dict[str, list[DatabaseFile]] = {}
        for f in rows:
            groups.setdefault(f.filegroup or "PRIMARY", []).append(f)
        order = sorted(groups, key=lambda g: (g != "PRIMARY", g.lower()))
        first = True
        for group in order:
            if group == "PRIMARY":
                lines.append(" ON  PRIMARY ")
            else:
                prefix = " ON " if first else ", "
                lines.append(f"{prefix}FILEGROUP {quote_name(group)} ")
            first = False
            lines.append(",\n".join(_file_spec(f) for f in groups[group]))
    if logs:
        lines.append(" LOG ON ")
        lines.append(",\n".join(_file_spec(f) for f in logs))
    if db.collation:
        lines.append(f" COLLATE {db.collation}")

    batches = ["\n".join(lines)]
    if db.compatibility_level:
        batches.append(
            f"ALTER DATABASE {name} SET COMPATIBILITY_LEVEL = {db.compatibility_level}"
        )
    for option, value in db.options:
        batches.append(f"ALTER DATABASE {name} SET {option} {value} ")
    if db.recovery_model:
        batches.append(f"ALTER DATABASE {name} SET RECOVERY {db.recovery_model} ")
    return batches


def render_fulltext_catalog(name: str, is_default: bool) -> str:
    default = " AS DEFAULT" if is_default else ""
    return f"CREATE FULLTEXT CATALOG {quote_name(name)}{default}"


# --- principals and schemas -----------------------------------------------


@dataclass(frozen=True)
class SchemaDef:
    name: str
    owner: str | None = None


@dataclass(frozen=True)
class PrincipalDef:
    """A database role or user."""

    name: str
    type_desc: str
    owner: str | None = None
    login_name: str | None = None
    default_schema: str | None = None


def render_schema(schema: SchemaDef) -> list[str]:
    owner = f" AUTHORIZATION {quote_name(schema.owner)}" if schema.owner else ""
    return [f"CREATE SCHEMA {quote_name(schema.name)}{owner}"]


def render_role(role: PrincipalDef) -> list[str]:
    owner = f" AUTHORIZATION {quote_name(role.owner)}" if role.owner else ""
    return [f"CREATE ROLE {quote_name(role.name)}{owner}"]


def render_user(user: PrincipalDef) -> list[str]:
    """
    CREATE USER for a database principal.

    External (Entra ID) principals come from the external provider; users
    mapped to a server login keep the mapping; everything else is scripted
    WITHOUT LOGIN since passwords are never extracted.
    """
    if user.type_desc in ("EXTERNAL_USER", "EXTERNAL_GROUPS", "EXTERNAL_GROUP"):
        source = " FROM EXTERNAL PROVIDER"
    elif user.login_name:
        source = f" FOR LOGIN {quote_name(user.login_name)}"
    else:
        source = " WITHOUT LOGIN"
    with_ = ""
    if user.default_schema:
        with_ = f" WITH DEFAULT_SCHEMA={quote_name(user.default_schema)}"
    return [f"CREATE USER {quote_name(user.name)}{source}{with_}"]


def render_role_member(role: str, member: str) -> str:
    return f"ALTER ROLE {quote_name(role)} ADD MEMBER {quote_name(member)}"


@dataclass(frozen=True)
class SynonymDef:
    schema: str
    name: str
    base_object: str


def render_synonym(syn: SynonymDef, *, schema_qualify: bool = True) -> list[str]:
    target = qualified(syn.schema, syn.name, schema_qualify=schema_qualify)
    return [f"CREATE SYNONYM {target} FOR {syn.base_object}"]


# --- tables ---------------------------------------------------------------


@dataclass(frozen=True)
class ColumnDef:
    name: str
    type_name: str
    max_length: int = 0
    precision: int = 0
    scale: int = 0
    type_schema: str = "sys"
    is_user_defined: bool = False
    is_nullable: bool = True
    collation: str | None = None
    identity: tuple[int, int] | None = None
    computed_definition: str | None = None
    is_persisted: bool = False
    is_rowguidcol: bool = False
    default_name: str | None = None
    default_definition: str | None = None


@dataclass(frozen=True)
class KeyConstraintDef:
    """PRIMARY KEY or UNIQUE constraint; columns are `(name, descending)`."""

    name: str
    is_primary_key: bool
    is_clustered: bool
    columns: tuple[tuple[str, bool], ...]


@dataclass(frozen=True)
class IndexDef:
    name: str
    is_clustered: bool
    is_unique: bool
    columns: tuple[tuple[str, bool], ...]
    included: tuple[str, ...] = ()
    filter_definition: str | None = None


@dataclass(frozen=True)
class CheckDef:
    name: str
    definition: str
    is_not_trusted: bool = False
    is_disabled: bool = False


@dataclass(frozen=True)
class ForeignKeyDef:
    name: str
    columns: tuple[str, ...]
    referenced_schema: str
    referenced_table: str
    referenced_columns: tuple[str, ...]
    on_delete: str = "NO_ACTION"
    on_update: str = "NO_ACTION"
    is_not_trusted: bool = False
    is_disabled: bool = False


@dataclass(frozen=True)
class FullTextIndexDef:
    catalog: str
    key_index: str
    columns: tuple[tuple[str, int], ...]
    change_tracking: str = "AUTO"


@dataclass(frozen=True)
class ModuleDef:
    """
    A SQL module (view, procedure, function or trigger).

    `definition` is None when the module is encrypted. `parent` is the
    quoted parent table for DML triggers, `DATABASE` for DDL triggers.
    """

    kind: ObjectKind
    name: str
    schema: str | None = None
    definition: str | None = None
    uses_ansi_nulls: bool = True
    uses_quoted_identifier: bool = True
    parent: str | None = None
    is_disabled: bool = False


@dataclass(frozen=True)
class TableDef:
    schema: str
    name: str
    columns: tuple[ColumnDef, ...]
    data_space: str | None = "PRIMARY"
    key_constraints: tuple[KeyConstraintDef, ...] = ()
    indexes: tuple[IndexDef, ...] = ()
    checks: tuple[CheckDef, ...] = ()
    foreign_keys: tuple[ForeignKeyDef, ...] = ()
    fulltext: FullTextIndexDef | None = None
    triggers: tuple[ModuleDef, ...] = ()


def _key_list(columns: tuple[tuple[str, bool], ...]) -> str:
    return ", ".join(f"{quote_name(c)} {'DESC' if desc else 'ASC'}" for c, desc in columns)


def _column_line(col: ColumnDef) -> str:
    name = quote_name(col.name)
    if col.computed_definition is not None:
        persisted = " PERSISTED" if col.is_persisted else ""
        return f"\t{name}  AS {col.computed_definition}{persisted}"
    parts = [
        name,
        format_type(
            col.type_name,
            col.max_length,
            col.precision,
            col.scale,
            type_schema=col.type_schema,
            is_user_defined=col.is_user_defined,
        ),
    ]
    if col.collation and col.type_name.lower() in _COLLATABLE_TYPES:
        parts.append(f"COLLATE {col.collation}")
    if col.identity is not None:
        seed, increment = col.identity
        parts.append(f"IDENTITY({seed},{increment})")
    if col.is_rowguidcol:
        parts.append("ROWGUIDCOL ")
    parts.append("NULL" if col.is_nullable else "NOT NULL")
    return "\t" + " ".join(parts)


def render_table(
    table: TableDef,
    *,
    include_keys: bool = True,
    schema_qualify: bool = True,
) -> list[str]:
    """CREATE TABLE with PRIMARY KEY / UNIQUE constraints inline."""
    target = qualified(table.schema, table.name, schema_qualify=schema_qualify)
    body = [_column_line(c) for c in table.columns]
    if include_keys:
        for key in table.key_constraints:
            kind = "PRIMARY KEY" if key.is_primary_key else "UNIQUE"
            clustering = "CLUSTERED" if key.is_clustered else "NONCLUSTERED"
            body.append(
                f" CONSTRAINT {quote_name(key.name)} {kind} {clustering} "
                f"({_key_list(key.columns)})"
            )
    on = f" ON {quote_name(table.data_space)}" if table.data_space else ""
    return [f"CREATE TABLE {target}(\n" + ",\n".join(body) + f"\n){on}"]


def render_defaults(table: TableDef, *, schema_qualify: bool = True) -> list[str]:
    target = qualified(table.schema, table.name, schema_qualify=schema_qualify)
    out: list[str] = []
    for col in table.columns:
        if col.default_definition is None:
            continue
        constraint = f"CONSTRAINT {quote_name(col.default_name)} " if col.default_name else ""
        out.append(
            f"ALTER TABLE {target} ADD  {constraint}DEFAULT {col.default_definition} "
            f"FOR {quote_name(col.name)}"
        )
    return out


def render_checks(table: TableDef, *, schema_qualify: bool = True) -> list[str]:
    target = qualified(table.schema, table.name, schema_qualify=schema_qualify)
    out: list[str] = []
    for ck in table.checks:
        mode = "NOCHECK" if ck.is_not_trusted else "CHECK"
        out.append(
            f"ALTER TABLE {target}  WITH {mode} ADD  CONSTRAINT {quote_name(ck.name)} "
            f"CHECK  {ck.definition}"
        )
        state = "NOCHECK" if ck.is_disabled else "CHECK"
        out.append(f"ALTER TABLE {target} {state} CONSTRAINT {quote_name(ck.name)}")
    return out


def render_indexes(
    table: TableDef,
    *,
    clustered: bool = True,
    nonclustered: bool = True,
    schema_qualify: bool = True,
) -> list[str]:
    target = qualified(table.schema, table.name, schema_qualify=schema_qualify)
    out: list[str] = []
    for ix in table.indexes:
        if ix.is_clustered and not clustered:
            continue
        if not ix.is_clustered and not nonclustered:
            continue
        unique = "UNIQUE " if ix.is_unique else ""
        clustering = "CLUSTERED" if ix.is_clustered else "NONCLUSTERED"
        stmt = (
            f"CREATE {unique}{clustering} INDEX {quote_name(ix.name)} ON {target}\n"
            f"({_key_list(ix.columns)})"
        )
        if ix.included:
            stmt += "\nINCLUDE(" + ", ".join(quote_name(c) for c in ix.included) + ")"
        if ix.filter_definition:
            stmt += f"\nWHERE {ix.filter_definition}"
        out.append(stmt)
    return out


def _referential_action(action: str) -> str:
    return action.replace("_", " ")


def render_foreign_keys(table: TableDef, *, schema_qualify: bool = True) -> list[str]:
    target = qualified(table.schema, table.name, schema_qualify=schema_qualify)
    out: list[str] = []
    for fk in table.foreign_keys:
        mode = "NOCHECK" if fk.is_not_trusted else "CHECK"
        cols = ", ".join(quote_name(c) for c in fk.columns)
        ref_cols = ", ".join(quote_name(c) for c in fk.referenced_columns)
        ref = qualified(fk.referenced_schema, fk.referenced_table, schema_qualify=schema_qualify)
        stmt = (
            f"ALTER TABLE {target}  WITH {mode} ADD  CONSTRAINT {quote_name(fk.name)} "
            f"FOREIGN KEY({cols})\nREFERENCES {ref} ({ref_cols})"
        )
        if fk.on_delete != "NO_ACTION":
            stmt += f"\nON DELETE {_referential_action(fk.on_delete)}"
        if fk.on_update != "NO_ACTION":
            stmt += f"\nON UPDATE {_referential_action(fk.on_update)}"
        out.append(stmt)
        state = "NOCHECK" if fk.is_disabled else "CHECK"
        out.append(f"ALTER TABLE {target} {state} CONSTRAINT {quote_name(fk.name)}")
    return out


def render_fulltext_index(table: TableDef, *, schema_qualify: bool = True) -> list[str]:
    ft = table.fulltext
    if ft is None or not ft.columns:
        return []
    target = qualified(table.schema, table.name, schema_qualify=schema_qualify)
    cols = ",\n".join(f"{quote_name(c)} LANGUAGE {lang}" for c, lang in ft.columns)
    return [
        f"CREATE FULLTEXT INDEX ON {target}(\n{cols})\n"
        f"KEY INDEX {quote_name(ft.key_index)} ON {quote_name(ft.catalog)}\n"
        f"WITH (CHANGE_TRACKING = {ft.change_tracking})"
    ]


# --- modules --------------------------------------------------------------


def render_module(module: ModuleDef, *, schema_qualify: bool = True) -> list[str]:
    """
    Emit a module's definition with the SET options it was created under.

    Encrypted modules cannot be scripted; a comment stands in their place.
    """
    name = qualified(module.schema, module.name, schema_qualify=schema_qualify)
    if module.definition is None:
        return [f"-- {name} is encrypted and was not scripted"]
    batches = [
        f"SET ANSI_NULLS {'ON' if module.uses_ansi_nulls else 'OFF'}",
        f"SET QUOTED_IDENTIFIER {'ON' if module.uses_quoted_identifier else 'OFF'}",
        module.definition.strip(),
    ]
    if module.is_disabled and module.parent:
        batches.append(f"DISABLE TRIGGER {name} ON {module.parent}")
    return batches


# --- permissions and extended properties -----------------------------------


@dataclass(frozen=True)
class PermissionDef:
    """
    One row of sys.database_permissions.

    `securable` is None for database-scope permissions, a quoted object name
    or a `SCHEMA::[name]` class-qualified name otherwise.
    """

    state: str
    permission: str
    grantee: str
    securable: str | None = None
    columns: tuple[str, ...] = ()
    grantor: str | None = None


def render_permission(perm: PermissionDef) -> str:
    verb = {"GRANT_WITH_GRANT_OPTION": "GRANT", "DENY": "DENY", "REVOKE": "REVOKE"}.get(
        perm.state, "GRANT"
    )
    stmt = f"{verb} {perm.permission}"
    if perm.securable:
        stmt += f" ON {perm.securable}"
        if perm.columns:
            stmt += " (" + ", ".join(quote_name(c) for c in perm.columns) + ")"
    stmt += f" {'FROM' if verb == 'REVOKE' else 'TO'} {quote_name(perm.grantee)}"
    if perm.state == "GRANT_WITH_GRANT_OPTION":
        stmt += " WITH GRANT OPTION"
    if perm.grantor:
        stmt += f" AS {quote_name(perm.grantor)}"
    return stmt


@dataclass(frozen=True)
class ExtendedPropertyDef:
    name: str
    value: str
    level0type: str | None = None
    level0name: str | None = None
    level1type: str | None = None
    level1name: str | None = None
    level2type: str | None = None
    level2name: str | None = None


def render_extended_property(prop: ExtendedPropertyDef) -> str:
    parts = [f"@name={quote_string(prop.name)}", f"@value={quote_string(prop.value)}"]
    for level in ("0", "1", "2"):
        level_type = getattr(prop, f"level{level}type")
        level_name = getattr(prop, f"level{level}name")
        if level_type is None:
            break
        parts.append(f"@level{level}type={quote_string(level_type)}")
        parts.append(f"@level{level}name={quote_string(level_name or '')}")
    return "EXEC sys.sp_addextendedproperty " + " , ".join(parts)


def render_drop(ref: ObjectRef, *, schema_qualify: bool = True) -> str:
    keyword = _DROP_KEYWORDS[ref.kind]
    name = qualified(ref.schema, ref.name, schema_qualify=schema_qualify)
    if ref.kind == ObjectKind.TRIGGER:
        return f"DROP TRIGGER IF EXISTS {name} ON DATABASE"
    return f"DROP {keyword} IF EXISTS {name}"
