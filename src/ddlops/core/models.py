"""Core domain models for schema export, cleanup and replay.

These models are plain, immutable records. They are intentionally free of
pyodbc types and UI/CLI concerns so the workflow logic can be exercised
with in-memory stubs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

NORMAL_STATUS = "Normal"


@dataclass(frozen=True)
class ServerTarget:
    """
    A SQL Server instance to connect to.

    Attributes:
        name: Network name or `host\\instance` string, as supplied.
        username: Optional SQL Server Authentication login.
        password: Optional SQL Server Authentication password.
    """

    name: str
    username: str | None = None
    password: str | None = None

    @property
    def uses_sql_auth(self) -> bool:
        """True when both a username and a password were supplied."""
        return bool(self.username) and bool(self.password)


@dataclass(frozen=True)
class DatabaseHandle:
    """A database as listed by a connected server."""

    name: str
    status: str = NORMAL_STATUS

    @property
    def is_normal(self) -> bool:
        return self.status == NORMAL_STATUS


class ObjectKind(str, Enum):
    """Kinds of objects the scripting engine knows how to emit."""

    DATABASE = "Database"
    SCHEMA = "Schema"
    ROLE = "DatabaseRole"
    USER = "User"
    FUNCTION = "UserDefinedFunction"
    PROCEDURE = "StoredProcedure"
    TABLE = "Table"
    VIEW = "View"
    TRIGGER = "DatabaseDdlTrigger"
    SYNONYM = "Synonym"


@dataclass(frozen=True)
class ObjectRef:
    """Identifier of one scriptable object inside a database."""

    kind: ObjectKind
    name: str
    schema: str | None = None

    @property
    def full_name(self) -> str:
        """Bracket-quoted one- or two-part name."""
        name = "[" + self.name.replace("]", "]]") + "]"
        if self.schema is None:
            return name
        return "[" + self.schema.replace("]", "]]") + "]." + name


@dataclass(frozen=True)
class ScriptableObjectSet:
    """The objects requested for one database export, grouped by kind."""

    database: str
    objects: tuple[ObjectRef, ...] = ()

    def of_kind(self, kind: ObjectKind) -> list[ObjectRef]:
        return [o for o in self.objects if o.kind == kind]

    def __len__(self) -> int:
        return len(self.objects)


class EntryStatus(str, Enum):
    """
    Outcome of one unit of work.

    Values:
        SUCCESS: The unit completed.
        FAILURE: The unit failed; the run moved on.
        SKIP: The unit was deliberately not processed.
        INFO: Informational event (e.g. a disconnect).
    """

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    SKIP = "SKIP"
    INFO = "INFO"


@dataclass(frozen=True)
class SummaryEntry:
    """One line of the run record."""

    timestamp: datetime
    server: str
    database: str
    status: EntryStatus
    message: str
    file_path: str = ""


@dataclass
class RunReport:
    """
    Append-only, ordered record of one export run.

    The report is owned by the orchestrator; stages return their entries
    and the orchestrator extends the report with them in order.
    """

    started_at: datetime
    entries: list[SummaryEntry] = field(default_factory=list)

    def extend(self, entries: list[SummaryEntry]) -> None:
        self.entries.extend(entries)

    def count(self, status: EntryStatus) -> int:
        return sum(1 for e in self.entries if e.status == status)

    def counts(self) -> dict[EntryStatus, int]:
        return {status: self.count(status) for status in EntryStatus}

    @property
    def has_failures(self) -> bool:
        return self.count(EntryStatus.FAILURE) > 0


@dataclass(frozen=True)
class CleanResult:
    """Result of post-processing one schema file."""

    path: Path
    commented: int = 0
    written: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class CommandResult:
    """Structured result of one external process invocation."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""


@dataclass(frozen=True)
class ReplayResult:
    """Result of executing one schema file against the target server."""

    path: Path
    exit_code: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and self.error is None
