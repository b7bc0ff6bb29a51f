"""Connection helpers for SQL Server.

This module centralizes creation of ODBC connection strings and applies
small but important normalization rules (such as brace-quoting values)
so user input can never inject connection-string keywords.
"""

from __future__ import annotations

import re

from ddlops.core.config import Settings
from ddlops.core.models import ServerTarget


class ConnectError(RuntimeError):
    """Raised when a SQL Server connection cannot be opened."""


def _quote_value(value: str) -> str:
    """
    Quote an ODBC attribute value when needed.

    Values containing `;`, `{` or `}`, or with surrounding whitespace, are
    wrapped in braces with any `}` doubled.
    """
    if any(ch in value for ch in ";{}") or value != value.strip():
        return "{" + value.replace("}", "}}") + "}"
    return value


def build_connection_string(
    target: ServerTarget,
    settings: Settings,
    *,
    database: str | None = None,
) -> str:
    """
    Return an ODBC connection string for the given server.

    SQL Server Authentication is used when both a username and a password
    are supplied; otherwise Integrated (Windows) Authentication.
    """
    parts = [
        f"DRIVER={{{settings.odbc_driver}}}",
        f"SERVER={_quote_value(target.name.strip())}",
    ]
    if database:
        parts.append(f"DATABASE={_quote_value(database)}")
    if target.uses_sql_auth:
        parts.append(f"UID={_quote_value(target.username or '')}")
        parts.append(f"PWD={_quote_value(target.password or '')}")
    else:
        parts.append("Trusted_Connection=yes")
    if settings.trust_server_certificate:
        parts.append("TrustServerCertificate=yes")
    parts.append("Application Name=ddlops")
    return ";".join(parts) + ";"


# A PWD value is either brace-quoted (with `}}` as an escaped brace) or runs to the next `;`.
_PWD_RE = re.compile(r"(^|;)(\s*PWD\s*=)(\{(?:[^}]|\}\})*\}|[^;]*)", re.IGNORECASE)


def mask_connection_string(conn_str: str) -> str:
    """Return the connection string with the password value replaced."""
    return _PWD_RE.sub(r"\1\2***", conn_str)


def _describe(exc: BaseException) -> str:
    """
    Render one exception as text.

    pyodbc errors carry `(sqlstate, message)` in `args`; the message part is
    the useful one.
    """
    args = getattr(exc, "args", ())
    if len(args) >= 2 and isinstance(args[1], str) and args[1].strip():
        return args[1].strip()
    text = str(exc).strip()
    return text or type(exc).__name__


def innermost_message(exc: BaseException) -> str:
    """
    Walk the exception cause chain and return the deepest error's message.

    Explicit causes (`raise ... from`) win over implicit context. Cycles in
    the chain are tolerated.
    """
    seen: set[int] = set()
    current = exc
    while id(current) not in seen:
        seen.add(id(current))
        nxt = current.__cause__ or current.__context__
        if nxt is None:
            break
        current = nxt
    return _describe(current)
