"""Runtime settings resolved from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

ODBC_DRIVER_ENV = "DDLOPS_ODBC_DRIVER"
TRUST_CERT_ENV = "DDLOPS_TRUST_SERVER_CERTIFICATE"
CONNECT_TIMEOUT_ENV = "DDLOPS_CONNECT_TIMEOUT"
SQLCMD_ENV = "DDLOPS_SQLCMD"
CLEAN_DIR_ENV = "DDLOPS_CLEAN_DIR"

DEFAULT_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"
DEFAULT_CONNECT_TIMEOUT = 30
DEFAULT_SQLCMD = "sqlcmd"
# Folder the exporter output is usually copied to before cleanup.
DEFAULT_CLEAN_DIR = Path(r"C:\SQLScripts\SchemaExport")


@dataclass(frozen=True)
class Settings:
    """Tool-wide settings; see `load_settings` for the environment overrides."""

    odbc_driver: str = DEFAULT_ODBC_DRIVER
    trust_server_certificate: bool = True
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    sqlcmd: str = DEFAULT_SQLCMD
    clean_dir: Path = DEFAULT_CLEAN_DIR


def _flag(raw: str | None, default: bool) -> bool:
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _int(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        return max(int(raw), 0)
    except ValueError:
        return default


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """
    Build Settings from the environment.

    Malformed numeric values fall back to their defaults; empty strings are
    treated as unset.
    """
    env = os.environ if environ is None else environ
    clean_dir = env.get(CLEAN_DIR_ENV, "").strip()
    return Settings(
        odbc_driver=env.get(ODBC_DRIVER_ENV, "").strip() or DEFAULT_ODBC_DRIVER,
        trust_server_certificate=_flag(env.get(TRUST_CERT_ENV), True),
        connect_timeout=_int(env.get(CONNECT_TIMEOUT_ENV), DEFAULT_CONNECT_TIMEOUT),
        sqlcmd=env.get(SQLCMD_ENV, "").strip() or DEFAULT_SQLCMD,
        clean_dir=Path(clean_dir) if clean_dir else DEFAULT_CLEAN_DIR,
    )
