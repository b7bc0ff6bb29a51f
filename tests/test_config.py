from pathlib import Path

from ddlops.core.config import DEFAULT_CLEAN_DIR, Settings, load_settings


def test_defaults_without_environment():
    assert load_settings({}) == Settings()


def test_environment_overrides():
    settings = load_settings(
        {
            "DDLOPS_ODBC_DRIVER": "ODBC Driver 17 for SQL Server",
            "DDLOPS_TRUST_SERVER_CERTIFICATE": "no",
            "DDLOPS_CONNECT_TIMEOUT": "5",
            "DDLOPS_SQLCMD": "/opt/mssql-tools18/bin/sqlcmd",
            "DDLOPS_CLEAN_DIR": "/tmp/export",
        }
    )

    assert settings.odbc_driver == "ODBC Driver 17 for SQL Server"
    assert settings.trust_server_certificate is False
    assert settings.connect_timeout == 5
    assert settings.sqlcmd == "/opt/mssql-tools18/bin/sqlcmd"
    assert settings.clean_dir == Path("/tmp/export")


def test_blank_and_malformed_values_fall_back():
    settings = load_settings(
        {
            "DDLOPS_ODBC_DRIVER": "  ",
            "DDLOPS_TRUST_SERVER_CERTIFICATE": "",
            "DDLOPS_CONNECT_TIMEOUT": "soon",
            "DDLOPS_CLEAN_DIR": " ",
        }
    )

    assert settings.odbc_driver == "ODBC Driver 18 for SQL Server"
    assert settings.trust_server_certificate is True
    assert settings.connect_timeout == 30
    assert settings.clean_dir == DEFAULT_CLEAN_DIR


def test_negative_timeout_is_clamped():
    assert load_settings({"DDLOPS_CONNECT_TIMEOUT": "-3"}).connect_timeout == 0
