from pathlib import Path

import pytest
from typer.testing import CliRunner

from ddlops.cli.cli import app
from ddlops.cli.common.context import ExportAppContext, ReplayAppContext
from ddlops.core.config import Settings
from ddlops.core.models import CommandResult

runner = CliRunner()


def _text(result) -> str:
    """Console output with line wrapping undone."""
    return " ".join(result.output.split())


@pytest.fixture
def servers(monkeypatch, fake_server):
    """Route the export command to in-memory servers keyed by name."""
    known: dict = {}

    def connect(target):
        if target.name not in known:
            raise ConnectionError(f"Cannot reach {target.name}")
        return known[target.name]

    monkeypatch.setattr(
        "ddlops.cli.commands.export.build_export_context",
        lambda settings: ExportAppContext(settings=settings, connect=connect),
    )
    return known


class RecordingRunner:
    def __init__(self, exit_codes: dict[str, int] | None = None):
        self.exit_codes = exit_codes or {}
        self.scripts: list[str] = []

    def run(self, args, on_output=None):
        name = Path(args[args.index("-i") + 1]).name
        self.scripts.append(name)
        return CommandResult(exit_code=self.exit_codes.get(name, 0))


@pytest.fixture
def sqlcmd_runner(monkeypatch):
    recording = RecordingRunner()
    monkeypatch.setattr(
        "ddlops.cli.commands.replay.build_replay_context",
        lambda settings: ReplayAppContext(settings=settings, sqlcmd="sqlcmd", runner=recording),
    )
    return recording


def test_export_writes_schema_log_and_summary(tmp_path, servers, fake_server):
    servers["SQL01"] = fake_server()

    result = runner.invoke(app, ["export", "-s", "SQL01", "-o", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "SQL01_SalesDB_DDL.sql").exists()
    assert len(list(tmp_path.glob("SchemaExport_Log_*.log"))) == 1
    assert len(list(tmp_path.glob("SchemaExport_Summary_*.html"))) == 1


def test_export_unreachable_server_still_writes_reports(tmp_path, servers, fake_server):
    servers["SQL02"] = fake_server()

    result = runner.invoke(app, ["export", "-s", "down01,SQL02", "-o", str(tmp_path)])

    assert result.exit_code == 1
    assert (tmp_path / "SQL02_SalesDB_DDL.sql").exists()
    log = next(tmp_path.glob("SchemaExport_Log_*.log")).read_text(encoding="utf-8")
    assert "[FAILURE] Server: down01" in log
    assert "Cannot reach down01" in log


def test_export_reads_servers_from_csv(tmp_path, servers, fake_server):
    servers["SQL01"] = fake_server()
    csv_file = tmp_path / "servers.csv"
    csv_file.write_text("ServerName\nSQL01\n\n", encoding="utf-8")
    out_dir = tmp_path / "out"

    result = runner.invoke(app, ["export", "-i", str(csv_file), "-o", str(out_dir)])

    assert result.exit_code == 0, result.output
    assert (out_dir / "SQL01_SalesDB_DDL.sql").exists()


def test_export_requires_exactly_one_server_source(tmp_path, servers):
    csv_file = tmp_path / "servers.csv"
    csv_file.write_text("ServerName\nSQL01\n", encoding="utf-8")

    neither = runner.invoke(app, ["export", "-o", str(tmp_path)])
    both = runner.invoke(app, ["export", "-s", "SQL01", "-i", str(csv_file), "-o", str(tmp_path)])

    assert neither.exit_code == 1
    assert "Provide either" in _text(neither)
    assert both.exit_code == 1
    assert "not both" in _text(both)
    assert not list(tmp_path.glob("SchemaExport_Log_*.log"))


def test_clean_comments_out_lines(sql_folder):
    path = sql_folder("a.sql", "CREATE ROLE [r]\nGO\n")

    result = runner.invoke(app, ["clean", str(sql_folder.folder)])

    assert result.exit_code == 0, result.output
    assert path.read_text(encoding="utf-8") == "-- CREATE ROLE [r]\nGO\n"


def test_clean_dry_run_leaves_files(sql_folder):
    path = sql_folder("a.sql", "ALTER DATABASE [x] SET RECOVERY FULL\n")

    result = runner.invoke(app, ["clean", str(sql_folder.folder), "--dry-run"])

    assert result.exit_code == 0
    assert path.read_text(encoding="utf-8") == "ALTER DATABASE [x] SET RECOVERY FULL\n"


def test_clean_missing_folder_fails(tmp_path):
    result = runner.invoke(app, ["clean", str(tmp_path / "missing")])

    assert result.exit_code == 1
    assert "does not exist" in _text(result)


def test_clean_uses_configured_default_folder(monkeypatch, sql_folder):
    path = sql_folder("a.sql", "CREATE ROLE [r]\n")
    monkeypatch.setenv("DDLOPS_CLEAN_DIR", str(sql_folder.folder))

    result = runner.invoke(app, ["clean"])

    assert result.exit_code == 0, result.output
    assert path.read_text(encoding="utf-8") == "-- CREATE ROLE [r]\n"


def test_replay_runs_all_files_and_reports_failure(sql_folder, sqlcmd_runner):
    sql_folder("02_data.sql")
    sql_folder("01_schema.sql")
    sqlcmd_runner.exit_codes["02_data.sql"] = 1

    result = runner.invoke(
        app, ["replay", "-d", str(sql_folder.folder), "-S", "SQL01", "-D", "SalesDB"]
    )

    assert result.exit_code == 1
    assert sqlcmd_runner.scripts == ["01_schema.sql", "02_data.sql"]


def test_replay_success(sql_folder, sqlcmd_runner):
    sql_folder("01_schema.sql")

    result = runner.invoke(
        app, ["replay", "-d", str(sql_folder.folder), "-S", "SQL01", "-D", "SalesDB"]
    )

    assert result.exit_code == 0, result.output
    assert sqlcmd_runner.scripts == ["01_schema.sql"]


def test_replay_dry_run_executes_nothing(sql_folder, sqlcmd_runner):
    sql_folder("01_schema.sql")

    result = runner.invoke(
        app,
        ["replay", "-d", str(sql_folder.folder), "-S", "SQL01", "-D", "SalesDB", "--dry-run"],
    )

    assert result.exit_code == 0
    assert "01_schema.sql" in _text(result)
    assert sqlcmd_runner.scripts == []


def test_replay_confirm_declined(monkeypatch, sql_folder, sqlcmd_runner):
    sql_folder("01_schema.sql")
    monkeypatch.setattr(
        "ddlops.cli.common.output.Out.confirm", lambda self, message, **kwargs: False
    )

    result = runner.invoke(
        app,
        ["replay", "-d", str(sql_folder.folder), "-S", "SQL01", "-D", "SalesDB", "--confirm"],
    )

    assert result.exit_code == 0
    assert "Cancelled" in _text(result)
    assert sqlcmd_runner.scripts == []


def test_replay_missing_directory_fails(tmp_path, sqlcmd_runner):
    result = runner.invoke(
        app, ["replay", "-d", str(tmp_path / "missing"), "-S", "SQL01", "-D", "SalesDB"]
    )

    assert result.exit_code == 1
    assert sqlcmd_runner.scripts == []


def test_replay_without_sqlcmd_fails(monkeypatch, sql_folder):
    sql_folder("01_schema.sql")
    monkeypatch.setattr("ddlops.cli.common.context.find_sqlcmd", lambda executable: None)

    result = runner.invoke(
        app, ["replay", "-d", str(sql_folder.folder), "-S", "SQL01", "-D", "SalesDB"]
    )

    assert result.exit_code == 1
    assert "not found" in _text(result)
