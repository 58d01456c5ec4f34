import pytest
from typer.testing import CliRunner

from cli import main as cli_main
from vctransfer.errors import ConnectionFailedError, QueryError, TableNotFoundError
from vctransfer.transfer.bulk_copy import CopyResult
from vctransfer.transfer.reconciler import ReconcileStats

from fakes import make_config

runner = CliRunner()


@pytest.fixture
def cfg(tmp_path, monkeypatch):
    config = make_config(tmp_path)
    loaded = []

    def fake_load_config(path):
        loaded.append(path)
        return config

    monkeypatch.setattr(cli_main, "load_config", fake_load_config)
    return config, loaded


def test_no_subcommand_prints_help():
    result = runner.invoke(cli_main.app, [])

    assert result.exit_code == 0
    assert "transfer-names" in result.output


def test_test_command_success(cfg, monkeypatch):
    monkeypatch.setattr(cli_main.commands, "check_connection", lambda c: None)

    result = runner.invoke(cli_main.app, ["test"])

    assert result.exit_code == 0
    assert "Database connection is working" in result.output


def test_config_option_is_passed_through(cfg, monkeypatch, tmp_path):
    _, paths = cfg
    monkeypatch.setattr(cli_main.commands, "check_connection", lambda c: None)

    result = runner.invoke(cli_main.app, ["--config", str(tmp_path / "prod.yaml"), "test"])

    assert result.exit_code == 0
    assert paths == [tmp_path / "prod.yaml"]


@pytest.mark.parametrize(
    "error",
    [
        ConnectionFailedError("Unable to connect to database"),
        TableNotFoundError("smart_contracts"),
        QueryError("Dump of smart_contracts failed"),
    ],
)
def test_fatal_errors_exit_with_one(cfg, monkeypatch, error):
    def boom(c):
        raise error

    monkeypatch.setattr(cli_main.commands, "dump", boom)

    result = runner.invoke(cli_main.app, ["dump"])

    assert result.exit_code == 1
    assert str(error) in result.output


def test_dump_reports_path(cfg, monkeypatch, tmp_path):
    path = tmp_path / "dump-smart_contracts.bin"
    monkeypatch.setattr(cli_main.commands, "dump", lambda c: CopyResult(table="smart_contracts", path=path, rows=12))

    result = runner.invoke(cli_main.app, ["dump"])

    assert result.exit_code == 0
    assert "12 rows" in result.output


def test_load_and_transfer_succeed(cfg, monkeypatch, tmp_path):
    copy = CopyResult(table="smart_contracts", path=tmp_path / "d.bin")
    monkeypatch.setattr(cli_main.commands, "load", lambda c: copy)
    monkeypatch.setattr(cli_main.commands, "transfer", lambda c: copy)

    assert runner.invoke(cli_main.app, ["load"]).exit_code == 0
    result = runner.invoke(cli_main.app, ["transfer"])
    assert result.exit_code == 0
    assert "Data transferred successfully" in result.output


def test_transfer_names_row_failures_are_not_fatal(cfg, monkeypatch):
    stats = ReconcileStats(total_rows=3, inserted=1, skipped=1)
    stats.record_failure("0xbb", "duplicate key value")
    monkeypatch.setattr(cli_main.commands, "transfer_names", lambda c, on_progress=None: stats)

    result = runner.invoke(cli_main.app, ["transfer-names"])

    assert result.exit_code == 0
    assert "1 rows failed to insert" in result.output
    assert "0xbb" in result.output


def test_transfer_names_reports_progress_while_running(cfg, monkeypatch):
    shown = []
    progress_text = cli_main._progress_text

    def recording_progress_text(stats):
        shown.append(progress_text(stats))
        return shown[-1]

    def fake_transfer_names(c, on_progress=None):
        stats = ReconcileStats()
        for inserted in (True, False):
            stats.total_rows += 1
            if inserted:
                stats.inserted += 1
            else:
                stats.skipped += 1
            on_progress(stats)
        return stats

    monkeypatch.setattr(cli_main, "_progress_text", recording_progress_text)
    monkeypatch.setattr(cli_main.commands, "transfer_names", fake_transfer_names)

    result = runner.invoke(cli_main.app, ["transfer-names"])

    assert result.exit_code == 0
    assert shown == [
        "Transferring address names... 1 read, 1 inserted, 0 skipped, 0 failed",
        "Transferring address names... 2 read, 1 inserted, 1 skipped, 0 failed",
    ]


def test_config_error_exits_with_one(tmp_path):
    result = runner.invoke(cli_main.app, ["--config", str(tmp_path / "missing.yaml"), "test"])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
