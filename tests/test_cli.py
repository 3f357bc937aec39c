from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from switchboard import cli


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda level=None: None)


def test_states_lists_the_flow() -> None:
    runner = CliRunner()

    result = runner.invoke(cli.app, ["states"])

    assert result.exit_code == 0
    assert "initial: intro" in result.stdout
    assert "session1_end" in result.stdout
    assert "terminal" in result.stdout


def test_simulate_runs_first_session_and_prints_metrics() -> None:
    runner = CliRunner()

    result = runner.invoke(cli.app, ["simulate", "--identity", "111"], input="1\nJohn\nDoe\n\n0\nyes\n")

    assert result.exit_code == 0
    assert "Welcome to HNP?" in result.stdout
    assert "Thank you. You have almost completed" in result.stdout
    assert "first_session_completed" in result.stdout


def test_simulate_timeout_command_closes_session() -> None:
    runner = CliRunner()

    result = runner.invoke(cli.app, ["simulate"], input="1\n!timeout\n")

    assert result.exit_code == 0
    assert "session timed out" in result.stdout
    assert "possible_timeout_in.fname" in result.stdout


def test_bad_config_file_exits_with_error(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli.app, ["states", "--config", str(tmp_path / "missing.json")])

    assert result.exit_code == 1
    assert "Cannot read config file" in result.stdout
