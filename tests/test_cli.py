"""Tests for the command-line interface."""

import pytest
from click.testing import CliRunner

from make2manage.cli.main import cli

LEVEL_YAML = """
id: cli-level
name: CLI Level
scheduledOrders:
  - releaseTimeMinutes: 0
    order: {id: ORD-001, route: [1, 2]}
  - releaseTimeMinutes: 2
    order: {id: ORD-002, route: [3, 4]}
"""


@pytest.fixture
def runner(tmp_path, monkeypatch):
    """CLI runner with saves redirected to a temp directory."""
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    return CliRunner()


@pytest.fixture
def level_file(tmp_path):
    path = tmp_path / "level.yaml"
    path.write_text(LEVEL_YAML)
    return path


class TestRun:
    """Tests for the run command."""

    def test_run_procedural(self, runner):
        result = runner.invoke(cli, ["run", "--duration", "15", "--tick", "10000", "--seed", "42"])

        assert result.exit_code == 0, result.output
        assert "Seed 42" in result.output
        assert "completed" in result.output

    def test_run_level(self, runner, level_file):
        result = runner.invoke(
            cli, ["run", "--duration", "15", "--tick", "10000", "--level", str(level_file)]
        )

        assert result.exit_code == 0, result.output
        assert "CLI Level (2 orders)" in result.output

    def test_run_and_save(self, runner):
        result = runner.invoke(
            cli, ["run", "--duration", "15", "--tick", "10000", "--seed", "7", "--save", "1"]
        )
        assert result.exit_code == 0, result.output
        assert "saved to slot 1" in result.output

        listed = runner.invoke(cli, ["saves"])
        assert listed.exit_code == 0
        assert "Saved Sessions" in listed.output

        shown = runner.invoke(cli, ["show", "1"])
        assert shown.exit_code == 0
        assert "Seed 7" in shown.output

    def test_bad_policy(self, runner):
        result = runner.invoke(cli, ["run", "--policy", "2-EDD"])

        assert result.exit_code == 2
        assert "DEPT=RULE" in result.output

    def test_malformed_seed(self, runner):
        result = runner.invoke(cli, ["run", "--duration", "15", "--seed", "two words"])

        assert result.exit_code == 1
        assert "Simulation error" in result.output


class TestLevelsAndSaves:
    """Tests for validate-level, saves, show and rules."""

    def test_validate_level(self, runner, level_file):
        result = runner.invoke(cli, ["validate-level", str(level_file)])

        assert result.exit_code == 0, result.output
        assert "Level is valid" in result.output

    def test_validate_level_with_duplicates(self, runner, tmp_path):
        path = tmp_path / "dupes.yaml"
        path.write_text(LEVEL_YAML.replace("ORD-002", "ORD-001"))

        result = runner.invoke(cli, ["validate-level", str(path)])

        assert result.exit_code == 1
        assert "appears 2 times" in result.output

    def test_validate_broken_level(self, runner, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("id: broken\nscheduledOrders:\n  - order: {id: A}\n")

        result = runner.invoke(cli, ["validate-level", str(path)])

        assert result.exit_code == 1
        assert "Scheduled order 0" in result.output

    def test_no_saves(self, runner):
        result = runner.invoke(cli, ["saves"])

        assert result.exit_code == 0
        assert "No saved sessions" in result.output

    def test_show_missing_slot(self, runner):
        result = runner.invoke(cli, ["show", "7"])

        assert result.exit_code == 1
        assert "No save found in slot 7" in result.output

    def test_rules(self, runner):
        result = runner.invoke(cli, ["rules"])

        assert result.exit_code == 0
        for rule in ("FIFO", "EDD", "SPT"):
            assert rule in result.output
