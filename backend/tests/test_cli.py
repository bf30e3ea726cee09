"""Tests for hookguard CLI commands."""

import pytest
import yaml
from click.testing import CliRunner

from hookguard.cli.main import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def no_environment(monkeypatch):
    monkeypatch.delenv("HOOKGUARD_ENV", raising=False)


class TestConfigShow:
    def test_show_defaults(self, runner):
        result = runner.invoke(cli, ["config", "show"])
        assert result.exit_code == 0
        data = yaml.safe_load(result.output)
        assert data["global"]["maxHookExecutionTimeMs"] == 100
        assert data["featureFlags"]["enableHookMetrics"] is True

    def test_show_file(self, runner, tmp_path):
        path = tmp_path / "hooks.yaml"
        path.write_text("contentCategories:\n  team:\n    enableStrictValidation: true\n")
        result = runner.invoke(cli, ["config", "show", "--file", str(path)])
        assert result.exit_code == 0
        data = yaml.safe_load(result.output)
        assert data["contentCategories"]["team"]["enableStrictValidation"] is True


class TestConfigCheck:
    def test_valid_file(self, runner, tmp_path):
        path = tmp_path / "hooks.yaml"
        path.write_text("environment: production\ncontentCategories:\n  team: {}\n")
        result = runner.invoke(cli, ["config", "check", str(path)])
        assert result.exit_code == 0
        assert "Environment: production" in result.output
        assert "team" in result.output
        assert "Configuration is valid" in result.output

    def test_invalid_value(self, runner, tmp_path):
        path = tmp_path / "hooks.yaml"
        path.write_text("global:\n  maxHookExecutionTimeMs: 1\n")
        result = runner.invoke(cli, ["config", "check", str(path)])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["config", "check", str(tmp_path / "nope.yaml")])
        assert result.exit_code != 0


class TestRulesCheck:
    def test_prints_execution_order(self, runner, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text(
            "team:\n"
            "  team.name-unique:\n"
            "    dependsOn: [team.name-required]\n"
            "  team.name-required:\n"
            "    priority: 10\n"
        )
        result = runner.invoke(cli, ["rules", "check", str(path)])
        assert result.exit_code == 0
        assert "1. team.name-required" in result.output
        assert "2. team.name-unique" in result.output
        assert "Manifest is valid" in result.output

    def test_cycle_fails(self, runner, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text("team:\n  a:\n    dependsOn: [b]\n  b:\n    dependsOn: [a]\n")
        result = runner.invoke(cli, ["rules", "check", str(path)])
        assert result.exit_code == 1
        assert "Circular dependency" in result.output

    def test_invalid_manifest(self, runner, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text("team:\n  a:\n    severity: info\n")
        result = runner.invoke(cli, ["rules", "check", str(path)])
        assert result.exit_code == 1
        assert "Invalid manifest" in result.output
