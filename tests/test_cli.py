"""Tests for the Helmsman CLI.

Commands run in-process through click's CliRunner against a temporary
SQLite database.
"""

import pytest
from click.testing import CliRunner

from helmsman import __version__
from helmsman.cli import cli
from helmsman.core.models import Action, ActionStatus, Tier
from helmsman.storage.repository import ActionRepository


@pytest.fixture
def db_url(tmp_path, monkeypatch):
    url = str(tmp_path / "cli.db")
    monkeypatch.setenv("HELMSMAN_DB_URL", url)
    return url


@pytest.fixture
def pending_action(db_url):
    repo = ActionRepository(db_url)
    action = repo.insert(
        Action(tier=Tier.RED, description="Remove temp", command="Remove-Item C:\\tmp", module="powershell")
    )
    repo.close()
    return action


class TestCLIBasic:
    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("serve", "scan", "tools", "classify", "actions", "resolve", "organize", "status"):
            assert command in result.output

    def test_invalid_subcommand(self):
        assert CliRunner().invoke(cli, ["nonexistent"]).exit_code != 0

    def test_serve_help(self):
        result = CliRunner().invoke(cli, ["serve", "--help"])
        assert result.exit_code == 0
        assert "--port" in result.output


class TestClassify:
    @pytest.mark.parametrize(
        ("command", "tier"),
        [("Get-Process", "green"), ("Remove-Item x", "red"), ("winget install git", "yellow")],
    )
    def test_prints_tier(self, command, tier):
        result = CliRunner().invoke(cli, ["classify", command])
        assert result.exit_code == 0
        assert result.output.strip() == tier


class TestActions:
    def test_empty(self, db_url):
        result = CliRunner().invoke(cli, ["actions"])
        assert result.exit_code == 0
        assert "No actions found." in result.output

    def test_lists_pending(self, pending_action):
        result = CliRunner().invoke(cli, ["actions", "--status", "pending"])
        assert result.exit_code == 0
        assert pending_action.id[:12] in result.output
        assert "Remove-Item" in result.output

    def test_rejects_unknown_status(self, db_url):
        assert CliRunner().invoke(cli, ["actions", "--status", "bogus"]).exit_code != 0


class TestResolve:
    def test_deny(self, pending_action, db_url):
        result = CliRunner().invoke(cli, ["resolve", pending_action.id, "--deny"])
        assert result.exit_code == 0
        assert "denied" in result.output

        repo = ActionRepository(db_url)
        try:
            assert repo.get(pending_action.id).status == ActionStatus.DENIED
        finally:
            repo.close()

    def test_unknown_action(self, db_url):
        result = CliRunner().invoke(cli, ["resolve", "missing-id", "--approve"])
        assert result.exit_code == 1

    def test_requires_decision(self, pending_action):
        assert CliRunner().invoke(cli, ["resolve", pending_action.id]).exit_code != 0


class TestOrganize:
    def test_dry_run(self, tmp_path):
        (tmp_path / "a.pdf").write_text("x")
        result = CliRunner().invoke(cli, ["organize", str(tmp_path), "--dry-run"])
        assert result.exit_code == 0
        assert "Would move: 1 files" in result.output
        assert (tmp_path / "a.pdf").exists()

    def test_execute(self, tmp_path):
        (tmp_path / "a.pdf").write_text("x")
        result = CliRunner().invoke(cli, ["organize", str(tmp_path)])
        assert result.exit_code == 0
        assert "Moved: 1 files" in result.output
        assert (tmp_path / "Documents" / "a.pdf").exists()

    def test_missing_path(self, tmp_path):
        assert CliRunner().invoke(cli, ["organize", str(tmp_path / "nope")]).exit_code != 0


class TestStatusAndTools:
    def test_status(self, pending_action):
        result = CliRunner().invoke(cli, ["status"])
        assert result.exit_code == 0
        assert "Helmsman Status" in result.output
        assert __version__ in result.output
        assert "pending" in result.output
        assert "packages" in result.output

    def test_tools_before_scan(self, db_url):
        result = CliRunner().invoke(cli, ["tools"])
        assert result.exit_code == 0
        assert "No tools found" in result.output
