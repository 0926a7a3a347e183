"""Tests for the operator CLI."""

import pytest
from typer.testing import CliRunner

from src.signin.cli import app

runner = CliRunner()

CONFIG_TEMPLATE = """
config:
  app:
    environment: test
  logging:
    file: null
  database:
    url: sqlite:///{db_path}
"""


@pytest.fixture(autouse=True)
def cli_config(tmp_path, monkeypatch):
    """Point the CLI at a throwaway SQLite database."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(CONFIG_TEMPLATE.format(db_path=tmp_path / "cli.db"))
    monkeypatch.setenv("APP_CONFIG_FILE", str(config_file))
    monkeypatch.setenv("APP_ENVIRONMENT", "test")
    # Wide console so rich tables never wrap emails
    monkeypatch.setenv("COLUMNS", "200")

    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 0, result.output
    return config_file


class TestUserCommands:
    def test_list_empty(self):
        result = runner.invoke(app, ["users", "list"])

        assert result.exit_code == 0
        assert "No users found" in result.output

    def test_add_and_list(self):
        result = runner.invoke(app, ["users", "add", "alice@example.com", "--name", "Alice"])
        assert result.exit_code == 0, result.output
        assert "Created user 'alice@example.com'" in result.output

        result = runner.invoke(app, ["users", "list"])
        assert result.exit_code == 0
        assert "alice@example.com" in result.output
        assert "Found 1 users" in result.output

    def test_add_duplicate_fails(self):
        runner.invoke(app, ["users", "add", "alice@example.com"])

        result = runner.invoke(app, ["users", "add", "alice@example.com"])

        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_show(self):
        runner.invoke(app, ["users", "add", "alice@example.com", "--verified"])

        result = runner.invoke(app, ["users", "show", "alice@example.com"])

        assert result.exit_code == 0
        assert "alice@example.com" in result.output
        assert "No linked accounts" in result.output

    def test_show_missing(self):
        result = runner.invoke(app, ["users", "show", "nobody@example.com"])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_delete_with_force(self):
        runner.invoke(app, ["users", "add", "alice@example.com"])

        result = runner.invoke(app, ["users", "delete", "alice@example.com", "--force"])

        assert result.exit_code == 0
        assert "Deleted user" in result.output
        assert "No users found" in runner.invoke(app, ["users", "list"]).output

    def test_delete_cancelled(self):
        runner.invoke(app, ["users", "add", "alice@example.com"])

        result = runner.invoke(app, ["users", "delete", "alice@example.com"], input="n\n")

        assert result.exit_code == 0
        assert "Deletion cancelled" in result.output
        assert "alice@example.com" in runner.invoke(app, ["users", "list"]).output
