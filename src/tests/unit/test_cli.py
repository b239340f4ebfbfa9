"""Unit tests for CLI commands."""

import json
import logging
import tomllib
from pathlib import Path

import pytest
import structlog
from click.testing import CliRunner

from quickfix.cli import get_default_config, main


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Commands reconfigure logging; undo it after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def invoke(runner: CliRunner, database_path: Path, tmp_path: Path):
    """Invoke a command against the temporary database."""

    def _invoke(*args: str, **kwargs):
        return runner.invoke(
            main,
            ["--database", str(database_path), *args],
            env={"XDG_CONFIG_HOME": str(tmp_path / "config")},
            **kwargs,
        )

    return _invoke


class TestCliGroup:
    """Tests for main CLI group."""

    def test_cli_help(self, runner: CliRunner) -> None:
        """Test CLI shows help."""
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "QuickFix issue tracker" in result.output

    def test_version(self, runner: CliRunner) -> None:
        """Test the version option."""
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestIssueCommands:
    """Tests for creating, listing and editing issues."""

    def test_empty_list(self, invoke) -> None:
        """Test listing an empty store."""
        result = invoke("issues")

        assert result.exit_code == 0
        assert "No issues." in result.output

    def test_create_and_list(self, invoke) -> None:
        """Test a created issue shows up with its tag."""
        assert invoke("new-tag", "--name", "Work").exit_code == 0
        created = invoke("new-issue", "--tag", "work", "--title", "Fix login")
        assert created.exit_code == 0

        result = invoke("issues", "--tag", "Work")

        assert result.exit_code == 0
        assert "Fix login" in result.output
        assert "[Work]" in result.output
        assert created.output.strip() in result.output

    def test_edit_and_filter_by_status(self, invoke) -> None:
        """Test closing an issue moves it between status filters."""
        issue_id = invoke("new-issue", "--title", "Crash on start").output.strip()

        edited = invoke("edit", issue_id, "--closed", "--priority", "high")
        assert edited.exit_code == 0

        assert "Crash on start" in invoke("issues", "--status", "closed").output
        assert "No issues." in invoke("issues", "--status", "open").output

        shown = invoke("show", issue_id)
        assert "Status:   Closed" in shown.output
        assert "Priority: High" in shown.output

    def test_search(self, invoke) -> None:
        """Test text search over titles."""
        invoke("new-issue", "--title", "Login page broken")
        invoke("new-issue", "--title", "Signup slow")

        result = invoke("issues", "--search", "LOGIN")

        assert "Login page broken" in result.output
        assert "Signup slow" not in result.output

    def test_edit_without_changes(self, invoke) -> None:
        """Test edit insists on at least one change."""
        issue_id = invoke("new-issue").output.strip()

        result = invoke("edit", issue_id)

        assert result.exit_code == 2
        assert "Nothing to change" in result.output

    def test_unknown_issue(self, invoke) -> None:
        """Test an unknown identifier is reported."""
        result = invoke("show", "zzzzzzzz")

        assert result.exit_code == 1
        assert "No issue matches 'zzzzzzzz'" in result.output

    def test_delete_issue(self, invoke) -> None:
        """Test deleting an issue removes it from the list."""
        issue_id = invoke("new-issue", "--title", "Temporary").output.strip()

        assert invoke("delete-issue", issue_id).exit_code == 0

        assert "Temporary" not in invoke("issues").output


class TestTagCommands:
    """Tests for tag commands."""

    def test_tag_and_untag(self, invoke) -> None:
        """Test attaching and detaching tags."""
        invoke("new-tag", "--name", "Home")
        issue_id = invoke("new-issue", "--title", "Paint fence").output.strip()

        assert invoke("tag", issue_id, "Home").exit_code == 0
        assert "Tags:     Home" in invoke("show", issue_id).output

        assert invoke("untag", issue_id, "home").exit_code == 0
        assert "Tags:     No tags" in invoke("show", issue_id).output

    def test_tags_with_open_counts(self, invoke) -> None:
        """Test tag listing shows open issue counts."""
        invoke("new-tag", "--name", "Work")
        invoke("new-issue", "--tag", "Work")
        closed = invoke("new-issue", "--tag", "Work").output.strip()
        invoke("edit", closed, "--closed")

        result = invoke("tags")

        assert "Work  (1 open)" in result.output

    def test_rename_and_suggest(self, invoke) -> None:
        """Test renamed tags are suggested under their new name."""
        invoke("new-tag", "--name", "Work")
        invoke("new-tag", "--name", "Home")

        assert invoke("rename-tag", "Work", "Workshop").exit_code == 0

        result = invoke("suggest", "#wo")
        assert result.output.split() == ["Workshop"]

    def test_delete_tag_keeps_issues(self, invoke) -> None:
        """Test deleting a tag leaves its issues."""
        invoke("new-tag", "--name", "Work")
        invoke("new-issue", "--tag", "Work", "--title", "Still here")

        assert invoke("delete-tag", "Work").exit_code == 0

        assert "Still here" in invoke("issues").output
        assert invoke("tags").output.strip() == ""

    def test_unknown_tag(self, invoke) -> None:
        """Test an unknown tag name is reported."""
        result = invoke("new-issue", "--tag", "Nowhere")

        assert result.exit_code == 1
        assert "No tag matches 'Nowhere'" in result.output


class TestStoreCommands:
    """Tests for awards, sample data and reset."""

    def test_awards(self, invoke) -> None:
        """Test the first award unlocks after one issue."""
        assert "Unlocked: First Steps" not in invoke("awards").output

        invoke("new-issue")

        assert "Unlocked: First Steps" in invoke("awards").output

    def test_awards_earned_only(self, invoke) -> None:
        """Test --earned lists unlocked awards and nothing locked."""
        result = invoke("awards", "--earned")
        assert result.exit_code == 0
        assert "First Steps" not in result.output

        invoke("new-issue")

        output = invoke("awards", "--earned").output
        assert "Unlocked: First Steps" in output
        assert not any(line.startswith("Locked") for line in output.splitlines())

    def test_award_defaults_to_first(self, invoke) -> None:
        """Test award without a name shows the first catalog entry."""
        result = invoke("award")

        assert result.exit_code == 0
        assert result.output.splitlines()[0] == "Locked"
        assert "Name:        First Steps" in result.output
        assert "Requires:    1 issues" in result.output

    def test_award_by_name(self, invoke) -> None:
        """Test award looks names up case-insensitively."""
        invoke("new-issue")

        result = invoke("award", "first steps")

        assert result.exit_code == 0
        assert result.output.splitlines()[0] == "Unlocked: First Steps"

    def test_award_unknown_name(self, invoke) -> None:
        """Test an unknown award name fails."""
        result = invoke("award", "Nope")

        assert result.exit_code == 1
        assert "No award named 'Nope'" in result.output

    def test_samples_and_reset(self, invoke) -> None:
        """Test sample data fills the store and reset empties it."""
        result = invoke("samples", "--yes")
        assert result.exit_code == 0
        assert "Sample data created." in result.output
        assert "50 issues" in invoke("check-db").output

        result = invoke("reset", "--yes")
        assert result.exit_code == 0
        assert "0 issues (0 open), 0 tags" in invoke("check-db").output

    def test_reset_requires_confirmation(self, invoke) -> None:
        """Test declining the prompt keeps the data."""
        invoke("new-issue")

        result = invoke("reset", input="n\n")

        assert result.exit_code == 1
        assert "1 issues" in invoke("check-db").output


class TestLogContext:
    """Tests for the store context on command log records."""

    def test_records_name_database_and_command(self, runner: CliRunner, database_path: Path, tmp_path: Path) -> None:
        """Test log file records carry the database path and command name."""
        log_file = tmp_path / "quickfix.log"

        result = runner.invoke(
            main,
            ["--database", str(database_path), "--log-level", "INFO", "new-issue"],
            env={"XDG_CONFIG_HOME": str(tmp_path / "config"), "QUICKFIX_LOG_FILE": str(log_file)},
        )

        assert result.exit_code == 0
        records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        created = [r for r in records if r["event"] == "issue_created"]
        assert len(created) == 1
        assert created[0]["database"] == str(database_path)
        assert created[0]["command"] == "new-issue"
        assert structlog.contextvars.get_contextvars() == {}


class TestInitConfig:
    """Tests for init-config command."""

    def test_writes_defaults(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test the config file holds the default settings."""
        config_path = tmp_path / "quickfix" / "config.toml"

        result = runner.invoke(main, ["--config", str(config_path), "init-config"])

        assert result.exit_code == 0
        with open(config_path, "rb") as f:
            written = tomllib.load(f)
        assert written["store"] == get_default_config()["store"]
        assert written["logging"]["level"] == "WARNING"

    def test_keeps_existing_file(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test an existing file survives when overwrite is declined."""
        config_path = tmp_path / "config.toml"
        config_path.write_text("[store]\nrecent_days = 30\n", encoding="utf-8")

        result = runner.invoke(main, ["--config", str(config_path), "init-config"], input="n\n")

        assert result.exit_code == 0
        assert "recent_days = 30" in config_path.read_text(encoding="utf-8")

    def test_config_file_is_used(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test the database path can come from the config file."""
        database = tmp_path / "from-config.db"
        config_path = tmp_path / "config.toml"
        config_path.write_text(f'[storage]\ndatabase_path = "{database.as_posix()}"\n', encoding="utf-8")

        result = runner.invoke(main, ["--config", str(config_path), "new-issue"])

        assert result.exit_code == 0
        assert database.exists()
