"""Test main CLI functionality."""

from typer.testing import CliRunner

from themes_tree.cli.main import app

runner = CliRunner()


def test_version_command() -> None:
    """Test version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "Themes Tree v" in result.stdout


def test_help_lists_commands() -> None:
    """Test the short help flag and command list."""
    result = runner.invoke(app, ["-h"])
    assert result.exit_code == 0
    for command in ("refresh", "show", "status", "version"):
        assert command in result.stdout
