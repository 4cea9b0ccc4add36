"""Smoke tests for the mxfront CLI."""

from click.testing import CliRunner

from mxfront import __version__
from mxfront.cli import cli


def test_help() -> None:
    result = CliRunner().invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Maxima" in result.output
    for command in ("init", "up", "transcripts"):
        assert command in result.output


def test_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert f"mxfront, version {__version__}" in result.output


def test_init_runs() -> None:
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ["init"])
        assert result.exit_code == 0
        assert "Created mxfront.yaml" in result.output


def test_up_missing_config_file_errors() -> None:
    """mxfront up -f with a missing file exits with an error."""
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ["up", "-f", "nope.yaml"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output


def test_up_invalid_config_errors() -> None:
    runner = CliRunner()
    with runner.isolated_filesystem():
        with open("mxfront.yaml", "w", encoding="utf-8") as fh:
            fh.write("version: '1'\nengine:\n  bogus: 1\n")
        result = runner.invoke(cli, ["up"])
        assert result.exit_code == 1
        assert "Error: Config validation failed" in result.output


def test_up_flags() -> None:
    result = CliRunner().invoke(cli, ["up", "--help"])
    assert result.exit_code == 0
    assert "--file" in result.output
    assert "--verbose" in result.output


def test_transcripts_flags() -> None:
    result = CliRunner().invoke(cli, ["transcripts", "--help"])
    assert result.exit_code == 0
    assert "--events" in result.output
