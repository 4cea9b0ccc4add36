"""Tests for `mxfront init` command."""

from __future__ import annotations

from pathlib import Path

import yaml
from click.testing import CliRunner

from mxfront.cli import cli
from mxfront.commands.init import (
    CONFIG_FILENAME,
    ENV_EXAMPLE_FILENAME,
    TEMPLATE_ENV_EXAMPLE,
    TEMPLATE_YAML,
)
from mxfront.config.models import MxfrontConfig
from mxfront.config.parser import load_config


class TestInitCreatesFiles:
    """mxfront init creates the expected files."""

    def test_creates_config_and_env_example(self, tmp_path: Path) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            result = runner.invoke(cli, ["init"])
            assert result.exit_code == 0
            assert Path(CONFIG_FILENAME).is_file()
            assert Path(ENV_EXAMPLE_FILENAME).is_file()

    def test_output_mentions_created_files(self, tmp_path: Path) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            result = runner.invoke(cli, ["init"])
            assert f"Created {CONFIG_FILENAME}" in result.output
            assert f"Created {ENV_EXAMPLE_FILENAME}" in result.output


class TestGeneratedConfigIsValid:
    """The generated mxfront.yaml must parse and validate correctly."""

    def test_template_validates(self) -> None:
        config = MxfrontConfig.model_validate(yaml.safe_load(TEMPLATE_YAML))
        assert config.version == "1"
        assert config == MxfrontConfig(version="1")

    def test_written_file_loads(self, tmp_path: Path) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            runner.invoke(cli, ["init"])
            config = load_config(Path(CONFIG_FILENAME))
            assert config.engine.executable == "maxima"

    def test_has_section_comments(self) -> None:
        assert "# " in TEMPLATE_YAML
        assert "mathml_library" in TEMPLATE_YAML


class TestExistingFileGuard:
    """mxfront init refuses to overwrite an existing config without --force."""

    def test_refuses_overwrite_without_force(self, tmp_path: Path) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            original = "version: '1'\n"
            Path(CONFIG_FILENAME).write_text(original)
            result = runner.invoke(cli, ["init"])
            assert result.exit_code == 1
            assert "already exists" in result.output
            assert Path(CONFIG_FILENAME).read_text() == original


class TestForceFlag:
    """--force overwrites existing files."""

    def test_force_overwrites_both(self, tmp_path: Path) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path(CONFIG_FILENAME).write_text("old content")
            Path(ENV_EXAMPLE_FILENAME).write_text("OLD_KEY=")
            result = runner.invoke(cli, ["init", "--force"])
            assert result.exit_code == 0
            assert Path(CONFIG_FILENAME).read_text() == TEMPLATE_YAML
            assert Path(ENV_EXAMPLE_FILENAME).read_text() == TEMPLATE_ENV_EXAMPLE


class TestEnvExample:
    def test_mentions_engine_variables(self) -> None:
        assert "MAXIMA_USERDIR" in TEMPLATE_ENV_EXAMPLE

    def test_does_not_overwrite_existing_env_example(self, tmp_path: Path) -> None:
        """Without --force, .env.example is preserved if it exists."""
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            existing = "MAXIMA_USERDIR=/home/me/.maxima"
            Path(ENV_EXAMPLE_FILENAME).write_text(existing)
            result = runner.invoke(cli, ["init"])
            assert result.exit_code == 0
            assert Path(ENV_EXAMPLE_FILENAME).read_text() == existing
            assert f"Skipped {ENV_EXAMPLE_FILENAME}" in result.output
            assert f"Created {ENV_EXAMPLE_FILENAME}" not in result.output


class TestNextSteps:
    def test_prints_next_steps(self, tmp_path: Path) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            result = runner.invoke(cli, ["init"])
            assert "Next steps:" in result.output
            assert "mxfront up" in result.output
            assert CONFIG_FILENAME in result.output
