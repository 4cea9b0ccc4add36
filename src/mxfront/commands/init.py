"""mxfront init — scaffold a configuration in the current directory."""

from __future__ import annotations

from pathlib import Path

import click

from mxfront.config.parser import DEFAULT_CONFIG_NAME

CONFIG_FILENAME = DEFAULT_CONFIG_NAME
ENV_EXAMPLE_FILENAME = ".env.example"

TEMPLATE_YAML = """\
# mxfront configuration
version: "1"

engine:
  # Engine executable name or full path.
  # On Windows point this at <prefix>\\bin\\maxima.bat.
  executable: maxima
  # Extra command-line parameters for the engine.
  parameters: ""
  # The server walks upwards from default_port until a port is free.
  default_port: 4010
  max_port: 5000
  # Lisp markup library loaded before the first command (optional).
  # mathml_library: /usr/share/wxMaxima/wxmathml.lisp
  show_header: true

session:
  record: true                 # write transcripts to transcripts_dir
  transcripts_dir: transcripts
  soft_wrap: true              # wrap long echoed input after column 80

window:
  restore: false
"""

TEMPLATE_ENV_EXAMPLE = """\
# Environment for the engine process.
# Copy this file to .env; mxfront loads it next to mxfront.yaml.

# MAXIMA_USERDIR=
# MAXIMA_PREFIX=
"""


@click.command()
@click.option(
    "--force",
    is_flag=True,
    help=f"Overwrite existing {CONFIG_FILENAME} if it exists.",
)
def init(force: bool) -> None:
    """Scaffold an mxfront configuration in the current directory."""
    cwd = Path.cwd()
    config_path = cwd / CONFIG_FILENAME
    env_example_path = cwd / ENV_EXAMPLE_FILENAME

    if config_path.exists() and not force:
        raise click.ClickException(
            f"{CONFIG_FILENAME} already exists. Use --force to overwrite."
        )

    try:
        config_path.write_text(TEMPLATE_YAML, encoding="utf-8")
    except OSError as exc:
        raise click.ClickException(f"Cannot write {CONFIG_FILENAME}: {exc}") from exc
    click.echo(f"  Created {CONFIG_FILENAME}")

    if not env_example_path.exists() or force:
        try:
            env_example_path.write_text(TEMPLATE_ENV_EXAMPLE, encoding="utf-8")
        except OSError as exc:
            raise click.ClickException(
                f"Cannot write {ENV_EXAMPLE_FILENAME}: {exc}"
            ) from exc
        click.echo(f"  Created {ENV_EXAMPLE_FILENAME}")
    else:
        click.echo(f"  Skipped {ENV_EXAMPLE_FILENAME} (already exists)")

    click.echo()
    click.echo("Next steps:")
    click.echo(f"  1. Edit {CONFIG_FILENAME} to point at your engine")
    click.echo("  2. Copy .env.example to .env if the engine needs extra environment")
    click.echo("  3. Run `mxfront up` to start a session")
