"""Root CLI group and version flag."""

import signal

import click

from mxfront import __version__
from mxfront.commands.init import init
from mxfront.commands.transcripts import transcripts
from mxfront.commands.up import up

# Ensure SIGPIPE doesn't silently kill the process (e.g. when stdout
# pipe closes while click.echo is writing).
if hasattr(signal, "SIGPIPE"):
    signal.signal(signal.SIGPIPE, signal.SIG_IGN)


@click.group()
@click.version_option(version=__version__, prog_name="mxfront")
def cli() -> None:
    """mxfront — terminal front-end for the Maxima computer algebra system."""


cli.add_command(init)
cli.add_command(up)
cli.add_command(transcripts)
