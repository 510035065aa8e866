"""Root CLI group and version flag."""

import signal

import click

# Keep a closed stdout pipe (e.g. `tether stream ... | head`) from killing
# the process mid-write without cleanup.
if hasattr(signal, "SIGPIPE"):
    signal.signal(signal.SIGPIPE, signal.SIG_IGN)

from tether import __version__
from tether.commands.init import init
from tether.commands.query import query
from tether.commands.stream import stream


@click.group()
@click.version_option(version=__version__, prog_name="tether")
def cli() -> None:
    """tether — drive the Claude agent CLI from the command line."""


cli.add_command(init)
cli.add_command(query)
cli.add_command(stream)
