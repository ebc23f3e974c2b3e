"""CLI entry point for svsh.

Usage:
    svsh [OPTIONS]                      Start the interactive shell
    svsh [OPTIONS] COMMAND [ARGS]...    Run one command and exit

Examples:
    svsh -s runit
    svsh -s s6 -d /run/service restart 'worker*'
    SVSH_SUITE=daemontools svsh signal HUP nginx
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from svsh import __version__
from svsh.cli_ui.renderer import StatusTableRenderer
from svsh.cli_ui.shell import InteractiveShell
from svsh.core.config import build_session
from svsh.core.dispatcher import CommandDispatcher
from svsh.core.errors import ConfigurationError
from svsh.core.models import SuiteKind

console = Console()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(debug: bool) -> None:
    """Send log records to stderr; DEBUG with --debug, otherwise WARNING."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


@click.command(
    context_settings={
        "allow_interspersed_args": False,
        "help_option_names": ["-h", "--help"],
    }
)
@click.option(
    "--basedir",
    "-d",
    envvar="SVSH_BASE",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding the service directories (default: suite's usual location)",
)
@click.option(
    "--suite",
    "-s",
    envvar="SVSH_SUITE",
    help=f"Supervision suite: {', '.join(s.value for s in SuiteKind)}",
)
@click.option(
    "--bindir",
    "-b",
    envvar="SVSH_BINDIR",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding the suite's binaries (default: search PATH)",
)
@click.option("--collapse", "-c", is_flag=True, help="Collapse numbered service families")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="YAML config file (default: ~/.svsh.yaml)",
)
@click.option("--debug", is_flag=True, help="Log debug output to stderr")
@click.version_option(version=__version__, prog_name="svsh")
@click.argument("command", nargs=-1)
def main(
    basedir: Path | None,
    suite: str | None,
    bindir: Path | None,
    collapse: bool,
    config_path: Path | None,
    debug: bool,
    command: tuple[str, ...],
) -> None:
    """svsh - Process supervision shell.

    Manage daemontools, perp, s6 and runit services from one shell. With no
    COMMAND, starts an interactive session; otherwise runs COMMAND once.
    """
    setup_logging(debug)

    try:
        session = build_session(
            suite=suite,
            basedir=basedir,
            bindir=bindir,
            collapse=collapse,
            config_path=config_path,
        )
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)

    dispatcher = CommandDispatcher(session)
    renderer = StatusTableRenderer(console)

    if command:
        result = dispatcher.execute(command[0], list(command[1:]))
        renderer.render(result)
        sys.exit(result.exit_code)

    shell = InteractiveShell(dispatcher, renderer)
    sys.exit(shell.run())


if __name__ == "__main__":
    main()
