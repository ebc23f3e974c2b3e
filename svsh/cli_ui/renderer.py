"""Terminal rendering of command results.

SECURITY: Service names, statuses and tool output come from the filesystem
and external programs, so they are escaped before being passed to Rich.
"""

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from svsh.core.dispatcher import CommandResult
from svsh.core.models import Service

# Status colors - string keys, suites report plain strings
STATUS_COLORS = {
    "up": "green",
    "down": "red",
    "starting": "yellow",
    "resetting": "yellow",
    "finish": "yellow",
    "inactive": "dim",
    "unknown": "dim",
}


def format_duration(seconds: int) -> str:
    """Format seconds as a compact duration, e.g. 2h 43m 33s."""
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


class StatusTableRenderer:
    """Renders status snapshots and command outcomes."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    @staticmethod
    def _status_text(status: str) -> str:
        safe = escape(status)
        color = STATUS_COLORS.get(status)
        if color is None and "," not in status and " " in status:
            # Collapsed family with a single status, e.g. "3 up"
            color = STATUS_COLORS.get(status.split(" ", 1)[1])
        return f"[{color}]{safe}[/]" if color else safe

    def render_status_table(self, services: list[Service]) -> Table:
        """Render services as a table in the given order."""
        table = Table(box=None, header_style="bold")
        table.add_column("Service", style="cyan")
        table.add_column("Status")
        table.add_column("PID", justify="right")
        table.add_column("Duration", justify="right")

        for service in services:
            table.add_row(
                escape(service.name),
                self._status_text(service.status),
                service.display_pid,
                format_duration(service.duration),
            )
        return table

    def render(self, result: CommandResult) -> None:
        """Print a command result."""
        if result.outcomes:
            # One line per service, colored by its own outcome
            for outcome in result.outcomes:
                color = "green" if outcome.ok else "red"
                self.console.print(f"[{color}]{escape(outcome.as_line())}[/]")
        else:
            for line in result.lines:
                self.console.print(escape(line) if result.ok else f"[red]{escape(line)}[/]")

        if result.services:
            self.console.print(self.render_status_table(result.services))
