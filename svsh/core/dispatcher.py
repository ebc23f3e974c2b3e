"""Command dispatch for the supervision shell.

Maps shell commands onto adapter operations, applies service selection and
status aggregation, and turns every per-command error into a failed
CommandResult. Rendering is left to the caller; the only terminal output
produced here is the `fg` log stream.
"""

from __future__ import annotations

import logging
import shlex
import sys
from dataclasses import dataclass, field
from typing import Callable, TextIO

from svsh.core.adapters import SuiteAdapter, get_adapter, normalize_signal
from svsh.core.aggregator import StatusAggregator
from svsh.core.errors import LogUnavailable, NoMatch, SvshError, UnsupportedOperation
from svsh.core.logs import LogLocator, follow
from svsh.core.models import Capability, Outcome, Service, Session
from svsh.core.selector import is_pattern, resolve_many

logger = logging.getLogger(__name__)

# Session booleans that `toggle` may flip
TOGGLE_FLAGS = ("collapse",)

USAGE = {
    "status": "status",
    "start": "start SERVICE [SERVICE ...]",
    "stop": "stop SERVICE [SERVICE ...]",
    "restart": "restart SERVICE [SERVICE ...]",
    "signal": "signal SIGNAL SERVICE [SERVICE ...]",
    "rescan": "rescan",
    "terminate": "terminate",
    "toggle": f"toggle {'|'.join(TOGGLE_FLAGS)}",
    "fg": "fg SERVICE",
    "help": "help",
    "quit": "quit",
}

HELP = {
    "status": "Show the status of all services",
    "start": "Start services (wildcards allowed: web*, *-db, *cache*)",
    "stop": "Stop services",
    "restart": "Restart services",
    "signal": "Send a signal (e.g. HUP, term, SIGUSR1) to services",
    "rescan": "Make the supervisor rescan its service directory",
    "terminate": "Shut down the supervisor and all services, then quit",
    "toggle": "Flip a display option and show status again",
    "fg": "Follow a service's log file (Ctrl-C to stop)",
    "help": "Show this help",
    "quit": "Leave the shell",
}

COMMANDS = tuple(USAGE) + ("exit",)


@dataclass
class CommandResult:
    """Outcome of one shell command.

    services is set for status-style results and holds display rows in order.
    quit asks the shell loop to exit after rendering.
    """

    command: str
    ok: bool = True
    lines: list[str] = field(default_factory=list)
    outcomes: list[Outcome] = field(default_factory=list)
    services: list[Service] | None = None
    quit: bool = False

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


class CommandDispatcher:
    """Execute shell commands against one suite adapter.

    USAGE:
        dispatcher = CommandDispatcher(session)
        result = dispatcher.execute_line("restart worker*")
        if result.quit:
            ...
    """

    def __init__(
        self,
        session: Session,
        adapter: SuiteAdapter | None = None,
        aggregator: StatusAggregator | None = None,
        log_locator: LogLocator | None = None,
        log_stream: TextIO | None = None,
    ):
        self.session = session
        self.adapter = adapter or get_adapter(session)
        self.aggregator = aggregator or StatusAggregator()
        self.log_locator = log_locator or LogLocator()
        self.log_stream = log_stream

        self._handlers: dict[str, Callable[[str, list[str]], CommandResult]] = {
            "status": self._status,
            "start": self._control,
            "stop": self._control,
            "restart": self._control,
            "signal": self._signal,
            "rescan": self._rescan,
            "terminate": self._terminate,
            "toggle": self._toggle,
            "fg": self._fg,
            "help": self._help,
            "quit": self._quit,
            "exit": self._quit,
        }

    # --- Entry points ---

    def execute_line(self, line: str) -> CommandResult:
        """Split a command line shell-style and execute it."""
        try:
            args = shlex.split(line)
        except ValueError as e:
            return CommandResult(command=line, ok=False, lines=[f"Cannot parse command: {e}"])
        if not args:
            return CommandResult(command="")
        return self.execute(args[0], args[1:])

    def execute(self, command: str, args: list[str]) -> CommandResult:
        """Execute one command. Never raises for per-command errors."""
        handler = self._handlers.get(command)
        if handler is None:
            return CommandResult(
                command=command,
                ok=False,
                lines=[f"Unrecognized command '{command}'. Type 'help' for a list of commands."],
            )
        try:
            return handler(command, args)
        except SvshError as e:
            logger.debug(f"{command} failed: {e}")
            return CommandResult(command=command, ok=False, lines=[str(e)])

    def known_names(self) -> list[str]:
        """Service names from a fresh status snapshot, sorted."""
        return sorted(self.adapter.status())

    # --- Helpers ---

    @staticmethod
    def _usage(command: str) -> CommandResult:
        return CommandResult(command=command, ok=False, lines=[f"Usage: {USAGE[command]}"])

    def _select(self, patterns: list[str]) -> list[str]:
        names = resolve_many(patterns, self.known_names())
        if not names:
            raise NoMatch(f"No service matches {' '.join(patterns)}")
        return names

    @staticmethod
    def _from_outcomes(command: str, outcomes: list[Outcome]) -> CommandResult:
        return CommandResult(
            command=command,
            ok=all(o.ok for o in outcomes),
            lines=[o.as_line() for o in outcomes],
            outcomes=outcomes,
        )

    # --- Handlers ---

    def _status(self, command: str, args: list[str]) -> CommandResult:
        if args:
            return self._usage("status")
        snapshot = self.adapter.status()
        rows = self.aggregator.aggregate(snapshot, collapse=self.session.collapse)
        services = self.aggregator.ordered(rows)
        lines = [] if services else [f"No services found in {self.session.basedir}"]
        return CommandResult(command="status", lines=lines, services=services)

    def _control(self, command: str, args: list[str]) -> CommandResult:
        if not args:
            return self._usage(command)
        names = self._select(args)
        operation = {
            "start": self.adapter.start,
            "stop": self.adapter.stop,
            "restart": self.adapter.restart,
        }[command]
        return self._from_outcomes(command, operation(names))

    def _signal(self, command: str, args: list[str]) -> CommandResult:
        if len(args) < 2:
            return self._usage("signal")
        # Reject bad signal names before touching any service
        sig = normalize_signal(args[0])
        names = self._select(args[1:])
        return self._from_outcomes(command, self.adapter.signal(sig, names))

    def _supervisor_op(self, command: str, args: list[str], capability: Capability) -> CommandResult:
        if args:
            return self._usage(command)
        if not self.adapter.supports(capability):
            raise UnsupportedOperation(
                f"{self.session.suite.value} does not support {capability.value}"
            )
        operation = self.adapter.rescan if capability == Capability.RESCAN else self.adapter.terminate
        message = operation()
        return CommandResult(command=command, lines=[message])

    def _rescan(self, command: str, args: list[str]) -> CommandResult:
        return self._supervisor_op(command, args, Capability.RESCAN)

    def _terminate(self, command: str, args: list[str]) -> CommandResult:
        result = self._supervisor_op(command, args, Capability.TERMINATE)
        result.quit = result.ok
        return result

    def _toggle(self, command: str, args: list[str]) -> CommandResult:
        if len(args) != 1:
            return self._usage("toggle")
        flag = args[0]
        if flag not in TOGGLE_FLAGS:
            return CommandResult(
                command=command,
                ok=False,
                lines=[f"Unknown flag '{flag}' (available: {', '.join(TOGGLE_FLAGS)})"],
            )
        value = not getattr(self.session, flag)
        setattr(self.session, flag, value)
        logger.debug(f"{flag} set to {value}")

        result = self._status("status", [])
        result.command = command
        result.lines.insert(0, f"{flag} is now {'on' if value else 'off'}")
        return result

    def _fg(self, command: str, args: list[str]) -> CommandResult:
        if len(args) != 1:
            return self._usage("fg")
        name = args[0]
        if is_pattern(name):
            return CommandResult(
                command=command, ok=False, lines=["fg takes a single service name, not a pattern"]
            )

        service = self.adapter.status().get(name)
        if service is None:
            raise NoMatch(f"No service matches {name}")

        path = self.log_locator.locate(service)
        if path is None:
            raise LogUnavailable(f"Cannot find a log file for {name}")

        logger.debug(f"Following {path}")
        follow(path, self.log_stream or sys.stdout)
        return CommandResult(command=command)

    def _help(self, command: str, args: list[str]) -> CommandResult:
        width = max(len(usage) for usage in USAGE.values())
        lines = [f"{USAGE[name]:<{width}}  {HELP[name]}" for name in USAGE]
        return CommandResult(command=command, lines=lines)

    def _quit(self, command: str, args: list[str]) -> CommandResult:
        return CommandResult(command=command, quit=True)
