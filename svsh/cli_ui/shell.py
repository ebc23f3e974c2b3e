"""Interactive shell loop.

Shows a status snapshot on entry, then reads commands until quit, exit or
EOF. Line editing, history and tab completion come from readline; completion
candidates for service arguments come from the service selector.
"""

import logging
import readline
from pathlib import Path
from typing import Callable

from svsh.cli_ui.renderer import StatusTableRenderer
from svsh.core.adapters import POSIX_SIGNALS
from svsh.core.dispatcher import COMMANDS, TOGGLE_FLAGS, CommandDispatcher
from svsh.core.selector import complete

logger = logging.getLogger(__name__)

HISTORY_FILE = Path.home() / ".svsh_history"
HISTORY_LENGTH = 1000

SERVICE_COMMANDS = frozenset({"start", "stop", "restart", "fg"})
SIGNAL_NAMES = sorted(POSIX_SIGNALS)


class ShellCompleter:
    """Tab completion for commands, flags, signal names and services."""

    def __init__(self, dispatcher: CommandDispatcher):
        self.dispatcher = dispatcher
        self._matches: list[str] = []

    def candidates(self, buffer: str, text: str) -> list[str]:
        """Completion candidates for the word being typed.

        Args:
            buffer: Line contents up to the cursor
            text: The word being completed
        """
        tokens = buffer.split()
        if not tokens or buffer.endswith(" "):
            tokens.append("")

        if len(tokens) == 1:
            return sorted(c for c in COMMANDS if c.startswith(text))

        command = tokens[0]
        arg_index = len(tokens) - 1
        if command == "toggle" and arg_index == 1:
            return [flag for flag in TOGGLE_FLAGS if flag.startswith(text)]
        if command == "signal" and arg_index == 1:
            upper = text.upper()
            if upper.startswith("SIG"):
                return [f"SIG{name}" for name in SIGNAL_NAMES if name.startswith(upper[3:])]
            return [name for name in SIGNAL_NAMES if name.startswith(upper)]
        if command in SERVICE_COMMANDS or command == "signal":
            if command == "fg" and arg_index > 1:
                return []
            return complete(text, self.dispatcher.known_names())
        return []

    def complete(self, text: str, state: int) -> str | None:
        """readline completer callback."""
        if state == 0:
            buffer = readline.get_line_buffer()[: readline.get_endidx()]
            self._matches = self.candidates(buffer, text)
        if state < len(self._matches):
            return self._matches[state]
        return None


class InteractiveShell:
    """REPL over a CommandDispatcher.

    USAGE:
        shell = InteractiveShell(dispatcher, StatusTableRenderer())
        shell.run()
    """

    def __init__(
        self,
        dispatcher: CommandDispatcher,
        renderer: StatusTableRenderer,
        history_file: Path | None = HISTORY_FILE,
        input_fn: Callable[[str], str] = input,
        use_readline: bool = True,
    ):
        self.dispatcher = dispatcher
        self.renderer = renderer
        self.history_file = history_file
        self.input_fn = input_fn
        self.use_readline = use_readline
        self.completer = ShellCompleter(dispatcher)

    def prompt(self) -> str:
        return f"svsh [{self.dispatcher.session.suite.value}]> "

    def _setup_readline(self) -> None:
        readline.set_completer(self.completer.complete)
        # Service names contain dashes and patterns contain asterisks
        readline.set_completer_delims(" \t\n")
        readline.parse_and_bind("tab: complete")
        readline.set_history_length(HISTORY_LENGTH)
        if self.history_file and self.history_file.exists():
            try:
                readline.read_history_file(str(self.history_file))
            except OSError as e:
                logger.warning(f"Cannot read history file {self.history_file}: {e}")

    def _save_history(self) -> None:
        if not self.history_file:
            return
        try:
            readline.write_history_file(str(self.history_file))
        except OSError as e:
            logger.warning(f"Cannot write history file {self.history_file}: {e}")

    def _run_line(self, line: str) -> bool:
        """Execute and render one line. Returns True when the shell should exit."""
        try:
            result = self.dispatcher.execute_line(line)
            self.renderer.render(result)
        except KeyboardInterrupt:
            # Abandon the command, stay in the shell
            self.renderer.console.print("\nInterrupted")
            return False
        return result.quit

    def run(self) -> int:
        """Run until quit. Returns the process exit code."""
        console = self.renderer.console
        if self.use_readline:
            self._setup_readline()

        try:
            self._run_line("status")

            while True:
                try:
                    line = self.input_fn(self.prompt())
                except EOFError:
                    console.print()
                    break
                except KeyboardInterrupt:
                    # Discard the current line, stay in the shell
                    console.print()
                    continue

                if self._run_line(line):
                    break
        finally:
            if self.use_readline:
                self._save_history()
        return 0
