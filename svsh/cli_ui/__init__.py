"""Terminal UI for the supervision shell.

- Status tables and command outcome rendering
- Interactive loop with history and tab completion
"""

from svsh.cli_ui.renderer import StatusTableRenderer
from svsh.cli_ui.shell import InteractiveShell, ShellCompleter

__all__ = [
    "InteractiveShell",
    "ShellCompleter",
    "StatusTableRenderer",
]
