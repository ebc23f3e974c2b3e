"""Log discovery and following for supervised services.

The log file is found by inspecting the service's logger process: if it is
one of the known logging tools, its open write descriptors (from
/proc/<pid>/fd, read through psutil) point at the current log file.

This is best-effort. Log rotation while following is not handled beyond
reopening a truncated file; a rotated-away file may need `fg` to be rerun.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import TextIO

import psutil

from svsh.core.errors import LogUnavailable
from svsh.core.models import Service

logger = logging.getLogger(__name__)

# One logger per suite family. Other processes are never trusted to tell us
# which of their open files is "the log".
KNOWN_LOGGERS = frozenset({"multilog", "tinylog", "s6-log", "svlogd"})

# open() modes psutil reports for descriptors opened for writing
WRITE_MODES = frozenset({"w", "a", "r+", "a+", "w+"})

CURRENT_LOG_NAME = "current"


class LogLocator:
    """Resolve the log file written by a service's logger process."""

    def __init__(self, allowed: frozenset[str] = KNOWN_LOGGERS):
        self.allowed = allowed

    def _process_name(self, proc: psutil.Process) -> str:
        """Name of the process executable, falling back to the process name."""
        try:
            exe = proc.exe()
        except (psutil.AccessDenied, psutil.ZombieProcess):
            exe = ""
        return os.path.basename(exe) if exe else proc.name()

    def locate(self, service: Service) -> Path | None:
        """Find the log file for a service.

        Returns:
            Path of the log file, or None when the service has no logger, the
            logger is not a known logging tool, or no writable file is open.
        """
        if service.log_pid is None:
            logger.debug(f"{service.name}: no log process")
            return None

        try:
            proc = psutil.Process(service.log_pid)
            name = self._process_name(proc)
            if name not in self.allowed:
                logger.debug(f"{service.name}: log process '{name}' is not a known logger")
                return None
            open_files = proc.open_files()
        except psutil.NoSuchProcess:
            logger.debug(f"{service.name}: log process {service.log_pid} is gone")
            return None
        except psutil.AccessDenied:
            logger.debug(f"{service.name}: access denied to log process {service.log_pid}")
            return None

        candidates = [
            Path(f.path)
            for f in open_files
            if getattr(f, "mode", None) in WRITE_MODES and os.path.isfile(f.path)
        ]
        if not candidates:
            logger.debug(f"{service.name}: {name} has no writable log file open")
            return None

        for path in candidates:
            if path.name == CURRENT_LOG_NAME:
                return path
        return candidates[0]


def _tail(handle: TextIO, lines: int) -> list[str]:
    content = handle.read()
    return content.splitlines(keepends=True)[-lines:] if lines else []


def follow(
    path: Path,
    out: TextIO,
    poll_interval: float = 0.5,
    initial_lines: int = 10,
    max_polls: int | None = None,
) -> None:
    """Print the end of a log file, then stream appended content.

    Runs until interrupted (KeyboardInterrupt ends the loop cleanly) or, when
    max_polls is given, after that many empty polls.

    Args:
        path: Log file to follow
        out: Stream to write log lines to
        poll_interval: Seconds to wait when no new content is available
        initial_lines: Number of existing lines to show first
        max_polls: Stop after this many empty polls (None = forever)

    Raises:
        LogUnavailable: If the file cannot be opened
    """
    polls = 0
    try:
        handle = open(path, encoding="utf-8", errors="replace")
    except OSError as e:
        # Rotated or removed since it was located
        raise LogUnavailable(f"Cannot open {path}: {e}")
    try:
        for line in _tail(handle, initial_lines):
            out.write(line)
        out.flush()

        while max_polls is None or polls < max_polls:
            line = handle.readline()
            if line:
                out.write(line)
                out.flush()
                continue

            # Truncated in place: start over from the beginning
            try:
                if os.path.getsize(path) < handle.tell():
                    logger.debug(f"{path} was truncated, reopening")
                    reopened = open(path, encoding="utf-8", errors="replace")
                    handle.close()
                    handle = reopened
            except OSError as e:
                logger.debug(f"Cannot stat {path}: {e}")

            polls += 1
            time.sleep(poll_interval)
    except KeyboardInterrupt:
        out.write("\n")
    finally:
        handle.close()
