"""Data models for svsh.

Uses Pydantic for validated snapshots and session state.
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from svsh.core.errors import UnknownSuite


class ServiceStatus(str, Enum):
    """Normalized service states shared by every suite.

    Suites may report additional states (runit "finish", perp "inactive");
    those are passed through as plain strings.
    """

    UP = "up"
    DOWN = "down"
    STARTING = "starting"
    RESETTING = "resetting"
    UNKNOWN = "unknown"


class SuiteKind(str, Enum):
    """Supported supervision suites."""

    DAEMONTOOLS = "daemontools"
    PERP = "perp"
    S6 = "s6"
    RUNIT = "runit"

    @classmethod
    def parse(cls, name: str | None) -> "SuiteKind":
        """Parse a suite name (case-insensitive).

        Raises:
            UnknownSuite: If name is empty or not a supported suite
        """
        if not name:
            raise UnknownSuite(
                "No supervision suite given. Use --suite or set SVSH_SUITE "
                f"(one of: {', '.join(s.value for s in cls)})"
            )
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise UnknownSuite(
                f"Unknown supervision suite '{name}' "
                f"(one of: {', '.join(s.value for s in cls)})"
            )


class Capability(str, Enum):
    """Optional operations a suite may support."""

    RESCAN = "rescan"
    TERMINATE = "terminate"


# --- Snapshot Models ---


class Service(BaseModel):
    """One supervised service as seen in a single status snapshot."""

    name: str
    status: str
    pid: int | None = Field(default=None, gt=0)
    duration: int = Field(default=0, ge=0)
    log_pid: int | None = Field(default=None, gt=0)

    @property
    def is_running(self) -> bool:
        return self.pid is not None

    @property
    def display_pid(self) -> str:
        return str(self.pid) if self.pid is not None else "-"


class Outcome(BaseModel):
    """Result of one control invocation for one service."""

    name: str
    ok: bool
    message: str = ""

    def as_line(self) -> str:
        detail = f": {self.message}" if self.message else ""
        return f"{self.name}: {'ok' if self.ok else 'failed'}{detail}"


# --- Session State ---


class Session(BaseModel):
    """Startup configuration for one shell session.

    suite, basedir and bindir are fixed at startup. collapse is the only
    mutable field and only affects how status is presented.
    """

    model_config = ConfigDict(validate_assignment=True)

    suite: SuiteKind = Field(frozen=True)
    basedir: Path = Field(frozen=True)
    bindir: Path | None = Field(default=None, frozen=True)
    collapse: bool = False
