# conftest.py - Shared pytest fixtures for all tests
"""Shared pytest fixtures for the svsh test suite.

This module provides foundational fixtures used across all test modules:
- Temporary service base directories
- Sessions and status snapshots
- A fake suite adapter that records control invocations
- Mocks for subprocess

Usage:
    Import fixtures implicitly via pytest's fixture discovery.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import Mock

import pytest

from svsh.core.adapters import SuiteAdapter
from svsh.core.models import Capability, Service, Session, SuiteKind


# =============================================================================
# Base Directory Fixtures
# =============================================================================


SERVICE_NAMES = ["nginx", "worker-1", "worker-2", "worker-3"]


@pytest.fixture
def basedir(tmp_path: Path) -> Path:
    """Create a service base directory.

    Creates:
        - nginx/, worker-1/, worker-2/, worker-3/ service directories, each with log/
        - .control/ (hidden, must be ignored)
        - README (plain file, must be ignored)
    """
    base = tmp_path / "service"
    base.mkdir()
    for name in SERVICE_NAMES:
        (base / name / "log").mkdir(parents=True)
    (base / ".control").mkdir()
    (base / "README").write_text("not a service\n")
    return base


@pytest.fixture
def session(basedir: Path) -> Session:
    """A runit session over the temporary base directory."""
    return Session(suite=SuiteKind.RUNIT, basedir=basedir)


@pytest.fixture
def snapshot() -> dict[str, Service]:
    """Status snapshot with one standalone service and one family."""
    return {
        "nginx": Service(name="nginx", status="up", pid=4121, duration=700, log_pid=4120),
        "worker-1": Service(name="worker-1", status="up", pid=5001, duration=9813),
        "worker-2": Service(name="worker-2", status="up", pid=5002, duration=9813),
        "worker-3": Service(name="worker-3", status="up", pid=5003, duration=4393),
    }


# =============================================================================
# Fake Adapter
# =============================================================================


class FakeAdapter(SuiteAdapter):
    """In-memory adapter.

    status() returns the given snapshot. Control invocations are recorded in
    `calls` instead of spawning processes; names in `failing` get a non-zero
    exit status.
    """

    suite = SuiteKind.S6
    DEFAULT_BASEDIR = Path("/run/service")
    CONTROL = {"start": "-u", "stop": "-d", "restart": "-r"}
    SIGNALS = {"HUP": "-h", "TERM": "-t", "KILL": "-k", "USR1": "-1"}

    def __init__(
        self,
        snapshot: dict[str, Service],
        failing: set[str] | None = None,
        capabilities: frozenset[Capability] = frozenset(),
    ):
        super().__init__(basedir=Path("/run/service"))
        self.snapshot = snapshot
        self.failing = failing or set()
        self.capabilities = capabilities
        self.calls: list[list[str]] = []
        self.status_calls = 0

    def status(self) -> dict[str, Service]:
        self.status_calls += 1
        return dict(self.snapshot)

    def _control_command(self, control_arg: str, name: str) -> list[str]:
        return ["fake-svc", control_arg, name]

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        self.calls.append(args)
        if args[-1] in self.failing:
            return subprocess.CompletedProcess(args, 1, "", f"{args[-1]}: unable to control")
        return subprocess.CompletedProcess(args, 0, "", "")

    def rescan(self) -> str:
        return self._supervisor_call(Capability.RESCAN, ["fake-svscanctl", "-a"])

    def terminate(self) -> str:
        return self._supervisor_call(Capability.TERMINATE, ["fake-svscanctl", "-t"])


@pytest.fixture
def fake_adapter(snapshot: dict[str, Service]) -> FakeAdapter:
    """Fake adapter over the standard snapshot, no optional capabilities."""
    return FakeAdapter(snapshot)


@pytest.fixture
def adapter_factory() -> type[FakeAdapter]:
    """The FakeAdapter class, for tests that need custom snapshots or failures."""
    return FakeAdapter


# =============================================================================
# Subprocess Mocks
# =============================================================================


@pytest.fixture
def mock_subprocess(mocker) -> Mock:
    """Create a mock for subprocess.run operations.

    Returns:
        Mock subprocess.run function.

    Example:
        def test_svc(mock_subprocess):
            mock_subprocess.return_value.stdout = "run: /etc/service/a: (pid 1) 5s"
            # Test adapters without running real suite tools
    """
    mock_run = mocker.patch("subprocess.run")
    mock_run.return_value.returncode = 0
    mock_run.return_value.stdout = ""
    mock_run.return_value.stderr = ""
    return mock_run
