"""Suite adapters for daemontools, perp, s6 and runit.

Each adapter translates the uniform operations (status, start, stop, restart,
signal and the optional rescan/terminate) into the suite's own control tools
and parses the suite's status output into Service snapshots.

Suite differences handled here:
- daemontools: svstat/svc, one status line per directory
- perp: perpstat/perpctl/perphup, multi-line status blocks keyed by name
- s6: s6-svstat/s6-svc/s6-svscanctl, one status call per directory
- runit: sv, one line per directory with the log service inline
"""

from __future__ import annotations

import logging
import re
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from svsh.core.errors import AdapterInvocationFailure, UnknownSignal, UnsupportedOperation
from svsh.core.models import Capability, Outcome, Service, ServiceStatus, Session, SuiteKind

logger = logging.getLogger(__name__)

# POSIX signal names without the SIG prefix
POSIX_SIGNALS = frozenset(
    {
        "ABRT",
        "ALRM",
        "BUS",
        "CHLD",
        "CONT",
        "FPE",
        "HUP",
        "ILL",
        "INT",
        "KILL",
        "PIPE",
        "PROF",
        "QUIT",
        "SEGV",
        "STOP",
        "SYS",
        "TERM",
        "TRAP",
        "TSTP",
        "TTIN",
        "TTOU",
        "URG",
        "USR1",
        "USR2",
        "VTALRM",
        "WINCH",
        "XCPU",
        "XFSZ",
    }
)


def normalize_signal(sig: str) -> str:
    """Normalize a signal name to its canonical POSIX form.

    Accepts any case and an optional SIG prefix: "term", "SIGTERM" and
    "SigTerm" all normalize to "TERM".

    Raises:
        UnknownSignal: If the name is not a POSIX signal
    """
    name = sig.strip().upper()
    if name.startswith("SIG"):
        name = name[3:]
    if name not in POSIX_SIGNALS:
        raise UnknownSignal(f"Unknown signal '{sig}'")
    return name


class SuiteAdapter(ABC):
    """Base adapter for one supervision suite.

    Subclasses declare:
    - suite: the SuiteKind they implement
    - DEFAULT_BASEDIR: where the suite's service directories usually live
    - CONTROL: action name -> control argument for start/stop/restart
    - SIGNALS: canonical signal name -> control argument
    - capabilities: optional operations (rescan, terminate)

    Control invocations are synchronous and run once per service name so every
    outcome stays attributable. A failure for one name never stops the rest.
    """

    suite: SuiteKind
    DEFAULT_BASEDIR: Path
    CONTROL: dict[str, str] = {}
    SIGNALS: dict[str, str] = {}
    capabilities: frozenset[Capability] = frozenset()

    TIMEOUT = 10  # seconds per control invocation

    def __init__(self, basedir: Path | None = None, bindir: Path | None = None):
        self.basedir = Path(basedir) if basedir else self.default_basedir()
        self.bindir = Path(bindir) if bindir else None

    @classmethod
    def default_basedir(cls) -> Path:
        return cls.DEFAULT_BASEDIR

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    # --- Invocation helpers ---

    def _binary(self, name: str) -> str:
        """Resolve a control binary against bindir, or leave it to PATH."""
        if self.bindir:
            return str(self.bindir / name)
        return name

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        """Run a suite tool and capture its output.

        Raises:
            AdapterInvocationFailure: If the tool is missing, not executable or hangs
        """
        logger.debug(f"Running: {' '.join(args)}")
        try:
            return subprocess.run(
                args,
                capture_output=True,
                text=True,
                # Service names and tool chatter are not guaranteed UTF-8
                errors="replace",
                timeout=self.TIMEOUT,
            )
        except FileNotFoundError:
            raise AdapterInvocationFailure(f"{args[0]}: command not found")
        except PermissionError:
            raise AdapterInvocationFailure(f"{args[0]}: permission denied")
        except subprocess.TimeoutExpired:
            raise AdapterInvocationFailure(f"{args[0]}: timed out after {self.TIMEOUT}s")

    def service_dirs(self) -> list[str]:
        """List service directory names under basedir, sorted.

        Hidden entries (perp's .control/.boot and the like) are skipped.
        """
        try:
            entries = list(self.basedir.iterdir())
        except OSError as e:
            logger.debug(f"Cannot list {self.basedir}: {e}")
            return []
        return sorted(e.name for e in entries if e.is_dir() and not e.name.startswith("."))

    def _service_path(self, name: str) -> str:
        return str(self.basedir / name)

    def _each(self, names: list[str], control_arg: str, verb: str) -> list[Outcome]:
        outcomes = []
        for name in names:
            try:
                result = self._run(self._control_command(control_arg, name))
            except AdapterInvocationFailure as e:
                outcomes.append(Outcome(name=name, ok=False, message=str(e)))
                continue

            output = (result.stderr or result.stdout or "").strip()
            if result.returncode == 0:
                outcomes.append(Outcome(name=name, ok=True, message=verb))
            else:
                logger.debug(f"{name}: control tool exited with {result.returncode}")
                message = output.splitlines()[-1] if output else f"exit status {result.returncode}"
                outcomes.append(Outcome(name=name, ok=False, message=message))
        return outcomes

    def _supervisor_call(self, capability: Capability, args: list[str]) -> str:
        if not self.supports(capability):
            raise UnsupportedOperation(
                f"{self.suite.value} does not support {capability.value}"
            )
        result = self._run(args)
        if result.returncode != 0:
            output = (result.stderr or result.stdout or "").strip()
            raise AdapterInvocationFailure(
                output or f"{args[0]} exited with status {result.returncode}"
            )
        return (result.stdout or "").strip() or f"{capability.value} requested"

    # --- Uniform operations ---

    @abstractmethod
    def status(self) -> dict[str, Service]:
        """Query every service under basedir.

        Services whose status cannot be read are omitted.
        """
        raise NotImplementedError

    @abstractmethod
    def _control_command(self, control_arg: str, name: str) -> list[str]:
        """Build the control invocation for one service."""
        raise NotImplementedError

    def start(self, names: list[str]) -> list[Outcome]:
        return self._each(names, self.CONTROL["start"], "started")

    def stop(self, names: list[str]) -> list[Outcome]:
        return self._each(names, self.CONTROL["stop"], "stopped")

    def restart(self, names: list[str]) -> list[Outcome]:
        return self._each(names, self.CONTROL["restart"], "restarted")

    def signal(self, sig: str, names: list[str]) -> list[Outcome]:
        """Send a signal to each named service.

        Raises:
            UnknownSignal: If sig is not a POSIX signal name
            UnsupportedOperation: If the suite cannot deliver that signal
        """
        canonical = normalize_signal(sig)
        control_arg = self.SIGNALS.get(canonical)
        if control_arg is None:
            raise UnsupportedOperation(
                f"{self.suite.value} cannot send SIG{canonical} "
                f"(supported: {', '.join(sorted(self.SIGNALS))})"
            )
        return self._each(names, control_arg, f"sent SIG{canonical}")

    def rescan(self) -> str:
        raise UnsupportedOperation(f"{self.suite.value} does not support rescan")

    def terminate(self) -> str:
        raise UnsupportedOperation(f"{self.suite.value} does not support terminate")


# --- daemontools ---


# "/service/foo: up (pid 123) 45 seconds, normally down"
# "/service/foo: down 3 seconds, normally up, want up"
_SVSTAT_RE = re.compile(
    r"^(?P<state>up|down) (?:\(pid (?P<pid>\d+)\) )?(?P<secs>\d+) seconds(?P<flags>.*)$"
)


def _parse_svstat_state(text: str) -> tuple[str, int | None, int] | None:
    """Parse the part of an svstat line after "DIR: "."""
    match = _SVSTAT_RE.match(text.strip())
    if not match:
        return None
    state = match.group("state")
    pid = int(match.group("pid")) if match.group("pid") else None
    if state == "down" and "want up" in match.group("flags"):
        state = ServiceStatus.STARTING.value
    if state != ServiceStatus.UP.value:
        pid = None
    return state, pid, int(match.group("secs"))


class DaemontoolsAdapter(SuiteAdapter):
    """Adapter for daemontools (svscan/supervise, svstat, svc, multilog).

    svscan rescans its directory on its own and has no supervisor-wide
    control, so neither rescan nor terminate is available.
    """

    suite = SuiteKind.DAEMONTOOLS
    DEFAULT_BASEDIR = Path("/service")
    CONTROL = {"start": "-u", "stop": "-d", "restart": "-t"}
    SIGNALS = {
        "HUP": "-h",
        "ALRM": "-a",
        "INT": "-i",
        "TERM": "-t",
        "KILL": "-k",
        "STOP": "-p",
        "CONT": "-c",
        "USR1": "-1",
        "USR2": "-2",
    }

    def status(self) -> dict[str, Service]:
        names = self.service_dirs()
        if not names:
            return {}

        targets = []
        for name in names:
            targets.append(self._service_path(name))
            targets.append(self._service_path(name) + "/log")

        try:
            result = self._run([self._binary("svstat"), *targets])
        except AdapterInvocationFailure as e:
            logger.warning(f"svstat failed: {e}")
            return {}

        # svstat prints one "DIR: ..." line per argument
        lines: dict[str, str] = {}
        for line in result.stdout.splitlines():
            path, sep, rest = line.partition(": ")
            if sep:
                lines[path] = rest

        statuses = {}
        for name in names:
            main = _parse_svstat_state(lines.get(self._service_path(name), ""))
            if main is None:
                logger.debug(f"Omitting {name}: no readable status")
                continue
            state, pid, secs = main
            log = _parse_svstat_state(lines.get(self._service_path(name) + "/log", ""))
            statuses[name] = Service(
                name=name,
                status=state,
                pid=pid,
                duration=secs,
                log_pid=log[1] if log else None,
            )
        return statuses

    def _control_command(self, control_arg: str, name: str) -> list[str]:
        return [self._binary("svc"), control_arg, self._service_path(name)]


# --- perp ---


# "nginx: activated 1234 seconds" / "nginx: not activated"
_PERP_HEAD_RE = re.compile(r"^(?P<name>\S+): (?P<active>activated|not activated)")
# "  main: up 1234 seconds (pid 501)" / "   log: down 3 seconds"
_PERP_PROC_RE = re.compile(
    r"^\s+(?P<which>main|log): (?P<state>\w+) (?P<secs>\d+) seconds(?:.*?\(pid (?P<pid>\d+)\))?"
)


class PerpAdapter(SuiteAdapter):
    """Adapter for perp (perpd, perpstat, perpctl, perphup, tinylog).

    perpd rescans its base directory on SIGHUP and shuts down on SIGTERM,
    both sent through perphup.
    """

    suite = SuiteKind.PERP
    DEFAULT_BASEDIR = Path("/etc/perp")
    CONTROL = {"start": "u", "stop": "d", "restart": "t"}
    SIGNALS = {
        "HUP": "h",
        "ALRM": "a",
        "INT": "i",
        "QUIT": "q",
        "TERM": "t",
        "KILL": "k",
        "STOP": "p",
        "CONT": "c",
        "USR1": "1",
        "USR2": "2",
        "WINCH": "w",
    }
    capabilities = frozenset({Capability.RESCAN, Capability.TERMINATE})

    def status(self) -> dict[str, Service]:
        names = self.service_dirs()
        if not names:
            return {}

        try:
            result = self._run(
                [self._binary("perpstat"), "-b", str(self.basedir), *names]
            )
        except AdapterInvocationFailure as e:
            logger.warning(f"perpstat failed: {e}")
            return {}

        # Group lines into one block per service
        blocks: dict[str, dict] = {}
        current: dict | None = None
        for line in result.stdout.splitlines():
            head = _PERP_HEAD_RE.match(line)
            if head:
                current = {"active": head.group("active") == "activated"}
                blocks[head.group("name")] = current
                continue
            proc = _PERP_PROC_RE.match(line)
            if proc and current is not None:
                current[proc.group("which")] = proc

        statuses = {}
        for name in names:
            block = blocks.get(name)
            if block is None:
                logger.debug(f"Omitting {name}: no readable status")
                continue
            if not block["active"]:
                statuses[name] = Service(name=name, status="inactive")
                continue
            main = block.get("main")
            if main is None:
                logger.debug(f"Omitting {name}: no main process line")
                continue
            state = main.group("state")
            pid = int(main.group("pid")) if main.group("pid") else None
            log = block.get("log")
            log_pid = int(log.group("pid")) if log is not None and log.group("pid") else None
            statuses[name] = Service(
                name=name,
                status=state,
                pid=pid if state in ("up", "resetting") else None,
                duration=int(main.group("secs")),
                log_pid=log_pid,
            )
        return statuses

    def _control_command(self, control_arg: str, name: str) -> list[str]:
        return [self._binary("perpctl"), "-b", str(self.basedir), control_arg, name]

    def rescan(self) -> str:
        return self._supervisor_call(
            Capability.RESCAN, [self._binary("perphup"), str(self.basedir)]
        )

    def terminate(self) -> str:
        return self._supervisor_call(
            Capability.TERMINATE, [self._binary("perphup"), "-t", str(self.basedir)]
        )


# --- s6 ---


# "up (pid 1234) 56 seconds, ready 56 seconds"
# "down (exitcode 0) 12 seconds, normally up, want up, ready 12 seconds"
_S6_SVSTAT_RE = re.compile(
    r"^(?P<state>up|down) \((?:pid (?P<pid>\d+)|[^)]*)\) (?P<secs>\d+) seconds(?P<flags>.*)$"
)


def _parse_s6_svstat(text: str) -> tuple[str, int | None, int] | None:
    match = _S6_SVSTAT_RE.match(text.strip())
    if not match:
        return None
    state = match.group("state")
    pid = int(match.group("pid")) if match.group("pid") else None
    if state == "down" and "want up" in match.group("flags"):
        state = ServiceStatus.STARTING.value
    if state != ServiceStatus.UP.value:
        pid = None
    return state, pid, int(match.group("secs"))


class S6Adapter(SuiteAdapter):
    """Adapter for s6 (s6-svscan, s6-svstat, s6-svc, s6-svscanctl, s6-log)."""

    suite = SuiteKind.S6
    DEFAULT_BASEDIR = Path("/run/service")
    CONTROL = {"start": "-u", "stop": "-d", "restart": "-r"}
    SIGNALS = {
        "ALRM": "-a",
        "ABRT": "-b",
        "QUIT": "-q",
        "HUP": "-h",
        "KILL": "-k",
        "TERM": "-t",
        "INT": "-i",
        "USR1": "-1",
        "USR2": "-2",
        "STOP": "-p",
        "CONT": "-c",
        "WINCH": "-y",
    }
    capabilities = frozenset({Capability.RESCAN, Capability.TERMINATE})

    def _svstat(self, path: str) -> tuple[str, int | None, int] | None:
        try:
            result = self._run([self._binary("s6-svstat"), path])
        except AdapterInvocationFailure as e:
            logger.debug(f"s6-svstat {path}: {e}")
            return None
        if result.returncode != 0:
            return None
        return _parse_s6_svstat(result.stdout)

    def status(self) -> dict[str, Service]:
        statuses = {}
        for name in self.service_dirs():
            main = self._svstat(self._service_path(name))
            if main is None:
                logger.debug(f"Omitting {name}: no readable status")
                continue
            state, pid, secs = main

            log_pid = None
            if (self.basedir / name / "log").is_dir():
                log = self._svstat(self._service_path(name) + "/log")
                log_pid = log[1] if log else None

            statuses[name] = Service(
                name=name, status=state, pid=pid, duration=secs, log_pid=log_pid
            )
        return statuses

    def _control_command(self, control_arg: str, name: str) -> list[str]:
        return [self._binary("s6-svc"), control_arg, self._service_path(name)]

    def rescan(self) -> str:
        return self._supervisor_call(
            Capability.RESCAN, [self._binary("s6-svscanctl"), "-a", str(self.basedir)]
        )

    def terminate(self) -> str:
        return self._supervisor_call(
            Capability.TERMINATE, [self._binary("s6-svscanctl"), "-t", str(self.basedir)]
        )


# --- runit ---


# "run: /etc/service/foo: (pid 123) 45s, normally down"
# "down: /etc/service/foo: 3s, normally up, want up"
_SV_MAIN_RE = re.compile(
    r"^(?P<state>run|down|finish): (?P<path>.+?): (?:\(pid (?P<pid>\d+)\) )?(?P<secs>\d+)s(?P<flags>.*)$"
)
# "run: log: (pid 124) 45s"
_SV_LOG_RE = re.compile(r"^(?P<state>run|down|finish): log: (?:\(pid (?P<pid>\d+)\) )?")

_RUNIT_STATES = {"run": ServiceStatus.UP.value, "down": ServiceStatus.DOWN.value}


class RunitAdapter(SuiteAdapter):
    """Adapter for runit (runsvdir, runsv, sv, svlogd).

    runsvdir rescans every few seconds by itself and sv offers no
    supervisor-wide shutdown, so rescan and terminate are unavailable.
    """

    suite = SuiteKind.RUNIT
    DEFAULT_BASEDIR = Path("/etc/service")
    CONTROL = {"start": "up", "stop": "down", "restart": "restart"}
    SIGNALS = {
        "HUP": "hup",
        "ALRM": "alarm",
        "INT": "interrupt",
        "QUIT": "quit",
        "TERM": "term",
        "KILL": "kill",
        "STOP": "pause",
        "CONT": "cont",
        "USR1": "1",
        "USR2": "2",
    }

    def status(self) -> dict[str, Service]:
        names = self.service_dirs()
        if not names:
            return {}

        paths = {self._service_path(name): name for name in names}
        try:
            result = self._run([self._binary("sv"), "status", *paths])
        except AdapterInvocationFailure as e:
            logger.warning(f"sv status failed: {e}")
            return {}

        statuses = {}
        for line in result.stdout.splitlines():
            main_part, _, log_part = line.partition("; ")
            match = _SV_MAIN_RE.match(main_part.strip())
            if not match:
                # "fail:" and "warning:" lines
                logger.debug(f"Skipping sv status line: {line}")
                continue
            name = paths.get(match.group("path"))
            if name is None:
                continue

            raw_state = match.group("state")
            state = _RUNIT_STATES.get(raw_state, raw_state)
            if state == ServiceStatus.DOWN.value and "want up" in match.group("flags"):
                state = ServiceStatus.STARTING.value
            pid = int(match.group("pid")) if match.group("pid") else None
            if state not in (ServiceStatus.UP.value, "finish"):
                pid = None

            log_pid = None
            log_match = _SV_LOG_RE.match(log_part.strip())
            if log_match and log_match.group("pid"):
                log_pid = int(log_match.group("pid"))

            statuses[name] = Service(
                name=name,
                status=state,
                pid=pid,
                duration=int(match.group("secs")),
                log_pid=log_pid,
            )
        return statuses

    def _control_command(self, control_arg: str, name: str) -> list[str]:
        return [self._binary("sv"), control_arg, self._service_path(name)]


# --- Suite selection ---


ADAPTERS: dict[SuiteKind, type[SuiteAdapter]] = {
    SuiteKind.DAEMONTOOLS: DaemontoolsAdapter,
    SuiteKind.PERP: PerpAdapter,
    SuiteKind.S6: S6Adapter,
    SuiteKind.RUNIT: RunitAdapter,
}


def adapter_class(suite: SuiteKind) -> type[SuiteAdapter]:
    """Get the adapter class for a suite."""
    return ADAPTERS[suite]


def get_adapter(session: Session) -> SuiteAdapter:
    """Build the adapter for the session's suite, base and binary directories."""
    return adapter_class(session.suite)(basedir=session.basedir, bindir=session.bindir)
