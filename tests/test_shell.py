"""Tests for the interactive shell, completion and rendering."""

from __future__ import annotations

import io
from pathlib import Path

import pytest
from rich.console import Console

from svsh.cli_ui.renderer import StatusTableRenderer, format_duration
from svsh.cli_ui.shell import InteractiveShell, ShellCompleter
from svsh.core.dispatcher import CommandDispatcher, CommandResult
from svsh.core.models import Outcome, Service, Session, SuiteKind


@pytest.fixture
def dispatcher(fake_adapter) -> CommandDispatcher:
    session = Session(suite=SuiteKind.S6, basedir=Path("/run/service"))
    return CommandDispatcher(session, adapter=fake_adapter)


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def renderer(output) -> StatusTableRenderer:
    return StatusTableRenderer(Console(file=output, width=120, color_system=None))


def _scripted(lines: list[str]):
    """input() replacement that replays lines, then signals EOF."""
    pending = list(lines)
    prompts = []

    def _input(prompt: str) -> str:
        prompts.append(prompt)
        if not pending:
            raise EOFError
        item = pending.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    _input.prompts = prompts
    return _input


class TestFormatDuration:
    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [
            (0, "0s"),
            (45, "45s"),
            (700, "11m 40s"),
            (3600, "1h"),
            (9813, "2h 43m 33s"),
            (90061, "1d 1h 1m 1s"),
        ],
    )
    def test_format(self, seconds, expected):
        assert format_duration(seconds) == expected


class TestRenderer:
    """Tests for StatusTableRenderer."""

    def test_status_table(self, renderer, output, snapshot):
        renderer.render(CommandResult(command="status", services=list(snapshot.values())))
        text = output.getvalue()
        assert "Service" in text
        assert "nginx" in text
        assert "4121" in text
        assert "2h 43m 33s" in text

    def test_collapsed_row_has_no_pid(self, renderer, output):
        family = Service(name="worker", status="3 up", pid=None, duration=60)
        renderer.render(CommandResult(command="status", services=[family]))
        row = [line for line in output.getvalue().splitlines() if "worker" in line][0]
        assert "3 up" in row
        assert "-" in row.split()

    def test_outcome_lines(self, renderer, output):
        outcomes = [
            Outcome(name="nginx", ok=True, message="started"),
            Outcome(name="worker-1", ok=False, message="timed out"),
        ]
        renderer.render(CommandResult(command="start", ok=False, outcomes=outcomes))
        assert output.getvalue().splitlines() == ["nginx: ok: started", "worker-1: failed: timed out"]

    def test_markup_in_names_is_escaped(self, renderer, output):
        renderer.render(CommandResult(command="status", ok=False, lines=["No service matches [bold]x"]))
        assert "[bold]x" in output.getvalue()


class TestShellCompleter:
    """Tests for completion candidates."""

    def test_commands(self, dispatcher):
        completer = ShellCompleter(dispatcher)
        assert completer.candidates("st", "st") == ["start", "status", "stop"]
        assert "terminate" in completer.candidates("", "")

    def test_service_names(self, dispatcher):
        completer = ShellCompleter(dispatcher)
        assert completer.candidates("restart wor", "wor") == ["worker-1", "worker-2", "worker-3"]
        assert completer.candidates("stop nginx ", "") == ["nginx", "worker-1", "worker-2", "worker-3"]

    def test_pattern_completes_to_matches(self, dispatcher):
        completer = ShellCompleter(dispatcher)
        assert completer.candidates("start *-2", "*-2") == ["worker-2"]

    def test_signal_names(self, dispatcher):
        completer = ShellCompleter(dispatcher)
        assert completer.candidates("signal us", "us") == ["USR1", "USR2"]
        assert completer.candidates("signal HUP ng", "ng") == ["nginx"]

    def test_signal_names_with_sig_prefix(self, dispatcher):
        completer = ShellCompleter(dispatcher)
        assert completer.candidates("signal sigte", "sigte") == ["SIGTERM"]
        assert completer.candidates("signal SIGUS", "SIGUS") == ["SIGUSR1", "SIGUSR2"]

    def test_toggle_flag(self, dispatcher):
        assert ShellCompleter(dispatcher).candidates("toggle c", "c") == ["collapse"]

    def test_fg_takes_one_name(self, dispatcher):
        completer = ShellCompleter(dispatcher)
        assert completer.candidates("fg ng", "ng") == ["nginx"]
        assert completer.candidates("fg nginx ", "") == []

    def test_no_arguments_for_other_commands(self, dispatcher):
        assert ShellCompleter(dispatcher).candidates("status ", "") == []


class TestInteractiveShell:
    """Tests for the shell loop."""

    def _shell(self, dispatcher, renderer, lines):
        return InteractiveShell(
            dispatcher,
            renderer,
            history_file=None,
            input_fn=_scripted(lines),
            use_readline=False,
        )

    def test_prompt(self, dispatcher, renderer):
        assert self._shell(dispatcher, renderer, []).prompt() == "svsh [s6]> "

    def test_status_on_entry_then_eof(self, dispatcher, renderer, output, fake_adapter):
        assert self._shell(dispatcher, renderer, []).run() == 0
        assert "worker-3" in output.getvalue()
        assert fake_adapter.status_calls == 1

    def test_runs_commands_until_quit(self, dispatcher, renderer, output, fake_adapter):
        shell = self._shell(dispatcher, renderer, ["start nginx", "quit", "stop nginx"])
        assert shell.run() == 0
        assert "nginx: ok: started" in output.getvalue()
        assert fake_adapter.calls == [["fake-svc", "-u", "nginx"]]

    def test_error_does_not_end_session(self, dispatcher, renderer, output, fake_adapter):
        shell = self._shell(dispatcher, renderer, ["frob", "", "stop nginx"])
        assert shell.run() == 0
        text = output.getvalue()
        assert "Unrecognized command 'frob'" in text
        assert "nginx: ok: stopped" in text

    def test_interrupt_discards_line(self, dispatcher, renderer, fake_adapter):
        input_fn = _scripted([KeyboardInterrupt(), "stop nginx"])
        shell = InteractiveShell(
            dispatcher, renderer, history_file=None, input_fn=input_fn, use_readline=False
        )
        assert shell.run() == 0
        assert fake_adapter.calls == [["fake-svc", "-d", "nginx"]]
        assert len(input_fn.prompts) == 3

    def test_interrupted_command_keeps_shell_running(
        self, dispatcher, renderer, output, fake_adapter, snapshot, mocker
    ):
        """Ctrl-C while a command runs abandons that command only."""
        mocker.patch.object(
            fake_adapter, "status", side_effect=[dict(snapshot), KeyboardInterrupt(), dict(snapshot)]
        )
        shell = self._shell(dispatcher, renderer, ["restart nginx", "stop nginx"])

        assert shell.run() == 0
        assert "Interrupted" in output.getvalue()
        assert fake_adapter.calls == [["fake-svc", "-d", "nginx"]]

    def test_interrupted_initial_status(self, dispatcher, renderer, output, fake_adapter, snapshot, mocker):
        mocker.patch.object(fake_adapter, "status", side_effect=[KeyboardInterrupt(), dict(snapshot)])
        shell = self._shell(dispatcher, renderer, ["stop nginx"])

        assert shell.run() == 0
        assert "Interrupted" in output.getvalue()
        assert fake_adapter.calls == [["fake-svc", "-d", "nginx"]]

    def test_toggle_persists_for_session(self, dispatcher, renderer, output, fake_adapter):
        shell = self._shell(dispatcher, renderer, ["toggle collapse", "status"])
        shell.run()
        assert dispatcher.session.collapse is True
        assert fake_adapter.status_calls == 3
        assert "collapse is now on" in output.getvalue()
        assert "3 up" in output.getvalue()
