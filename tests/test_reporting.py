from __future__ import annotations

from bddexec.core.models import LogEntry
from bddexec.core.results import RunOutcome, RunReport, SessionResult, SessionState
from bddexec.execution import LogAppended, SessionFinished, StateChanged
from bddexec.reporting import TerminalReporter


def _entry(message: str, status: str = "INFO") -> LogEntry:
    return LogEntry(timestamp="2024-01-01T10:00:00", message=message, status=status)


def test_terminal_reporter_prints_entries(capsys) -> None:
    reporter = TerminalReporter(use_color=False)
    reporter.on_entry(_entry("Connecting to ws://runner"))
    reporter.on_entry(_entry("raw frame", "DEBUG"))
    reporter.on_entry(_entry("Execution completed", "COMPLETED"))
    out = capsys.readouterr().out.splitlines()
    assert out == [
        "2024-01-01T10:00:00 INFO      Connecting to ws://runner",
        "2024-01-01T10:00:00 COMPLETED Execution completed",
    ]


def test_terminal_reporter_shows_debug_and_states(capsys) -> None:
    reporter = TerminalReporter(use_color=False, show_debug=True, show_states=True)
    reporter.on_event(StateChanged(SessionState.STREAMING))
    reporter.on_event(LogAppended(_entry("raw frame", "debug")))
    out = capsys.readouterr().out
    assert "-- streaming" in out
    assert "raw frame" in out


def test_terminal_reporter_session_summary(capsys) -> None:
    reporter = TerminalReporter(use_color=False)
    logs = (_entry("boom", "ERROR"), _entry("Connection closed by client"))
    result = SessionResult(state=SessionState.CLOSED, outcome=RunOutcome.FAILED, logs=logs)
    reporter.on_event(StateChanged(SessionState.CLOSED))
    reporter.on_event(SessionFinished(result))
    out = capsys.readouterr().out
    assert out.strip() == "Summary: outcome=failed state=closed entries=2 errors=1"


def test_terminal_reporter_run_summary(capsys) -> None:
    reporter = TerminalReporter(use_color=False)
    report = RunReport(testcase_id="TC0013", script="", logs=(_entry("Test Passed - done", "SUCCESS"),))
    reporter.on_report(report)
    assert capsys.readouterr().out.strip() == "Summary: testcase=TC0013 result=passed entries=1 errors=0"
