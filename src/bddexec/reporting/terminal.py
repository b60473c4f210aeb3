"""Terminal reporter rendering log entries and run summaries."""
from __future__ import annotations

import click
from colorama import Fore, Style, init as colorama_init

from bddexec.core.models import LogEntry
from bddexec.core.results import RunReport, SessionResult
from bddexec.execution.session import LogAppended, SessionEvent, SessionFinished, StateChanged

STATUS_COLORS = {
    "SUCCESS": "green",
    "COMPLETED": "green",
    "ERROR": "red",
    "FAILED": "red",
    "DEBUG": "bright_black",
}


class TerminalReporter:
    """Human-readable reporter that streams to stdout."""

    def __init__(self, *, use_color: bool = True, show_debug: bool = False, show_states: bool = False) -> None:
        self._use_color = use_color
        self._show_debug = show_debug
        self._show_states = show_states
        if use_color:
            colorama_init()

    def on_entry(self, entry: LogEntry) -> None:
        if entry.status.upper() == "DEBUG" and not self._show_debug:
            return
        status = f"{entry.status.upper():<9}"
        click.echo(f"{entry.timestamp} {self._styled(status, entry.status)} {entry.message}")

    def on_event(self, event: SessionEvent) -> None:
        if isinstance(event, LogAppended):
            self.on_entry(event.entry)
        elif isinstance(event, StateChanged) and self._show_states:
            click.echo(self._styled(f"-- {event.state.value}", "DEBUG"))
        elif isinstance(event, SessionFinished):
            self.on_session_result(event.result)

    def on_session_result(self, result: SessionResult) -> None:
        errors = sum(1 for entry in result.logs if entry.is_error)
        self._print_summary(
            f"outcome={result.outcome.value} state={result.state.value} entries={len(result.logs)} errors={errors}",
            ok=result.passed,
        )

    def on_report(self, report: RunReport) -> None:
        errors = sum(1 for entry in report.logs if entry.is_error)
        verdict = "passed" if report.passed else "failed"
        self._print_summary(f"testcase={report.testcase_id} result={verdict} entries={len(report.logs)} errors={errors}", ok=report.passed)

    def _styled(self, text: str, status: str) -> str:
        if not self._use_color:
            return text
        color = STATUS_COLORS.get(status.upper())
        if color:
            return click.style(text, fg=color)
        return text

    def _print_summary(self, text: str, *, ok: bool) -> None:
        color = (Fore.GREEN if ok else Fore.RED) if self._use_color else ""
        reset = Style.RESET_ALL if self._use_color else ""
        click.echo(f"{color}Summary{reset}: {text}")
