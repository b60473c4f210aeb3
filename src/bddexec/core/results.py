"""Result data structures produced by compilation and execution runs."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from .models import PASS_MARKER, LogEntry, LogStatus


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    STREAMING = "streaming"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (SessionState.CLOSED, SessionState.FAILED)


class RunOutcome(str, Enum):
    """How a streaming run ended."""

    PASSED = "passed"
    FAILED = "failed"
    DISCONNECTED = "disconnected"
    REJECTED = "rejected"
    ERROR = "error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"

    @property
    def orderly(self) -> bool:
        """True when the runner finished the protocol exchange itself."""

        return self in (RunOutcome.PASSED, RunOutcome.FAILED, RunOutcome.DISCONNECTED)


@dataclass(frozen=True)
class SessionResult:
    """Snapshot of a finished execution session."""

    state: SessionState
    outcome: RunOutcome
    logs: Tuple[LogEntry, ...]

    @property
    def passed(self) -> bool:
        return self.outcome == RunOutcome.PASSED


@dataclass(frozen=True)
class RunReport:
    """Outcome of the fetch, compile and upload pipeline for one test case."""

    testcase_id: str
    script: str
    logs: Tuple[LogEntry, ...]

    @property
    def passed(self) -> bool:
        has_success = any(entry.status == LogStatus.SUCCESS.value and PASS_MARKER in entry.message for entry in self.logs)
        return has_success and not any(entry.is_error for entry in self.logs)
