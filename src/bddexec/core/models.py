"""Core dataclasses shared across bddexec subsystems."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Tuple

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


def now_timestamp() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


class LogStatus(str, Enum):
    """Statuses produced by the client itself."""

    INFO = "INFO"
    DEBUG = "DEBUG"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


TERMINAL_STATUSES = ("COMPLETED", "FAILED")

# Markers printed by generated scripts; the runner echoes them back.
PASS_MARKER = "Test Passed"
FAIL_MARKER = "Test Failed"


@dataclass(frozen=True)
class LogEntry:
    """One line of execution output.

    ``status`` is either a :class:`LogStatus` value or a raw status string
    copied from the runner (for example ``COMPLETED``).
    """

    timestamp: str
    message: str
    status: str = LogStatus.INFO.value

    @classmethod
    def create(cls, message: str, status: LogStatus | str = LogStatus.INFO) -> "LogEntry":
        value = status.value if isinstance(status, LogStatus) else str(status)
        return cls(timestamp=now_timestamp(), message=message, status=value)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LogEntry":
        return cls(
            timestamp=str(data.get("timestamp") or ""),
            message=str(data.get("message") or ""),
            status=str(data.get("status") or ""),
        )

    @property
    def is_error(self) -> bool:
        return self.status.upper() == LogStatus.ERROR.value

    def to_dict(self) -> dict[str, str]:
        return {"timestamp": self.timestamp, "message": self.message, "status": self.status}


@dataclass(frozen=True)
class ExecutionResponse:
    """Message pushed by the runner over the streaming connection."""

    testcaseid: Optional[str] = None
    script_type: Optional[str] = None
    status: Optional[str] = None
    logs: Tuple[LogEntry, ...] = tuple()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ExecutionResponse":
        logs = data.get("logs") or []
        return cls(
            testcaseid=data.get("testcaseid"),
            script_type=data.get("script_type"),
            status=data.get("status"),
            logs=tuple(LogEntry.from_mapping(item) for item in logs),
        )

    @property
    def has_error(self) -> bool:
        return any(entry.is_error for entry in self.logs)

    @property
    def terminal_status(self) -> Optional[str]:
        """Return the status when it ends the run (COMPLETED or FAILED)."""

        if self.status and self.status.upper() in TERMINAL_STATUSES:
            return self.status
        return None


@dataclass(frozen=True)
class TestPlan:
    """Ordered BDD steps for the current test case."""

    __test__ = False  # keep pytest from collecting this class

    testcase_id: str
    steps: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @classmethod
    def from_pairs(cls, testcase_id: str, pairs: Sequence[Tuple[str, Any]]) -> "TestPlan":
        return cls(
            testcase_id=testcase_id,
            steps=tuple((str(phrase), _data_text(data)) for phrase, data in pairs),
        )

    def __len__(self) -> int:
        return len(self.steps)


def _data_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)
