"""Core models and helpers exposed at the package level."""
from .errors import (
    ApiError,
    AuthenticationError,
    BddexecError,
    SessionBusyError,
    SessionStateError,
    TransportError,
)
from .models import ExecutionResponse, LogEntry, LogStatus, TestPlan
from .results import RunOutcome, RunReport, SessionResult, SessionState

__all__ = [
    "ApiError",
    "AuthenticationError",
    "BddexecError",
    "ExecutionResponse",
    "LogEntry",
    "LogStatus",
    "RunOutcome",
    "RunReport",
    "SessionBusyError",
    "SessionResult",
    "SessionState",
    "SessionStateError",
    "TestPlan",
    "TransportError",
]
