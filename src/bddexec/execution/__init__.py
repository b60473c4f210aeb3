"""Streaming execution of test cases against the remote runner."""
from .messages import EXECUTION_RESPONSE_SCHEMA, MessageFormatError, parse_execution_response
from .runner import ExecutionRunner
from .session import (
    DEFAULT_TIMEOUT,
    ExecutionSession,
    LogAppended,
    SessionEvent,
    SessionFinished,
    StateChanged,
)
from .transport import BinaryFrame, CloseFrame, TextFrame, Transport, WebSocketTransport

__all__ = [
    "DEFAULT_TIMEOUT",
    "EXECUTION_RESPONSE_SCHEMA",
    "BinaryFrame",
    "CloseFrame",
    "ExecutionRunner",
    "ExecutionSession",
    "LogAppended",
    "MessageFormatError",
    "SessionEvent",
    "SessionFinished",
    "StateChanged",
    "TextFrame",
    "Transport",
    "WebSocketTransport",
    "parse_execution_response",
]
