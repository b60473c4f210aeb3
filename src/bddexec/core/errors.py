"""Exception hierarchy for runtime failures."""
from __future__ import annotations

from typing import Optional


class BddexecError(Exception):
    """Base class for errors raised by bddexec at runtime."""


class ApiError(BddexecError):
    """A request/response call failed; message is the server detail when available."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(BddexecError):
    """The streaming transport could not be established or broke mid-run."""


class AuthenticationError(TransportError):
    """The runner rejected the bearer credential."""


class SessionStateError(BddexecError):
    """An operation was requested in a state that does not allow it."""


class SessionBusyError(SessionStateError):
    """A run was started while a previous session is still active."""
