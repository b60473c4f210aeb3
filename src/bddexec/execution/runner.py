"""Starts streaming sessions, allowing at most one active session at a time."""
from __future__ import annotations

import threading
from typing import Callable, Optional

from bddexec.config import ApiSettings
from bddexec.core.errors import SessionBusyError
from bddexec.core.results import SessionResult
from bddexec.endpoints import EndpointResolver

from .session import DEFAULT_POLL_INTERVAL, DEFAULT_TIMEOUT, ExecutionSession, SessionEvent, SessionFinished
from .transport import TransportFactory


class ExecutionRunner:
    """Owns the current execution session for one logical run slot."""

    def __init__(
        self,
        settings: ApiSettings,
        token: str,
        *,
        resolver: Optional[EndpointResolver] = None,
        transport_factory: Optional[TransportFactory] = None,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._settings = settings
        self._token = token
        self._resolver = resolver or settings.resolver()
        self._transport_factory = transport_factory
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._lock = threading.Lock()
        self._current: Optional[ExecutionSession] = None

    @property
    def current(self) -> Optional[ExecutionSession]:
        return self._current

    @property
    def busy(self) -> bool:
        session = self._current
        return session is not None and not session.state.terminal

    def start(
        self,
        testcase_id: str,
        script_type: str,
        *,
        on_finished: Optional[Callable[[SessionResult], None]] = None,
    ) -> ExecutionSession:
        """Start a new session; fails fast while the previous one is still running."""

        with self._lock:
            previous = self._current
            if previous is not None and not previous.state.terminal:
                raise SessionBusyError(f"A session for {previous.testcase_id} is still {previous.state.value}")
            session = ExecutionSession(
                self._resolver,
                self._settings.base_url,
                self._token,
                timeout=self._timeout,
                transport_factory=self._transport_factory,
                on_finished=on_finished,
                poll_interval=self._poll_interval,
            )
            self._current = session
            return session.start(testcase_id, script_type)

    def abort(self) -> bool:
        session = self._current
        return session.abort() if session is not None else False

    def run(
        self,
        testcase_id: str,
        script_type: str,
        *,
        on_event: Optional[Callable[[SessionEvent], None]] = None,
    ) -> SessionResult:
        """Start a session and block until it finishes, forwarding every event."""

        session = self.start(testcase_id, script_type)
        while True:
            try:
                for event in session.events():
                    if on_event is not None:
                        on_event(event)
                    if isinstance(event, SessionFinished):
                        return event.result
            except KeyboardInterrupt:
                # Keep draining so the cancellation entry reaches the observer.
                session.abort()
