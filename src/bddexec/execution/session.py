"""State machine driving one streaming execution against the remote runner.

A session goes ``IDLE -> CONNECTING -> AUTHENTICATING -> STREAMING -> CLOSING``
and ends in ``CLOSED`` or ``FAILED``. All transport work happens on threads
owned by the session; observers read events from :meth:`events` or a
snapshot from :attr:`logs` and never touch the transport.
"""
from __future__ import annotations

import json
import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, Union

from bddexec.core.errors import AuthenticationError, SessionStateError, TransportError
from bddexec.core.models import LogEntry, LogStatus
from bddexec.core.results import RunOutcome, SessionResult, SessionState
from bddexec.endpoints import EndpointResolver, stream_url

from .messages import MessageFormatError, parse_execution_response
from .transport import BinaryFrame, CloseFrame, Frame, Transport, TransportFactory, default_transport_factory, describe_close

LOGGER = logging.getLogger(__name__)

STREAM_ENDPOINT = "ExecuteStream"
DEFAULT_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 0.1
DEFAULT_CLOSE_TIMEOUT = 5.0
# Close codes a runner uses to refuse the credential.
AUTH_REJECTED_CODES = frozenset({1008, 4001, 4003, 4401, 4403})


@dataclass(frozen=True)
class LogAppended:
    entry: LogEntry


@dataclass(frozen=True)
class StateChanged:
    state: SessionState


@dataclass(frozen=True)
class SessionFinished:
    result: SessionResult


SessionEvent = Union[LogAppended, StateChanged, SessionFinished]


class _Timeout(Exception):
    pass


class _Cancelled(Exception):
    pass


class _BackgroundCall:
    """Runs one blocking transport call on a helper thread.

    The session worker waits for it in poll slices so cancellation and the
    deadline still apply. If the worker gives up first, the value the call
    produces later is handed to the ``on_late`` callback given to
    :meth:`abandon`.
    """

    def __init__(self, fn: Callable[[], Any], name: str) -> None:
        self._fn = fn
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._abandoned = False
        self._on_late: Optional[Callable[[Any], None]] = None
        self._value: Any = None
        self._error: Optional[Exception] = None
        threading.Thread(target=self._target, name=name, daemon=True).start()

    def wait(self, timeout: float) -> bool:
        return self._done.wait(timeout)

    def result(self) -> Any:
        if self._error is not None:
            raise self._error
        return self._value

    def abandon(self, on_late: Optional[Callable[[Any], None]] = None) -> None:
        with self._lock:
            self._abandoned = True
            self._on_late = on_late
            finished = self._done.is_set()
            value, self._value = self._value, None
        if finished and value is not None and on_late is not None:
            on_late(value)

    def _target(self) -> None:
        value: Any = None
        error: Optional[Exception] = None
        try:
            value = self._fn()
        except Exception as exc:
            error = exc
        with self._lock:
            self._value, self._error = value, error
            self._done.set()
            late = self._on_late if self._abandoned else None
        if late is not None and value is not None:
            late(value)


def _drop_transport(transport: Transport) -> None:
    LOGGER.debug("Dropping connection that opened after the session gave up")
    transport.abort()


class ExecutionSession:
    """One streaming run: connect, authenticate, stream logs, tear down."""

    def __init__(
        self,
        resolver: EndpointResolver,
        base_url: str,
        token: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport_factory: Optional[TransportFactory] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
        on_finished: Optional[Callable[[SessionResult], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._resolver = resolver
        self._base_url = base_url
        self._token = token
        self._timeout = timeout
        self._transport_factory = transport_factory or default_transport_factory
        self._poll_interval = poll_interval
        self._close_timeout = close_timeout
        self._on_finished = on_finished
        self._clock = clock

        self._lock = threading.Lock()
        self._events: "queue.Queue[SessionEvent]" = queue.Queue()
        self._logs: List[LogEntry] = []
        self._state = SessionState.IDLE
        self._cancel: Optional[threading.Event] = None
        self._deadline = 0.0
        self._transport: Optional[Transport] = None
        self._thread: Optional[threading.Thread] = None
        self._released = False
        self._result: Optional[SessionResult] = None
        self._finished = threading.Event()

        self.testcase_id: Optional[str] = None
        self.script_type: Optional[str] = None
        self.url: Optional[str] = None

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def logs(self) -> tuple[LogEntry, ...]:
        with self._lock:
            return tuple(self._logs)

    @property
    def result(self) -> Optional[SessionResult]:
        return self._result

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def start(self, testcase_id: str, script_type: str) -> "ExecutionSession":
        """Begin the run on a worker thread and return immediately."""

        with self._lock:
            if self._state is not SessionState.IDLE or self._thread is not None:
                raise SessionStateError(f"Session cannot start from state '{self._state.value}'")
            self.testcase_id = testcase_id
            self.script_type = script_type
            path = self._resolver.resolve(STREAM_ENDPOINT, {"testCaseId": testcase_id, "script_type": script_type})
            self.url = stream_url(self._base_url, path)
            self._cancel = threading.Event()
            self._deadline = self._clock() + self._timeout
            self._thread = threading.Thread(target=self._run, name=f"bddexec-session-{testcase_id}", daemon=True)
        self._thread.start()
        return self

    def abort(self) -> bool:
        """Cancel the run. Returns False when there is nothing left to cancel."""

        with self._lock:
            if self._released or self._state.terminal:
                return False
            if self._thread is not None:
                if self._cancel is None or self._cancel.is_set():
                    return False
                self._cancel.set()
                return True
            # Never started: nothing owns a transport, finish here.
            self._state = SessionState.CLOSING
        self._append(LogStatus.ERROR, "Execution cancelled by caller")
        self._release(RunOutcome.CANCELLED, SessionState.FAILED)
        return True

    def events(self, timeout: Optional[float] = None) -> Iterator[SessionEvent]:
        """Yield events in publication order until ``SessionFinished``.

        Intended for a single consumer; raises ``queue.Empty`` when ``timeout``
        elapses between two events.
        """

        while True:
            event = self._events.get(timeout=timeout)
            yield event
            if isinstance(event, SessionFinished):
                return

    def wait(self, timeout: Optional[float] = None) -> Optional[SessionResult]:
        self._finished.wait(timeout)
        return self._result

    # worker

    def _run(self) -> None:
        outcome = RunOutcome.ERROR
        graceful = True
        try:
            outcome = self._drive()
        except _Timeout:
            outcome, graceful = RunOutcome.TIMEOUT, False
            self._append(LogStatus.ERROR, f"Execution timed out after {self._timeout:g}s waiting for the runner")
        except _Cancelled:
            outcome, graceful = RunOutcome.CANCELLED, False
            self._append(LogStatus.ERROR, "Execution cancelled by caller")
        except AuthenticationError as exc:
            outcome = RunOutcome.REJECTED
            self._append(LogStatus.ERROR, f"Authentication rejected: {exc}")
        except TransportError as exc:
            outcome, graceful = RunOutcome.ERROR, False
            self._append(LogStatus.ERROR, f"Connection failed: {exc}")
        except Exception as exc:
            LOGGER.exception("Unexpected error in execution session")
            outcome, graceful = RunOutcome.ERROR, False
            self._append(LogStatus.ERROR, f"Unexpected error: {exc}")
        finally:
            self._teardown(outcome, graceful)

    def _drive(self) -> RunOutcome:
        self._set_state(SessionState.CONNECTING)
        self._append(LogStatus.INFO, f"Connecting to {self.url}")
        transport = self._open()
        self._transport = transport
        self._check_cancel()

        self._set_state(SessionState.AUTHENTICATING)
        credential = json.dumps({"token": self._token})
        # A send stuck on backpressure is unblocked by the abort in teardown.
        self._await(_BackgroundCall(lambda: transport.send(credential), name="bddexec-send"))
        self._append(LogStatus.INFO, "Connected and credential sent")

        self._set_state(SessionState.STREAMING)
        while True:
            frame = self._receive(transport)
            if isinstance(frame, CloseFrame):
                return self._on_close(frame)
            if isinstance(frame, BinaryFrame):
                LOGGER.debug("Ignoring binary frame of %d bytes", len(frame.data))
                continue
            outcome = self._on_message(frame.text)
            if outcome is not None:
                return outcome

    def _open(self) -> Transport:
        remaining = self._remaining()
        if remaining <= 0:
            raise _Timeout()
        headers = {"Authorization": f"Bearer {self._token}"}
        url = self.url or ""
        call = _BackgroundCall(lambda: self._transport_factory(url, headers, remaining), name="bddexec-connect")
        try:
            return self._await(call, on_late=_drop_transport)
        except TimeoutError as exc:
            raise _Timeout() from exc

    def _await(self, call: _BackgroundCall, on_late: Optional[Callable[[Any], None]] = None) -> Any:
        try:
            while not call.wait(max(0.0, min(self._remaining(), self._poll_interval))):
                self._check_cancel()
                if self._remaining() <= 0:
                    raise _Timeout()
        except (_Cancelled, _Timeout):
            call.abandon(on_late)
            raise
        return call.result()

    def _receive(self, transport: Transport) -> Frame:
        # Short slices keep cancellation responsive; the deadline is never renewed.
        while True:
            self._check_cancel()
            remaining = self._remaining()
            if remaining <= 0:
                raise _Timeout()
            try:
                return transport.recv(min(remaining, self._poll_interval))
            except TimeoutError:
                continue

    def _on_message(self, text: str) -> Optional[RunOutcome]:
        self._append(LogStatus.DEBUG, f"Raw message received: {text}")
        try:
            response = parse_execution_response(text)
        except MessageFormatError as exc:
            self._append(LogStatus.ERROR, f"Malformed message from runner: {exc}")
            return RunOutcome.ERROR
        if response is None:
            self._append(LogStatus.ERROR, "Received empty or invalid execution response")
            return RunOutcome.ERROR
        for entry in response.logs:
            self._append_entry(entry)
        if response.has_error:
            return RunOutcome.FAILED
        status = response.terminal_status
        if status is None:
            return None
        self._append(status, f"Execution {status.lower()}")
        return RunOutcome.PASSED if status.upper() == "COMPLETED" else RunOutcome.FAILED

    def _on_close(self, frame: CloseFrame) -> RunOutcome:
        if frame.code in AUTH_REJECTED_CODES:
            self._append(LogStatus.ERROR, f"Authentication rejected by runner ({describe_close(frame)})")
            return RunOutcome.REJECTED
        self._append(LogStatus.INFO, f"Connection closed by server ({describe_close(frame)})")
        return RunOutcome.DISCONNECTED

    def _teardown(self, outcome: RunOutcome, graceful: bool) -> None:
        if self._released:
            return
        self._set_state(SessionState.CLOSING)
        failed = not outcome.orderly
        transport, self._transport = self._transport, None
        if transport is not None:
            try:
                if graceful:
                    if transport.close(self._close_timeout):
                        self._append(LogStatus.INFO, "Connection closed by client")
                else:
                    transport.abort()
            except Exception as exc:
                LOGGER.debug("Transport close failed", exc_info=True)
                self._append(LogStatus.ERROR, f"Error closing connection: {exc}")
                failed = True
        self._release(outcome, SessionState.FAILED if failed else SessionState.CLOSED)

    def _release(self, outcome: RunOutcome, state: SessionState) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
            self._cancel = None
            self._state = state
            result = SessionResult(state=state, outcome=outcome, logs=tuple(self._logs))
            self._result = result
            self._events.put(StateChanged(state))
            self._events.put(SessionFinished(result))
        LOGGER.debug("Session for %s finished: %s/%s", self.testcase_id, state.value, outcome.value)
        try:
            if self._on_finished is not None:
                self._on_finished(result)
        finally:
            self._finished.set()

    # helpers

    def _check_cancel(self) -> None:
        cancel = self._cancel
        if cancel is not None and cancel.is_set():
            raise _Cancelled()

    def _remaining(self) -> float:
        return self._deadline - self._clock()

    def _set_state(self, state: SessionState) -> None:
        with self._lock:
            self._state = state
            self._events.put(StateChanged(state))
        LOGGER.debug("Session state -> %s", state.value)

    def _append(self, status: Union[LogStatus, str], message: str) -> None:
        self._append_entry(LogEntry.create(message, status))

    def _append_entry(self, entry: LogEntry) -> None:
        with self._lock:
            self._logs.append(entry)
            self._events.put(LogAppended(entry))
