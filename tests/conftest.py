from __future__ import annotations

import json
import queue
import threading
import time
from typing import Any, List, Mapping, Optional, Sequence

import pytest

from bddexec.core.results import SessionState
from bddexec.endpoints import EndpointResolver
from bddexec.execution.transport import CloseFrame, Frame, TextFrame


class FakeTransport:
    """In-memory transport; frames are delivered in the order they were queued."""

    def __init__(
        self,
        frames: Sequence[Frame] = (),
        *,
        close_error: Optional[Exception] = None,
        send_gate: Optional[threading.Event] = None,
    ) -> None:
        self._frames: "queue.Queue[Frame]" = queue.Queue()
        for frame in frames:
            self._frames.put(frame)
        self.close_error = close_error
        self.send_gate = send_gate
        self.sent: List[str] = []
        self.close_calls = 0
        self.abort_calls = 0
        self.peer_closed = False

    def push(self, frame: Frame) -> None:
        self._frames.put(frame)

    def send(self, text: str) -> None:
        if self.send_gate is not None:
            self.send_gate.wait(5)
        self.sent.append(text)

    def recv(self, timeout: float) -> Frame:
        try:
            frame = self._frames.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError() from None
        if isinstance(frame, CloseFrame):
            self.peer_closed = True
        return frame

    def close(self, timeout: float) -> bool:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error
        return not self.peer_closed

    def abort(self) -> None:
        self.abort_calls += 1
        if self.send_gate is not None:
            self.send_gate.set()


class FakeFactory:
    """Transport factory handing out prepared transports (or raising an error).

    With a ``gate``, each connect blocks until the gate is set.
    """

    def __init__(
        self,
        *transports: FakeTransport,
        error: Optional[Exception] = None,
        gate: Optional[threading.Event] = None,
    ) -> None:
        self.transports = list(transports)
        self.error = error
        self.gate = gate
        self.calls: List[tuple[str, Mapping[str, str], float]] = []

    def __call__(self, url: str, headers: Mapping[str, str], timeout: float) -> FakeTransport:
        self.calls.append((url, dict(headers), timeout))
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        if self.transports:
            return self.transports.pop(0)
        return FakeTransport()


def message(status: Optional[str] = "RUNNING", logs: Sequence[Mapping[str, Any]] = (), **extra: Any) -> TextFrame:
    payload = {"testcaseid": "TC0013", "script_type": "playwright", "status": status, "logs": list(logs)}
    payload.update(extra)
    return TextFrame(json.dumps(payload))


def log(message_text: str, status: str = "INFO") -> dict:
    return {"timestamp": "2024-01-01T10:00:00", "message": message_text, "status": status}


def wait_for_state(session, state: SessionState, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while session.state is not state:
        if time.monotonic() > deadline:
            raise AssertionError(f"session stuck in {session.state}, expected {state}")
        time.sleep(0.005)


@pytest.fixture
def resolver() -> EndpointResolver:
    return EndpointResolver()
