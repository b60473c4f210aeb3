"""Streaming transport abstraction and its WebSocket implementation."""
from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Protocol, Union

from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidStatus, InvalidURI
from websockets.sync.client import ClientConnection, connect

from bddexec.core.errors import AuthenticationError, TransportError

LOGGER = logging.getLogger(__name__)

DEFAULT_CLOSE_TIMEOUT = 5.0
ABNORMAL_CLOSURE = 1006
AUTH_REJECTED_STATUS = {401, 403}


@dataclass(frozen=True)
class TextFrame:
    text: str


@dataclass(frozen=True)
class BinaryFrame:
    data: bytes


@dataclass(frozen=True)
class CloseFrame:
    code: int
    reason: str = ""


Frame = Union[TextFrame, BinaryFrame, CloseFrame]


class Transport(Protocol):
    """Bidirectional message transport owned by one execution session."""

    def send(self, text: str) -> None:
        ...

    def recv(self, timeout: float) -> Frame:
        """Return the next frame; raise ``TimeoutError`` if none arrives in time."""
        ...

    def close(self, timeout: float) -> bool:
        """Close gracefully; return True when a close handshake was performed."""
        ...

    def abort(self) -> None:
        """Drop the connection without a close handshake."""
        ...


TransportFactory = Callable[[str, Mapping[str, str], float], Transport]


class WebSocketTransport:
    """Transport backed by the ``websockets`` synchronous client."""

    def __init__(self, connection: ClientConnection) -> None:
        self._connection = connection
        self._peer_closed = False

    @classmethod
    def connect(cls, url: str, headers: Mapping[str, str], timeout: float) -> "WebSocketTransport":
        LOGGER.debug("Opening WebSocket to %s (timeout %.1fs)", url, timeout)
        try:
            connection = connect(
                url,
                additional_headers=dict(headers),
                open_timeout=timeout,
                close_timeout=DEFAULT_CLOSE_TIMEOUT,
            )
        except InvalidStatus as exc:
            status = exc.response.status_code
            if status in AUTH_REJECTED_STATUS:
                raise AuthenticationError(f"Runner rejected credentials (HTTP {status})") from exc
            raise TransportError(f"WebSocket handshake failed (HTTP {status})") from exc
        except InvalidURI as exc:
            raise TransportError(f"Invalid WebSocket URL {url}: {exc}") from exc
        except TimeoutError:
            raise
        except (InvalidHandshake, OSError) as exc:
            raise TransportError(f"WebSocket connection failed: {exc}") from exc
        return cls(connection)

    def send(self, text: str) -> None:
        try:
            self._connection.send(text)
        except ConnectionClosed as exc:
            raise TransportError(f"Connection closed while sending: {exc}") from exc

    def recv(self, timeout: float) -> Frame:
        try:
            message = self._connection.recv(timeout=timeout)
        except ConnectionClosed as exc:
            self._peer_closed = True
            if exc.rcvd is None:
                raise TransportError(f"Connection lost (code {ABNORMAL_CLOSURE})") from exc
            return CloseFrame(code=exc.rcvd.code, reason=exc.rcvd.reason)
        if isinstance(message, bytes):
            return BinaryFrame(message)
        return TextFrame(message)

    def close(self, timeout: float) -> bool:
        if self._peer_closed:
            return False
        self._connection.close_timeout = timeout
        self._connection.close()
        return True

    def abort(self) -> None:
        sock = self._connection.socket
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            LOGGER.debug("Socket already shut down")
        sock.close()


def default_transport_factory(url: str, headers: Mapping[str, str], timeout: float) -> Transport:
    return WebSocketTransport.connect(url, headers, timeout)


def describe_close(frame: CloseFrame, *, default: Optional[str] = None) -> str:
    reason = frame.reason or default
    return f"code {frame.code}: {reason}" if reason else f"code {frame.code}"
