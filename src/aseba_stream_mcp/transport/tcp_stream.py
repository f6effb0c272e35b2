"""TCP stream connection to an Aseba/Dashel endpoint.

The stream is stepped from the caller's own loop: each ``step()`` polls
the socket without blocking and, when data is pending, reads exactly one
complete frame and hands it to the message callback. A peer close or
transport error seen while reading is reported through the
disconnection callback rather than raised.
"""

from __future__ import annotations

import enum
import logging
import selectors
import socket
from typing import Callable, Iterable

from ..protocol.framing import HEADER_SIZE, Frame, build_frame, parse_header
from .errors import ConnectError, SendError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 33333
RECEIVE_TIMEOUT_MS = 1000
# None leaves the connect handshake to the OS timeout
CONNECT_TIMEOUT_MS: int | None = None

MessageCallback = Callable[[Frame], None]
DisconnectionCallback = Callable[[], None]


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


def log_message(frame: Frame) -> None:
    """Default message handler: log the frame in human-readable form."""
    logger.info(
        "Received message from %d of type 0x%04X, size %d : %s",
        frame.source,
        frame.msg_type,
        frame.length,
        ", ".join(str(b) for b in frame.payload),
    )


def log_disconnection() -> None:
    """Default disconnection handler."""
    logger.info("Disconnected from remote endpoint")


class FramedStream:
    """Owns one TCP connection and frames messages over it.

    Usage::

        stream = FramedStream()
        stream.set_message_callback(handle_frame)
        stream.connect("localhost")
        stream.send(source=1, msg_type=0x0042, payload=[1, 2, 3])
        while stream.connected:
            stream.step()
        stream.disconnect()

    Not thread-safe: ``step()`` and ``send()`` must be called from a
    single control loop or serialized by the caller.
    """

    def __init__(
        self,
        *,
        receive_timeout_ms: int = RECEIVE_TIMEOUT_MS,
        connect_timeout_ms: int | None = CONNECT_TIMEOUT_MS,
        message_callback: MessageCallback | None = None,
        disconnection_callback: DisconnectionCallback | None = None,
    ) -> None:
        self._receive_timeout = receive_timeout_ms / 1000
        self._connect_timeout = (
            connect_timeout_ms / 1000 if connect_timeout_ms is not None else None
        )
        self._message_callback: MessageCallback = message_callback or log_message
        self._disconnection_callback: DisconnectionCallback = (
            disconnection_callback or log_disconnection
        )
        self._sock: socket.socket | None = None
        self._selector: selectors.BaseSelector | None = None
        self._state = ConnectionState.DISCONNECTED
        self._endpoint = ""

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def endpoint(self) -> str:
        """``host:port`` of the remote side, or an empty string."""
        return self._endpoint

    def set_message_callback(self, handler: MessageCallback) -> None:
        self._message_callback = handler

    def set_disconnection_callback(self, handler: DisconnectionCallback) -> None:
        self._disconnection_callback = handler

    # ─── LIFECYCLE ───────────────────────────────────────────────────

    def connect(self, host: str = "", port: int = DEFAULT_PORT) -> None:
        """Open a TCP connection to the endpoint.

        Args:
            host: Host name or address. Empty means the local hostname.
            port: TCP port.

        Raises:
            ConnectError: If resolution fails or the connection is
                refused or times out. The stream stays disconnected.
        """
        if self.connected:
            logger.warning(
                "connect() called while connected to %s; disconnect first",
                self._endpoint,
            )
            self._release()

        if not 0 <= port <= 0xFFFF:
            raise ConnectError(f"Port must be 0-65535, got {port}")
        if not host:
            host = socket.gethostname()

        try:
            sock = socket.create_connection((host, port), timeout=self._connect_timeout)
        except OSError as e:
            raise ConnectError(f"Could not connect to {host}:{port}: {e}") from e

        self.attach(sock)

    def attach(self, sock: socket.socket) -> None:
        """Adopt an already connected stream socket.

        Raises:
            ConnectError: If the socket has no remote peer.
        """
        try:
            peer = sock.getpeername()
        except OSError as e:
            sock.close()
            raise ConnectError(f"Socket is not connected: {e}") from e

        # Blocking for send; reads are bounded by the selector instead
        sock.settimeout(None)
        self._selector = selectors.DefaultSelector()
        self._selector.register(sock, selectors.EVENT_READ)
        self._sock = sock
        self._state = ConnectionState.CONNECTED
        # AF_UNIX peers report a path rather than (host, port)
        self._endpoint = f"{peer[0]}:{peer[1]}" if isinstance(peer, tuple) else str(peer)
        logger.info("Socket connected to %s", self._endpoint)

    def disconnect(self) -> None:
        """Shut down and close the connection. Safe to call repeatedly."""
        if not self.connected:
            return

        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug("Error shutting down socket: %s", e)
        finally:
            self._release()
            logger.info("Disconnected")

    def _release(self) -> None:
        sock, self._sock = self._sock, None
        if self._selector is not None:
            self._selector.close()
            self._selector = None
        self._state = ConnectionState.DISCONNECTED
        self._endpoint = ""
        if sock is not None:
            try:
                sock.close()
            except OSError as e:
                logger.debug("Error closing socket: %s", e)

    # ─── RECEIVE ─────────────────────────────────────────────────────

    def _wait_readable(self, timeout: float) -> bool:
        if self._sock.fileno() < 0:
            raise ConnectionAbortedError("Socket was closed")
        return bool(self._selector.select(timeout))

    def _receive_all(self, count: int) -> bytes:
        """Read exactly ``count`` bytes, accumulating partial reads.

        Each read waits at most the receive timeout for data to arrive.
        """
        buffer = bytearray()
        while len(buffer) < count:
            if not self._wait_readable(self._receive_timeout):
                raise TimeoutError("Timed out waiting for frame data")
            chunk = self._sock.recv(count - len(buffer))
            if not chunk:
                raise ConnectionAbortedError("Connection closed by peer")
            buffer += chunk
        return bytes(buffer)

    def step(self) -> None:
        """Poll once and dispatch at most one complete frame.

        Never blocks on the poll itself; once data is pending, the header
        and payload reads block up to the receive timeout each. Transport
        loss is delivered to the disconnection callback, not raised.
        """
        if not self.connected:
            return

        try:
            if not self._wait_readable(0):
                return
            length, source, msg_type = parse_header(self._receive_all(HEADER_SIZE))
            payload = self._receive_all(length)
        except OSError as e:
            self._connection_lost(e)
            return

        frame = Frame(source=source, msg_type=msg_type, payload=payload)
        logger.debug("Received %r", frame)
        self._message_callback(frame)

    def _connection_lost(self, error: OSError) -> None:
        logger.warning("Connection lost: %s", error)
        self._release()
        self._disconnection_callback()

    # ─── SEND ────────────────────────────────────────────────────────

    def send(self, source: int, msg_type: int, payload: Iterable[int] = ()) -> None:
        """Encode and write one frame built from 16-bit words.

        Args:
            source: 16-bit sender identifier.
            msg_type: 16-bit message type.
            payload: 16-bit words, written little-endian.

        Raises:
            ValueError: If a value does not fit in 16 bits or the payload
                is too long.
            SendError: If not connected or the write fails. A failed
                write leaves the stream disconnected.
        """
        if not self.connected:
            raise SendError("Not connected")

        data = build_frame(source, msg_type, payload)

        try:
            view = memoryview(data)
            while view:
                sent = self._sock.send(view)
                view = view[sent:]
        except OSError as e:
            logger.warning("Connection lost: %s", e)
            self._release()
            raise SendError(f"Failed to send frame: {e}") from e

        logger.debug("Sent %d bytes (source=%d, type=0x%04X)", len(data), source, msg_type)
