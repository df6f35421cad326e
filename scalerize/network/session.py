"""
Client Session Module

This module owns the connection to a Scalerize server and drives the
request/response exchange for each operation.

The protocol is strictly synchronous: one request, then exactly one
response, with no request identifiers. Each call walks the session
through IDLE -> SENDING -> AWAITING_RESPONSE -> IDLE. A call that fails
part-way leaves the stream out of sync, so the session is marked BROKEN
and every later call is refused; the caller must connect() again.

Usage:
    with connect("/tmp/scalerize") as session:
        session.put(2, b"\\x01\\x02\\x03\\x04", b"Hello, Scalerize!")
        session.write()
        value = session.get(2, b"\\x01\\x02\\x03\\x04")
"""

import logging
import os
import socket
import threading
from enum import Enum
from typing import List, Optional, Tuple, Union

from ..config.settings import settings
from ..errors import ConnectError, OperationFailedError, SessionStateError, TransportError
from ..protocol.codec import ProtocolCodec
from ..protocol.commands import BytesLike, Operation, Response

Address = Union[str, "os.PathLike[str]", Tuple[str, int]]


class SessionState(Enum):
    """Lifecycle states of a ClientSession."""
    IDLE = "idle"
    SENDING = "sending"
    AWAITING_RESPONSE = "awaiting_response"
    DRAINING = "draining"
    BROKEN = "broken"
    CLOSED = "closed"


_IN_FLIGHT = (SessionState.SENDING, SessionState.AWAITING_RESPONSE, SessionState.DRAINING)


def _resolve_address(address: Address) -> Tuple[int, object]:
    """Map an address to a socket family and connect() target."""
    if isinstance(address, tuple):
        return socket.AF_INET, address
    return socket.AF_UNIX, os.fspath(address)


def connect(
        address: Optional[Address] = None,
        *,
        read_buffer_size: int = None,
        logger: Optional[logging.Logger] = None,
) -> "ClientSession":
    """
    Open a connection to a Scalerize server.

    Args:
        address: Unix socket path, or a (host, port) tuple for TCP
            (default settings.SOCKET_PATH)
        read_buffer_size: Size of the single response read
            (default settings.READ_BUFFER_SIZE)
        logger: Logger for request/response diagnostics
            (default this module's logger)

    Returns:
        A connected ClientSession in the IDLE state.

    Raises:
        ConnectError: If the server cannot be reached.
    """
    address = address if address is not None else settings.SOCKET_PATH
    family, target = _resolve_address(address)

    sock = None
    try:
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.connect(target)
    except OSError as exc:
        if sock is not None:
            sock.close()
        raise ConnectError(address, str(exc)) from exc

    return ClientSession(
        sock,
        address=address,
        read_buffer_size=read_buffer_size,
        logger=logger,
    )


class ClientSession:
    """
    A single connection to a Scalerize server.

    Sessions are created by connect() and are not safe to share: a
    request that is still in flight makes every other call fail fast
    with SessionStateError instead of interleaving frames on the wire.

    Attributes:
        address: The address this session is connected to
        codec: The ProtocolCodec used to build and parse frames
        read_buffer_size: Maximum bytes taken by one response read
        logger: Logger receiving request/response diagnostics
    """

    def __init__(
            self,
            sock: socket.socket,
            address: Optional[Address] = None,
            read_buffer_size: int = None,
            logger: Optional[logging.Logger] = None,
    ):
        """
        Wrap an already connected stream socket.

        Args:
            sock: Connected stream socket, owned by the session from now on
            address: Address the socket is connected to (informational)
            read_buffer_size: Response read size (default from settings)
            logger: Diagnostics logger (default this module's logger)
        """
        self._sock = sock
        self._sock.setblocking(True)
        self.address = address
        self.codec = ProtocolCodec()
        self.read_buffer_size = (
            read_buffer_size if read_buffer_size is not None else settings.READ_BUFFER_SIZE
        )
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self._state = SessionState.IDLE
        self._guard = threading.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state == SessionState.CLOSED

    def put(self, store: int, key: BytesLike, value: BytesLike) -> None:
        """
        Store a value under a key.

        The value is not guaranteed to be visible to GET until write()
        has been called.

        Raises:
            OperationFailedError: If the server rejected the PUT.
        """
        self._execute(Operation.put(store, key, value))

    def get(self, store: int, key: BytesLike) -> bytes:
        """
        Retrieve the value stored under a key.

        Returns:
            The stored value, exactly as the server returned it.

        Raises:
            OperationFailedError: If the server reported an error,
                e.g. the key does not exist.
        """
        return self._execute(Operation.get(store, key))

    def delete(self, store: int, key: BytesLike) -> None:
        """Delete a key."""
        self._execute(Operation.delete(store, key))

    def write(self) -> None:
        """Ask the server to commit all pending mutations."""
        self._execute(Operation.write())

    def _execute(self, operation: Operation) -> bytes:
        """
        Run one request/response exchange and map the status.

        Returns:
            The response payload on success.

        Raises:
            OperationFailedError: On an error status.
            ProtocolError: On an empty or unrecognized response.
            TransportError: If the socket fails.
            SessionStateError: If the session is not IDLE.
        """
        response = self._exchange(operation)
        if response.ok:
            return response.payload

        self.logger.debug(f"{operation.opcode.name} failed: {response.message}")
        raise OperationFailedError(response.message)

    def _exchange(self, operation: Operation) -> Response:
        self._claim(SessionState.SENDING)

        try:
            try:
                request = self.codec.encode_request(operation)
            except ValueError:
                # Nothing was sent, the stream is still in sync
                self._state = SessionState.IDLE
                raise

            self.logger.debug(f"{operation.opcode.name} request: {request.hex(' ')}")
            try:
                self._sock.sendall(request)
            except OSError as exc:
                raise TransportError(f"failed to send {operation.opcode.name} request: {exc}") from exc

            self._state = SessionState.AWAITING_RESPONSE
            data = self._read_response()
            response = self.codec.decode_response(data)

            self._state = SessionState.IDLE
            return response
        finally:
            if self._state in _IN_FLIGHT:
                self._state = SessionState.BROKEN
                self.logger.debug(f"Session to {self.address!r} is broken")
            self._guard.release()

    def _read_response(self) -> bytes:
        """
        Read one response frame.

        The server sends each response in a single write with no length
        prefix, so one read is taken to be one complete frame.
        """
        try:
            data = self._sock.recv(self.read_buffer_size)
        except OSError as exc:
            raise TransportError(f"failed to read response: {exc}") from exc

        if len(data) >= self.read_buffer_size:
            self.logger.warning(
                f"Response filled the {self.read_buffer_size}-byte read buffer and may be truncated"
            )

        if data:
            self.logger.debug(f"Server response status: {data[0]}, payload: {data[1:]!r}")
        else:
            self.logger.debug("Empty response received")
        return data

    def _claim(self, state: SessionState) -> None:
        """
        Take exclusive use of the session and move it to `state`.

        Never waits: if another call holds the session, SessionStateError
        is raised at once. The caller must release self._guard when done.
        """
        if not self._guard.acquire(blocking=False):
            raise SessionStateError("a request is already in flight on this session", self._state)
        try:
            self._ensure_idle()
        except SessionStateError:
            self._guard.release()
            raise
        self._state = state

    def _ensure_idle(self) -> None:
        if self._state == SessionState.IDLE:
            return
        if self._state in _IN_FLIGHT:
            raise SessionStateError("a request is already in flight on this session", self._state)
        if self._state == SessionState.BROKEN:
            raise SessionStateError("session is broken; reconnect to continue", self._state)
        raise SessionStateError("session is closed", self._state)

    def drain_pending(self) -> List[bytes]:
        """
        Collect any unsolicited bytes buffered on the connection.

        Switches the socket to non-blocking mode, reads until nothing is
        left (or the peer has closed), then restores blocking mode. The
        bytes are returned as read and are not parsed as frames. An I/O
        error other than would-block ends the drain early and is logged
        rather than raised.

        Returns:
            The chunks read, in order. Empty if nothing was pending.
        """
        self._claim(SessionState.DRAINING)
        self.logger.debug("Checking for additional messages...")

        chunks: List[bytes] = []
        try:
            self._sock.setblocking(False)
            while True:
                try:
                    chunk = self._sock.recv(self.read_buffer_size)
                except BlockingIOError:
                    break
                if not chunk:
                    self.logger.debug("Peer closed the connection while draining")
                    break
                self.logger.debug(f"Additional message received: {chunk!r}")
                chunks.append(chunk)
        except OSError as exc:
            self.logger.warning(f"Error reading additional messages: {exc}")
        finally:
            try:
                self._sock.setblocking(True)
            except OSError as exc:
                self.logger.warning(f"Failed to restore blocking mode: {exc}")
            self._state = SessionState.IDLE
            self._guard.release()

        self.logger.debug(f"Drained {len(chunks)} pending message(s)")
        return chunks

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._state == SessionState.CLOSED:
            return

        try:
            self._sock.close()
        except OSError as exc:
            self.logger.warning(f"Error closing session: {exc}")
        finally:
            self._state = SessionState.CLOSED
            self.logger.debug(f"Disconnected from {self.address!r}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"ClientSession(address={self.address!r}, state={self._state.value})"
