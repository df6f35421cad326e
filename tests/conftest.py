"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests,
including an in-memory Scalerize peer that speaks the binary protocol
over a Unix socket.
"""

import asyncio
import os
import shutil
import socket
import tempfile
import pytest
import pytest_asyncio
from typing import AsyncGenerator, Dict, Optional, Tuple

from scalerize.errors import ProtocolError
from scalerize.network.session import ClientSession
from scalerize.protocol.codec import HEADER, LENGTH_PREFIX, ProtocolCodec
from scalerize.protocol.commands import OpCode, Operation, Response

KEY_NOT_FOUND = Response.error("key not found")


# ============================================================================
# Fake Server
# ============================================================================

class FakeScalerizeServer:
    """
    Asynchronous in-memory Scalerize server for testing.

    PUT and DELETE are staged and only become visible to GET after a
    WRITE, matching the commit semantics of the real server. GET on a
    missing key answers with an error response "key not found".

    Usage:
        server = FakeScalerizeServer(path)
        await server.start()
        ...
        await server.stop()

    Attributes:
        path: Unix socket path the server listens on
        committed: Visible state, (store, key) -> value
        pending: Staged mutations, (store, key) -> value or None (delete)
        requests: Every decoded request, in arrival order
        responder: Optional override returning raw response bytes for a
            request; return None to fall back to normal handling
    """

    def __init__(self, path: str):
        self.path = path
        self.codec = ProtocolCodec()
        self.committed: Dict[Tuple[int, bytes], bytes] = {}
        self.pending: Dict[Tuple[int, bytes], Optional[bytes]] = {}
        self.requests = []
        self.responder = None
        self._server: Optional[asyncio.AbstractServer] = None

    async def _read_request(self, reader: asyncio.StreamReader) -> bytes:
        """Read exactly one request frame using its length prefixes."""
        header = await reader.readexactly(HEADER.size)
        frame = bytearray(header)

        if header[0] == OpCode.WRITE:
            return bytes(frame)

        fields = 2 if header[0] == OpCode.PUT else 1
        for _ in range(fields):
            prefix = await reader.readexactly(LENGTH_PREFIX.size)
            (length,) = LENGTH_PREFIX.unpack(prefix)
            frame += prefix
            frame += await reader.readexactly(length)

        return bytes(frame)

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            while True:
                try:
                    raw = await self._read_request(reader)
                except asyncio.IncompleteReadError:
                    break

                try:
                    operation = self.codec.decode_request(raw)
                except ProtocolError as e:
                    writer.write(self.codec.encode_response(Response.error(str(e))))
                    await writer.drain()
                    continue

                self.requests.append(operation)

                data = self.responder(operation) if self.responder else None
                if data is None:
                    data = self.codec.encode_response(self._execute(operation))

                writer.write(data)
                await writer.drain()
        except ConnectionResetError:
            pass
        finally:
            writer.close()

    def _execute(self, operation: Operation) -> Response:
        slot = (operation.store, operation.key)

        if operation.opcode == OpCode.PUT:
            self.pending[slot] = operation.value
            return Response.success()

        if operation.opcode == OpCode.GET:
            if slot in self.committed:
                return Response.success(self.committed[slot])
            return KEY_NOT_FOUND

        if operation.opcode == OpCode.DELETE:
            if slot not in self.committed and self.pending.get(slot) is None:
                return KEY_NOT_FOUND
            self.pending[slot] = None
            return Response.success()

        # WRITE
        for key, value in self.pending.items():
            if value is None:
                self.committed.pop(key, None)
            else:
                self.committed[key] = value
        self.pending.clear()
        return Response.success()

    async def start(self) -> None:
        self._server = await asyncio.start_unix_server(self.handle_client, path=self.path)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        try:
            # wait_closed() also waits for open client connections
            await asyncio.wait_for(self._server.wait_closed(), timeout=1.0)
        except asyncio.TimeoutError:
            pass
        finally:
            self._server = None


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def socket_path():
    """
    A fresh Unix socket path.

    Created under a short temporary directory because Unix socket
    paths are limited to ~100 characters.
    """
    directory = tempfile.mkdtemp(prefix="scz")
    yield os.path.join(directory, "kv.sock")
    shutil.rmtree(directory, ignore_errors=True)


@pytest_asyncio.fixture
async def server(socket_path: str) -> AsyncGenerator[FakeScalerizeServer, None]:
    """Start a FakeScalerizeServer for the duration of a test."""
    srv = FakeScalerizeServer(socket_path)
    await srv.start()

    yield srv

    await srv.stop()


async def call(func, *args):
    """Run a blocking client call without stalling the server's event loop."""
    return await asyncio.to_thread(func, *args)


# ============================================================================
# Session Fixtures
# ============================================================================

@pytest.fixture
def session_pair():
    """
    A ClientSession wired to the other end of a socketpair.

    The test plays the server by writing response bytes to `peer`
    before calling the session.
    """
    client_sock, peer = socket.socketpair()
    session = ClientSession(client_sock, address="socketpair")

    yield session, peer

    session.close()
    peer.close()


@pytest.fixture
def codec() -> ProtocolCodec:
    """Create a ProtocolCodec instance."""
    return ProtocolCodec()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
