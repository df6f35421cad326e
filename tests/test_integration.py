"""
Integration Tests

End-to-end tests that run a real ClientSession against the in-memory
FakeScalerizeServer over a Unix socket.

Run with: python -m pytest tests/test_integration.py -v
"""

import pytest
from tests.conftest import call

from scalerize.errors import (
    OperationFailedError,
    SessionStateError,
    UnknownStatusError,
)
from scalerize.network.session import SessionState, connect
from scalerize.protocol.commands import OpCode, Operation

STORE = 2
KEY = bytes([1, 2, 3, 4])
VALUE = b"Hello, Scalerize!"


@pytest.mark.asyncio
@pytest.mark.integration
class TestEndToEnd:
    """End-to-end workflows."""

    async def test_put_write_get(self, server, socket_path):
        """A committed PUT is returned byte-for-byte by GET."""
        session = await call(connect, socket_path)
        with session:
            await call(session.put, STORE, KEY, VALUE)
            await call(session.write)
            assert await call(session.get, STORE, KEY) == VALUE

        assert server.requests == [
            Operation.put(STORE, KEY, VALUE),
            Operation.write(),
            Operation.get(STORE, KEY),
        ]

    async def test_get_before_write_not_visible(self, server, socket_path):
        """Without WRITE, a PUT is not visible to GET."""
        session = await call(connect, socket_path)
        with session:
            await call(session.put, STORE, KEY, VALUE)
            with pytest.raises(OperationFailedError) as exc_info:
                await call(session.get, STORE, KEY)

        assert exc_info.value.message == "key not found"

    async def test_get_never_put(self, server, socket_path):
        """GET on an unknown key is an application error, not a transport error."""
        session = await call(connect, socket_path)
        with session:
            with pytest.raises(OperationFailedError) as exc_info:
                await call(session.get, 9, b"nope")
            assert exc_info.value.message == "key not found"
            assert session.state == SessionState.IDLE

    async def test_delete_then_get(self, server, socket_path):
        """DELETE followed by GET yields the server's not-found error."""
        session = await call(connect, socket_path)
        with session:
            await call(session.put, STORE, KEY, VALUE)
            await call(session.write)
            await call(session.delete, STORE, KEY)
            await call(session.write)

            with pytest.raises(OperationFailedError) as exc_info:
                await call(session.get, STORE, KEY)
            assert exc_info.value.message == "key not found"

    async def test_delete_missing_key(self, server, socket_path):
        session = await call(connect, socket_path)
        with session:
            with pytest.raises(OperationFailedError):
                await call(session.delete, STORE, b"ghost")

    async def test_stores_are_separate_namespaces(self, server, socket_path):
        session = await call(connect, socket_path)
        with session:
            await call(session.put, 1, b"k", b"one")
            await call(session.put, 2, b"k", b"two")
            await call(session.write)

            assert await call(session.get, 1, b"k") == b"one"
            assert await call(session.get, 2, b"k") == b"two"

    async def test_empty_value(self, server, socket_path):
        session = await call(connect, socket_path)
        with session:
            await call(session.put, STORE, b"empty", b"")
            await call(session.write)
            assert await call(session.get, STORE, b"empty") == b""

    async def test_binary_value(self, server, socket_path):
        value = bytes(range(256)) * 4
        session = await call(connect, socket_path)
        with session:
            await call(session.put, STORE, b"bin", value)
            await call(session.write)
            assert await call(session.get, STORE, b"bin") == value

    async def test_visible_across_sessions(self, server, socket_path):
        first = await call(connect, socket_path)
        with first:
            await call(first.put, STORE, KEY, VALUE)
            await call(first.write)

        second = await call(connect, socket_path)
        with second:
            assert await call(second.get, STORE, KEY) == VALUE


@pytest.mark.asyncio
@pytest.mark.integration
class TestServerMisbehaviour:
    """Protocol errors raised by a misbehaving server."""

    async def test_unknown_status_breaks_session(self, server, socket_path):
        server.responder = lambda op: b"\x05odd" if op.opcode == OpCode.PUT else None

        session = await call(connect, socket_path)
        with session:
            with pytest.raises(UnknownStatusError):
                await call(session.put, STORE, KEY, VALUE)

            assert session.state == SessionState.BROKEN
            with pytest.raises(SessionStateError):
                await call(session.write)

    async def test_reconnect_after_protocol_error(self, server, socket_path):
        server.responder = lambda op: b"\x09"

        session = await call(connect, socket_path)
        with session:
            with pytest.raises(UnknownStatusError):
                await call(session.write)

        server.responder = None
        session = await call(connect, socket_path)
        with session:
            await call(session.write)
            assert session.state == SessionState.IDLE

