"""
Scalerize Client

A synchronous client for the Scalerize key-value store, speaking its
fixed-header binary protocol over a local stream socket.
"""

from .errors import (
    ClientError,
    ConnectError,
    EmptyResponseError,
    MalformedFrameError,
    OperationFailedError,
    ProtocolError,
    SessionStateError,
    TransportError,
    UnknownStatusError,
)
from .network.session import ClientSession, SessionState, connect
from .protocol.codec import ProtocolCodec
from .protocol.commands import OpCode, Operation, Response, ResponseStatus

__version__ = "1.0.0"

__all__ = [
    "ClientError",
    "ClientSession",
    "ConnectError",
    "EmptyResponseError",
    "MalformedFrameError",
    "OpCode",
    "Operation",
    "OperationFailedError",
    "ProtocolCodec",
    "ProtocolError",
    "Response",
    "ResponseStatus",
    "SessionState",
    "SessionStateError",
    "TransportError",
    "UnknownStatusError",
    "connect",
]
