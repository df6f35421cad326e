"""
Client Error Taxonomy

Every failure surfaced by the client derives from ClientError and falls
into one of four kinds:

- TransportError: the socket itself failed (connect refused, I/O error).
- ProtocolError: the peer sent bytes that are not a valid frame. The
  session is out of sync and must be replaced.
- OperationFailedError: the server answered with a well-formed error
  response. The session stays usable.
- SessionStateError: the session was used while busy, broken or closed.

Nothing here is retried; retry policy belongs to the caller.
"""

from typing import Optional


class ClientError(Exception):
    """Base class for all Scalerize client errors."""


class TransportError(ClientError):
    """The underlying connection failed."""


class ConnectError(TransportError):
    """The server address could not be reached."""

    def __init__(self, address, reason: str = ""):
        self.address = address
        message = f"could not connect to {address!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ProtocolError(ClientError):
    """The peer sent a syntactically invalid frame."""


class EmptyResponseError(ProtocolError):
    """A response frame did not even contain the status byte."""

    def __init__(self, message: str = "empty response from server"):
        super().__init__(message)


class UnknownStatusError(ProtocolError):
    """
    The response status byte was neither success nor error.

    Attributes:
        status: The offending status byte
        payload: The bytes that followed it
    """

    def __init__(self, status: int, payload: bytes = b""):
        self.status = status
        self.payload = payload
        super().__init__(f"unexpected status: {status}, response: {payload!r}")


class MalformedFrameError(ProtocolError):
    """A request frame could not be decoded."""


class OperationFailedError(ClientError):
    """
    The server reported an error for the requested operation.

    Attributes:
        message: The server's error text, decoded lossily from UTF-8
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"operation failed: {message}")


class SessionStateError(ClientError):
    """The session cannot accept a request in its current state."""

    def __init__(self, message: str, state: Optional[object] = None):
        self.state = state
        super().__init__(message)
