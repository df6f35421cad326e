"""Protocol module for the Scalerize client."""

from .codec import ProtocolCodec
from .commands import OpCode, Operation, Response, ResponseStatus

__all__ = [
    "OpCode",
    "Operation",
    "Response",
    "ResponseStatus",
    "ProtocolCodec",
]
