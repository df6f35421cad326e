"""
Protocol Operation and Response Definitions

This module defines the data structures for protocol requests and responses.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union

BytesLike = Union[bytes, bytearray, memoryview, str]

# WRITE always targets the global store
GLOBAL_STORE = 0


class OpCode(IntEnum):
    """Enumeration of request operation tags (first byte of a request)."""
    PUT = 0x01
    GET = 0x02
    DELETE = 0x03
    WRITE = 0x04


class ResponseStatus(IntEnum):
    """Enumeration of response statuses (first byte of a response)."""
    ERROR = 0x00
    SUCCESS = 0x01


def _to_bytes(data: Optional[BytesLike]) -> bytes:
    if data is None:
        return b""
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


@dataclass(frozen=True)
class Operation:
    """
    Represents a single protocol request.

    Attributes:
        opcode: The operation tag (PUT, GET, DELETE, WRITE)
        store: Store id, one unsigned byte (0-255)
        key: The key bytes (empty for WRITE)
        value: The value bytes (PUT only, may be empty)

    Use the classmethod constructors rather than building instances
    directly; they fill in the fields each variant carries.
    """
    opcode: OpCode
    store: int = GLOBAL_STORE
    key: bytes = b""
    value: bytes = b""

    def __post_init__(self):
        """Normalize fields after initialization."""
        object.__setattr__(self, "opcode", OpCode(self.opcode))
        object.__setattr__(self, "key", _to_bytes(self.key))
        object.__setattr__(self, "value", _to_bytes(self.value))

        if not isinstance(self.store, int) or not 0 <= self.store <= 0xFF:
            raise ValueError(f"store id must be in range 0-255, got {self.store!r}")
        if self.opcode == OpCode.WRITE and (self.store or self.key or self.value):
            raise ValueError("WRITE carries no store id, key or value")
        if self.opcode != OpCode.PUT and self.value:
            raise ValueError(f"{self.opcode.name} does not carry a value")

    @classmethod
    def put(cls, store: int, key: BytesLike, value: BytesLike) -> "Operation":
        """Create a PUT operation."""
        return cls(opcode=OpCode.PUT, store=store, key=key, value=value)

    @classmethod
    def get(cls, store: int, key: BytesLike) -> "Operation":
        """Create a GET operation."""
        return cls(opcode=OpCode.GET, store=store, key=key)

    @classmethod
    def delete(cls, store: int, key: BytesLike) -> "Operation":
        """Create a DELETE operation."""
        return cls(opcode=OpCode.DELETE, store=store, key=key)

    @classmethod
    def write(cls) -> "Operation":
        """Create a WRITE (commit) operation."""
        return cls(opcode=OpCode.WRITE)

    @property
    def has_key(self) -> bool:
        """Whether the wire frame for this operation carries a key field."""
        return self.opcode != OpCode.WRITE

    @property
    def has_value(self) -> bool:
        """Whether the wire frame for this operation carries a value field."""
        return self.opcode == OpCode.PUT


@dataclass(frozen=True)
class Response:
    """
    Represents a decoded protocol response.

    Attributes:
        status: SUCCESS or ERROR
        payload: Value bytes on success, UTF-8 error text on failure
    """
    status: ResponseStatus
    payload: bytes = b""

    @property
    def ok(self) -> bool:
        return self.status == ResponseStatus.SUCCESS

    @property
    def message(self) -> str:
        """The payload as text, with invalid UTF-8 sequences replaced."""
        return self.payload.decode("utf-8", errors="replace")

    @classmethod
    def success(cls, payload: BytesLike = b"") -> "Response":
        """Create a successful response."""
        return cls(status=ResponseStatus.SUCCESS, payload=_to_bytes(payload))

    @classmethod
    def error(cls, message: BytesLike) -> "Response":
        """Create an error response."""
        return cls(status=ResponseStatus.ERROR, payload=_to_bytes(message))
