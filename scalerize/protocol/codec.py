"""
Protocol Codec Module

This module converts between typed protocol values and raw wire bytes.
It performs no I/O.

Request layout (all integers big-endian):

    PUT     0x01 | store(1) | keyLen(4) | key | valueLen(4) | value
    GET     0x02 | store(1) | keyLen(4) | key
    DELETE  0x03 | store(1) | keyLen(4) | key
    WRITE   0x04 | store(1)=0x00

Response layout:

    status(1) | payload(rest)

    status 0x01 = success (payload is the value)
    status 0x00 = error   (payload is a UTF-8 message)
    anything else is a protocol violation
"""

import struct

from ..config.settings import settings
from ..errors import EmptyResponseError, MalformedFrameError, UnknownStatusError
from .commands import OpCode, Operation, Response, ResponseStatus

HEADER = struct.Struct(">BB")
LENGTH_PREFIX = struct.Struct(">I")


class ProtocolCodec:
    """
    Encoder/decoder for the Scalerize binary protocol.

    The codec is stateless apart from the field length limit, which is
    bounded by the 4-byte length prefix.
    """

    def __init__(self, max_field_length: int = None):
        """
        Initialize the codec with limits from settings.

        Args:
            max_field_length: Largest key/value size in bytes
                (default from settings.MAX_FIELD_LENGTH)
        """
        self.max_field_length = (
            max_field_length if max_field_length is not None else settings.MAX_FIELD_LENGTH
        )

    def encode_request(self, operation: Operation) -> bytes:
        """
        Serialize an operation into a request frame.

        Args:
            operation: The operation to encode

        Returns:
            The complete request frame.

        Raises:
            ValueError: If the key or value does not fit a 4-byte length.
                This is a caller bug, not a recoverable runtime condition.

        Examples:
            >>> codec = ProtocolCodec()
            >>> codec.encode_request(Operation.get(2, b"\\x01\\x02"))
            b'\\x02\\x02\\x00\\x00\\x00\\x02\\x01\\x02'
            >>> codec.encode_request(Operation.write())
            b'\\x04\\x00'
        """
        parts = [HEADER.pack(operation.opcode, operation.store)]

        if operation.has_key:
            parts.append(self._encode_field("key", operation.key))
        if operation.has_value:
            parts.append(self._encode_field("value", operation.value))

        return b"".join(parts)

    def _encode_field(self, name: str, data: bytes) -> bytes:
        if len(data) > self.max_field_length:
            raise ValueError(
                f"{name} length {len(data)} exceeds maximum of {self.max_field_length} bytes"
            )
        return LENGTH_PREFIX.pack(len(data)) + data

    def decode_request(self, data: bytes) -> Operation:
        """
        Parse a request frame back into an Operation.

        The frame must be exactly one complete request: missing length
        prefixes, short fields and trailing bytes are all rejected, so a
        PUT with an empty value (valueLen = 0) is distinguishable from a
        PUT whose value field is absent.

        Args:
            data: Raw request bytes

        Returns:
            The decoded Operation.

        Raises:
            MalformedFrameError: If the frame is not a valid request.
        """
        data = bytes(data)
        if len(data) < HEADER.size:
            raise MalformedFrameError(f"request frame too short: {len(data)} bytes")

        tag, store = HEADER.unpack_from(data, 0)
        try:
            opcode = OpCode(tag)
        except ValueError:
            raise MalformedFrameError(f"unknown operation tag: {tag:#04x}") from None

        offset = HEADER.size
        key = value = b""

        if opcode == OpCode.WRITE:
            if store != 0:
                raise MalformedFrameError(f"WRITE must target store 0, got {store}")
        else:
            key, offset = self._decode_field("key", data, offset)
            if opcode == OpCode.PUT:
                value, offset = self._decode_field("value", data, offset)

        if offset != len(data):
            raise MalformedFrameError(
                f"{len(data) - offset} trailing bytes after {opcode.name} request"
            )

        return Operation(opcode=opcode, store=store, key=key, value=value)

    def _decode_field(self, name: str, data: bytes, offset: int):
        if len(data) < offset + LENGTH_PREFIX.size:
            raise MalformedFrameError(f"missing {name} length prefix")
        (length,) = LENGTH_PREFIX.unpack_from(data, offset)
        offset += LENGTH_PREFIX.size

        end = offset + length
        if len(data) < end:
            raise MalformedFrameError(
                f"{name} truncated: expected {length} bytes, got {len(data) - offset}"
            )
        return data[offset:end], end

    def encode_response(self, response: Response) -> bytes:
        """
        Serialize a Response into a response frame.

        Examples:
            >>> codec = ProtocolCodec()
            >>> codec.encode_response(Response.success(b"hi"))
            b'\\x01hi'
            >>> codec.encode_response(Response.error("key not found"))
            b'\\x00key not found'
        """
        return bytes([response.status]) + response.payload

    def decode_response(self, data: bytes) -> Response:
        """
        Split a response frame into status and payload.

        Args:
            data: Raw response bytes as read from the socket

        Returns:
            Response with status SUCCESS or ERROR.

        Raises:
            EmptyResponseError: If data is empty (no status byte).
            UnknownStatusError: If the status byte is neither 0 nor 1.
        """
        if not data:
            raise EmptyResponseError()

        status, payload = data[0], bytes(data[1:])
        if status == ResponseStatus.SUCCESS:
            return Response(status=ResponseStatus.SUCCESS, payload=payload)
        if status == ResponseStatus.ERROR:
            return Response(status=ResponseStatus.ERROR, payload=payload)

        raise UnknownStatusError(status, payload)
