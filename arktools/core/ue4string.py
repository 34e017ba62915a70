"""
Length-prefixed string codec used by Unreal Engine 4 metadata files.

A string is stored as a little-endian uint32 length ``L`` followed by ``L``
bytes, the last of which is a null terminator. ``L == 0`` encodes the empty
string with no payload.
"""

import struct
from typing import Optional, Tuple

from arktools.common.errors import TruncatedDataError

_UINT32 = struct.Struct("<I")

# surrogateescape keeps non UTF-8 bytes intact across decode/encode
_TEXT_ENCODING = "utf-8"
_TEXT_ERRORS = "surrogateescape"


def decode_string(data: bytes, offset: int = 0, source: Optional[str] = None) -> Tuple[str, int]:
    """Decode one string at ``offset``.

    Returns:
        ``(value, consumed)`` where ``consumed`` is ``4 + L``.

    Raises:
        TruncatedDataError: If the length field or payload runs past the end.
    """
    if len(data) - offset < _UINT32.size:
        raise TruncatedDataError(
            f"string length field truncated at offset {offset} ({len(data) - offset} bytes left)",
            source,
        )
    (length,) = _UINT32.unpack_from(data, offset)
    if length == 0:
        return "", _UINT32.size

    start = offset + _UINT32.size
    end = start + length
    if end > len(data):
        raise TruncatedDataError(
            f"string at offset {offset} declares {length} bytes but only {len(data) - start} remain",
            source,
        )

    raw = bytes(data[start:end - 1])
    return raw.decode(_TEXT_ENCODING, _TEXT_ERRORS), _UINT32.size + length


def encode_string(value: str) -> bytes:
    """Encode ``value`` with a trailing null and its uint32 length prefix."""
    payload = value.encode(_TEXT_ENCODING, _TEXT_ERRORS) + b"\x00"
    return _UINT32.pack(len(payload)) + payload


class BinaryReader:
    """Sequential little-endian reader over an in-memory buffer."""

    def __init__(self, data: bytes, offset: int = 0, source: Optional[str] = None):
        self.data = data
        self.offset = offset
        self.source = source

    def remaining(self) -> int:
        return len(self.data) - self.offset

    def read_bytes(self, size: int) -> bytes:
        if size > self.remaining():
            raise TruncatedDataError(
                f"need {size} bytes at offset {self.offset}, only {self.remaining()} remain",
                self.source,
            )
        chunk = bytes(self.data[self.offset:self.offset + size])
        self.offset += size
        return chunk

    def read_uint32(self) -> int:
        return _UINT32.unpack(self.read_bytes(_UINT32.size))[0]

    def read_string(self) -> str:
        value, consumed = decode_string(self.data, self.offset, self.source)
        self.offset += consumed
        return value


class BinaryWriter:
    """Append-only little-endian writer."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def write_uint32(self, value: int) -> None:
        self._buffer += _UINT32.pack(value)

    def write_byte(self, value: int) -> None:
        self._buffer.append(value)

    def write_string(self, value: str) -> None:
        self._buffer += encode_string(value)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


__all__ = ["decode_string", "encode_string", "BinaryReader", "BinaryWriter"]
