"""
Decoder for the chunked zlib container format of downloaded workshop content
(``*.z`` files with a companion ``*.z.uncompressed_size`` size hint).

Layout (all fields little-endian uint32)::

    magic            8 bytes   C1 83 2A 9E 00 00 00 00
    block size       lo, hi
    compressed total lo, hi
    uncompressed tot lo, hi
    chunk table      (compressed lo, hi, uncompressed lo, hi) * N
    chunk data       zlib streams, back to back

The 64-bit fields are kept as separate halves; only the low halves carry
data in every file seen so far.
"""

import os
import struct
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from arktools.common.constants import CONTAINER_MAGIC, CONTAINER_SUFFIX, SIZE_HINT_SUFFIX
from arktools.common.errors import (
    ContainerMagicError,
    ContainerSizeMismatchError,
    FormatError,
    InstallError,
    TruncatedDataError,
)
from arktools.common.logging_config import get_logger

_HEADER = struct.Struct("<8s6I")
_CHUNK = struct.Struct("<4I")

_log = get_logger(__name__)


@dataclass(frozen=True)
class ContainerHeader:
    magic: bytes
    block_size_lo: int
    block_size_hi: int
    compressed_total_lo: int
    compressed_total_hi: int
    uncompressed_total_lo: int
    uncompressed_total_hi: int

    @classmethod
    def parse(cls, data: bytes, source: Optional[str] = None) -> "ContainerHeader":
        if len(data) < _HEADER.size:
            raise TruncatedDataError(
                f"container header needs {_HEADER.size} bytes, got {len(data)}", source
            )
        header = cls(*_HEADER.unpack_from(data, 0))
        if header.magic != CONTAINER_MAGIC:
            raise ContainerMagicError(f"bad file magic {header.magic.hex()}", source)
        if header.block_size_hi or header.compressed_total_hi or header.uncompressed_total_hi:
            _log.warning("Container %s has non-zero high size words; ignoring them", source or "<memory>")
        return header


@dataclass(frozen=True)
class ChunkDescriptor:
    compressed_lo: int
    compressed_hi: int
    uncompressed_lo: int
    uncompressed_hi: int


def read_chunk_table(data: bytes, header: ContainerHeader, source: Optional[str] = None) -> List[ChunkDescriptor]:
    """Read chunk descriptors until their compressed sizes cover the declared total."""
    chunks: List[ChunkDescriptor] = []
    offset = _HEADER.size
    used = 0
    while used < header.compressed_total_lo:
        if len(data) - offset < _CHUNK.size:
            raise TruncatedDataError(
                f"chunk table truncated after {len(chunks)} entries", source
            )
        chunk = ChunkDescriptor(*_CHUNK.unpack_from(data, offset))
        offset += _CHUNK.size
        chunks.append(chunk)
        used += chunk.compressed_lo

    if used != header.compressed_total_lo:
        raise FormatError(
            f"chunk sizes add up to {used} bytes, header declares {header.compressed_total_lo}",
            source,
        )
    return chunks


def decode_container(data: bytes, declared_size: int, source: Optional[str] = None) -> bytes:
    """Inflate a container and verify the result matches ``declared_size``.

    Args:
        data: Raw container bytes
        declared_size: Uncompressed size from the size hint file
        source: Path used in error messages

    Raises:
        ContainerMagicError: If the header magic does not match
        TruncatedDataError: If the header, chunk table or chunk data is cut short
        ContainerSizeMismatchError: If the inflated size differs from ``declared_size``
    """
    header = ContainerHeader.parse(data, source)
    chunks = read_chunk_table(data, header, source)

    offset = _HEADER.size + _CHUNK.size * len(chunks)
    remaining = declared_size
    output = bytearray()
    for index, chunk in enumerate(chunks):
        end = offset + chunk.compressed_lo
        if end > len(data):
            raise TruncatedDataError(
                f"chunk {index} needs {chunk.compressed_lo} bytes, only {len(data) - offset} remain",
                source,
            )
        try:
            inflated = zlib.decompress(data[offset:end])
        except zlib.error as exc:
            raise FormatError(f"chunk {index} is not a valid zlib stream: {exc}", source) from exc
        output += inflated
        remaining -= len(inflated)
        offset = end

    if remaining != 0:
        raise ContainerSizeMismatchError(
            f"unpack size is invalid. delta: {remaining}", remaining, source
        )
    return bytes(output)


def read_size_hint(path: Union[str, Path]) -> int:
    """Read the decimal uncompressed size stored next to a container."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise InstallError("read", str(path), exc) from exc
    try:
        return int(text)
    except ValueError as exc:
        raise FormatError(f"size hint {text!r} is not an integer", str(path)) from exc


def find_containers(root: Union[str, Path]) -> List[Path]:
    """Return all ``*.z`` files below ``root`` in a stable order."""
    root = Path(root)
    found: List[Path] = []
    try:
        for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
            for name in filenames:
                if name.endswith(CONTAINER_SUFFIX):
                    found.append(Path(dirpath) / name)
    except OSError as exc:
        raise InstallError("walk", str(root), exc) from exc
    return sorted(found)


def _raise_walk_error(exc: OSError) -> None:
    raise exc


def unpack_file(path: Union[str, Path]) -> Path:
    """Decode ``path`` in place and remove the container and its size hint.

    Returns:
        The path of the written file (``path`` without the ``.z`` suffix).
    """
    path = Path(path)
    size_path = path.with_name(path.name + SIZE_HINT_SUFFIX)
    dest = path.with_name(path.name[:-len(CONTAINER_SUFFIX)])

    declared_size = read_size_hint(size_path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise InstallError("read", str(path), exc) from exc

    plain = decode_container(data, declared_size, str(path))

    try:
        dest.write_bytes(plain)
    except OSError as exc:
        raise InstallError("write", str(dest), exc) from exc

    for leftover in (path, size_path):
        try:
            leftover.unlink()
        except OSError as exc:
            raise InstallError("remove", str(leftover), exc) from exc

    _log.debug("Unpacked %s (%d bytes)", dest, len(plain))
    return dest


def unpack_tree(root: Union[str, Path]) -> List[Path]:
    """Unpack every container below ``root``."""
    return [unpack_file(path) for path in find_containers(root)]


__all__ = [
    "ContainerHeader",
    "ChunkDescriptor",
    "read_chunk_table",
    "decode_container",
    "read_size_hint",
    "find_containers",
    "unpack_file",
    "unpack_tree",
]
