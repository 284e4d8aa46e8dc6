"""Payload readers for object and part uploads.

Supports plain binary streams and the aws-chunked signed transfer framing:

    <hex-size>;chunk-signature=<signature>\\r\\n
    <size bytes of payload>\\r\\n
    ...
    0;chunk-signature=<signature>\\r\\n

Only the payload bytes are yielded; framing and signature lines are dropped.
Signatures are not verified.
"""

from __future__ import annotations

import io
from collections.abc import Iterator
from typing import BinaryIO

from s3emu.storage.errors import ChunkEncodingError

READ_SIZE = 64 * 1024

_MAX_HEADER_LENGTH = 4096


def _as_stream(data: BinaryIO | bytes) -> BinaryIO:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(data))
    return data


def _parse_chunk_size(header: bytes) -> int:
    size_field = header.split(b";", 1)[0].strip()
    try:
        size = int(size_field, 16)
    except ValueError as e:
        raise ChunkEncodingError(f"Invalid chunk header: {header[:64]!r}") from e
    if size < 0:
        raise ChunkEncodingError(f"Negative chunk size in header: {header[:64]!r}")
    return size


def iter_chunked_payload(stream: BinaryIO) -> Iterator[bytes]:
    """Yield the de-chunked payload of an aws-chunked stream.

    Line terminators between chunks may be CRLF or a bare LF. Trailing
    headers after the terminating zero-size chunk are ignored.

    Raises:
        ChunkEncodingError: If a header cannot be parsed or the stream ends
            inside a chunk.
    """
    line = stream.readline(_MAX_HEADER_LENGTH)
    while line:
        header = line.strip()
        if not header:
            line = stream.readline(_MAX_HEADER_LENGTH)
            continue

        remaining = _parse_chunk_size(header)
        if remaining == 0:
            return

        while remaining > 0:
            chunk = stream.read(min(remaining, READ_SIZE))
            if not chunk:
                raise ChunkEncodingError("Stream ended inside a chunk")
            remaining -= len(chunk)
            yield chunk

        line = stream.readline(_MAX_HEADER_LENGTH)


def iter_plain_payload(stream: BinaryIO) -> Iterator[bytes]:
    """Yield a stream's bytes in READ_SIZE pieces."""
    for chunk in iter(lambda: stream.read(READ_SIZE), b""):
        yield chunk


def iter_payload(data: BinaryIO | bytes, is_chunked_encoding: bool = False) -> Iterator[bytes]:
    """Yield the payload bytes of an upload body.

    Args:
        data: Binary stream or raw bytes.
        is_chunked_encoding: Treat the body as aws-chunked framed.
    """
    stream = _as_stream(data)
    if is_chunked_encoding:
        return iter_chunked_payload(stream)
    return iter_plain_payload(stream)
