"""Tests for aws-chunked payload decoding."""

from __future__ import annotations

import io

import pytest

from s3emu.storage.chunked import iter_chunked_payload, iter_payload
from s3emu.storage.errors import ChunkEncodingError

SIGNATURE = "chunk-signature=" + "a" * 64
PAYLOAD = b"## sample test file ##\n\ndemo=content"
CHUNKED_BODY = (
    f"24;{SIGNATURE}\r\n".encode()
    + PAYLOAD
    + f"\r\n0;{SIGNATURE}\r\n\r\n".encode()
)


def _decode(data: bytes) -> bytes:
    return b"".join(iter_chunked_payload(io.BytesIO(data)))


class TestChunkedPayload:
    """Tests for de-chunking signed uploads."""

    def test_single_chunk(self) -> None:
        """Only the payload bytes remain after decoding."""
        assert len(PAYLOAD) == 0x24
        assert _decode(CHUNKED_BODY) == PAYLOAD

    def test_multiple_chunks(self) -> None:
        """Chunks are concatenated in order."""
        body = (
            f"5;{SIGNATURE}\r\n".encode()
            + b"Hello"
            + f"\r\n6;{SIGNATURE}\r\n".encode()
            + b" World"
            + f"\r\n0;{SIGNATURE}\r\n".encode()
        )
        assert _decode(body) == b"Hello World"

    def test_bare_lf_terminators(self) -> None:
        """LF-only line endings are accepted."""
        body = f"3;{SIGNATURE}\n".encode() + b"abc" + f"\n0;{SIGNATURE}\n".encode()
        assert _decode(body) == b"abc"

    def test_hex_sizes(self) -> None:
        """Chunk sizes are hexadecimal."""
        data = b"x" * 0x1F
        body = f"1f;{SIGNATURE}\r\n".encode() + data + f"\r\n0;{SIGNATURE}\r\n".encode()
        assert _decode(body) == data

    def test_data_after_terminator_is_ignored(self) -> None:
        """Trailing headers after the zero-size chunk are dropped."""
        body = CHUNKED_BODY + b"x-amz-trailer: value\r\n"
        assert _decode(body) == PAYLOAD

    def test_invalid_header_raises(self) -> None:
        """A non-hex size is a framing error."""
        with pytest.raises(ChunkEncodingError):
            _decode(b"zz;chunk-signature=abc\r\ndata\r\n")

    def test_truncated_chunk_raises(self) -> None:
        """A stream ending inside a chunk is a framing error."""
        with pytest.raises(ChunkEncodingError):
            _decode(f"10;{SIGNATURE}\r\n".encode() + b"short")


class TestIterPayload:
    """Tests for payload selection."""

    def test_plain_bytes(self) -> None:
        """Plain payloads pass through unchanged."""
        assert b"".join(iter_payload(CHUNKED_BODY)) == CHUNKED_BODY

    def test_chunked_stream(self) -> None:
        """Chunked streams are decoded."""
        stream = io.BytesIO(CHUNKED_BODY)
        assert b"".join(iter_payload(stream, is_chunked_encoding=True)) == PAYLOAD

    def test_empty_plain_payload(self) -> None:
        """An empty body yields nothing."""
        assert b"".join(iter_payload(b"")) == b""
