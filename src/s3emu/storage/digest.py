"""Content digests used as ETags.

Two variants are provided: a plain MD5 of the stored bytes, and a key-salted
MD5 (key id bytes followed by the content) that stands in for the ETag of a
server-side encrypted object. No cipher is ever applied.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from pathlib import Path
from typing import Any

_READ_SIZE = 64 * 1024


def plain_digest(data: bytes) -> str:
    """Return the lowercase hex MD5 of data."""
    return hashlib.md5(data).hexdigest()


def salted_digest(key_id: str, data: bytes) -> str:
    """Return the lowercase hex MD5 of key_id followed by data."""
    md5 = hashlib.md5(key_id.encode("utf-8"))
    md5.update(data)
    return md5.hexdigest()


def multipart_etag(part_digests: Iterable[bytes]) -> str:
    """Compute the composite ETag of a multipart object.

    Args:
        part_digests: Raw (binary) MD5 digests of each part, in ascending
            part-number order.

    Returns:
        hex(md5(d1 + d2 + ... + dn)) + "-" + n
    """
    md5 = hashlib.md5()
    count = 0
    for digest in part_digests:
        md5.update(digest)
        count += 1
    return f"{md5.hexdigest()}-{count}"


def file_md5(path: Path) -> Any:
    """Return an md5 hash object fed with the full content of path."""
    md5 = hashlib.md5()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(_READ_SIZE), b""):
            md5.update(chunk)
    return md5


class DigestingWriter:
    """Accumulate plain and (optionally) key-salted digests while streaming.

    Used by the object store so a payload is hashed in the same pass that
    writes it to disk.
    """

    def __init__(self, salt_key_id: str | None = None) -> None:
        self._md5 = hashlib.md5()
        self._salted = None
        if salt_key_id is not None:
            self._salted = hashlib.md5(salt_key_id.encode("utf-8"))
        self.size = 0

    def update(self, chunk: bytes) -> None:
        self._md5.update(chunk)
        if self._salted is not None:
            self._salted.update(chunk)
        self.size += len(chunk)

    @property
    def md5_hex(self) -> str:
        return self._md5.hexdigest()

    @property
    def etag(self) -> str:
        """Salted digest when a key id was given, otherwise the plain MD5."""
        if self._salted is not None:
            return self._salted.hexdigest()
        return self._md5.hexdigest()
