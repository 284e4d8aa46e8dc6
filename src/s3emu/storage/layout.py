"""On-disk layout of buckets, objects and multipart uploads.

    {root}/{bucket}/                              bucket root
    {root}/{bucket}/{key segments}/fileData       object payload
    {root}/{bucket}/{key segments}/metadata       StoredObject record (JSON)
    {root}/{bucket}/{key segments}/tags           tag list (JSON, optional)
    {root}/{bucket}/{key segments}/{uploadId}/{n}.part

Keys are mirrored as nested directories. Leading "/" characters are dropped
from the path (not from the stored key) so a key never escapes its bucket.

Below the first key segment a directory shares its parent with an object's
files, so "fileData", "metadata" and "tags" are reserved there and may not
be used as key segments or upload ids.
"""

from __future__ import annotations

import re
import uuid
from pathlib import Path

from s3emu.storage.errors import InvalidBucketNameError, PathTraversalError

DATA_FILE = "fileData"
METADATA_FILE = "metadata"
TAGS_FILE = "tags"
PART_SUFFIX = ".part"

PART_FILE_PATTERN = re.compile(r"^([0-9]+)\.part$")
PART_TEMP_PATTERN = re.compile(r"^\.[0-9]+\.part\.[0-9a-f]{32}\.tmp$")

_FORBIDDEN_SEGMENTS = frozenset({".", ".."})
RESERVED_NAMES = frozenset({DATA_FILE, METADATA_FILE, TAGS_FILE})


def validate_bucket_name(bucket: str) -> None:
    """Reject bucket names that cannot be a single directory name."""
    if not bucket or "/" in bucket or "\x00" in bucket or bucket in _FORBIDDEN_SEGMENTS:
        raise InvalidBucketNameError(bucket)


def key_segments(bucket: str, key: str) -> list[str]:
    """Split a key into the directory segments used to store it.

    Raises:
        PathTraversalError: If the key is empty after normalisation,
            contains NUL bytes or "." / ".." segments, or uses a reserved
            file name below its first segment.
    """
    if "\x00" in key:
        raise PathTraversalError(bucket=bucket, key=key)

    segments = [segment for segment in key.lstrip("/").split("/") if segment]
    if not segments or any(segment in _FORBIDDEN_SEGMENTS for segment in segments):
        raise PathTraversalError(bucket=bucket, key=key)
    if any(segment in RESERVED_NAMES for segment in segments[1:]):
        raise PathTraversalError("Key uses a reserved file name", bucket=bucket, key=key)
    return segments


def object_dir(bucket_dir: Path, bucket: str, key: str) -> Path:
    """Return the directory holding the object stored under key."""
    return bucket_dir.joinpath(*key_segments(bucket, key))


def upload_dir(obj_dir: Path, bucket: str, key: str, upload_id: str) -> Path:
    """Return the temp directory of a multipart upload inside its object directory."""
    if (
        not upload_id
        or "/" in upload_id
        or "\x00" in upload_id
        or upload_id in _FORBIDDEN_SEGMENTS
        or upload_id in RESERVED_NAMES
    ):
        raise PathTraversalError("Invalid upload id", bucket=bucket, key=key)
    return obj_dir / upload_id


def part_file(upload_path: Path, part_number: int) -> Path:
    return upload_path / f"{part_number}{PART_SUFFIX}"


def temp_sibling(target: Path) -> Path:
    """Return a unique temp path beside target, for write-then-rename."""
    return target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")


def prune_empty_dirs(start: Path, stop: Path) -> None:
    """Remove empty directories from start up to (not including) stop."""
    current = start
    while current != stop and stop in current.parents:
        try:
            current.rmdir()
        except OSError:
            return
        current = current.parent
