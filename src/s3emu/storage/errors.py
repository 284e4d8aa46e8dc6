"""s3emu storage error types.

Provides typed exceptions for storage operations. Read-style queries return
None for missing state; operations that require pre-existing state raise.
Underlying OSError failures are not wrapped and propagate unchanged.
"""

from __future__ import annotations


class ObjectStorageError(Exception):
    """Base exception for object storage operations.

    Attributes:
        message: Human-readable error message.
        bucket: Bucket name associated with the operation (if applicable).
        key: Object key associated with the operation (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.bucket = bucket
        self.key = key

    def __str__(self) -> str:
        parts = [self.message]
        if self.bucket:
            parts.append(f"bucket={self.bucket}")
        if self.key:
            parts.append(f"key={self.key}")
        return " ".join(parts)


class ObjectNotFoundError(ObjectStorageError):
    """Raised when an operation requires an object that does not exist."""

    def __init__(
        self,
        message: str = "Object not found",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class PathTraversalError(ObjectStorageError):
    """Raised when an object key would escape its bucket root.

    Keys with ".." or "." segments or NUL bytes cannot be mapped onto the
    mirrored directory layout safely.
    """

    def __init__(
        self,
        message: str = "Invalid key: path traversal detected",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class InvalidBucketNameError(ObjectStorageError):
    """Raised when a bucket name cannot be used as a directory name."""

    def __init__(self, bucket: str) -> None:
        super().__init__(f"Invalid bucket name: {bucket!r}")
        self.bucket = bucket


class BucketNotEmptyError(ObjectStorageError):
    """Raised when deleting a bucket that still holds objects or uploads."""

    def __init__(self, bucket: str) -> None:
        super().__init__("The bucket you tried to delete is not empty", bucket=bucket)


class MultipartUploadStateError(ObjectStorageError):
    """Raised when a part operation targets an upload that is not prepared.

    No filesystem state is created when this is raised.
    """

    def __init__(
        self,
        message: str = "Missed preparing Multipart Request",
        *,
        bucket: str | None = None,
        key: str | None = None,
        upload_id: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)
        self.upload_id = upload_id


class PartNotFoundError(ObjectStorageError):
    """Raised when a completion manifest references a part that was never stored."""

    def __init__(
        self,
        part_number: int,
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(f"Part {part_number} was not uploaded", bucket=bucket, key=key)
        self.part_number = part_number


class InvalidPartError(ObjectStorageError):
    """Raised for an out-of-range part number or a manifest ETag mismatch."""


class InvalidRangeError(ObjectStorageError):
    """Raised when a copy range starts beyond the end of the source object."""


class KmsKeyNotFoundError(ObjectStorageError):
    """Raised when an encryption key id is not registered.

    Always raised before any data is written.
    """

    def __init__(self, key_id: str) -> None:
        super().__init__(f"Key ID {key_id} does not exist!")
        self.key_id = key_id


class ChunkEncodingError(ObjectStorageError):
    """Raised when an aws-chunked payload has malformed framing."""
