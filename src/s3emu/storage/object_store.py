"""s3emu Object Store interface definition.

Provides the ObjectStore interface that storage backends implement.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import BinaryIO

from s3emu.models import StoredObject, Tag


class ObjectStore(ABC):
    """Abstract base class for object storage backends.

    Implementations provide:
    - Plain or key-salted MD5 ETags
    - Atomic publication of data and metadata
    - Path traversal protection
    - Safe attribute emission for observability

    Implementations:
    - FilesystemObjectStore: Local filesystem
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability.

        Returns:
            Backend name string (e.g., "filesystem").
        """
        ...

    @abstractmethod
    def put_object(
        self,
        bucket: str,
        key: str,
        content_type: str | None,
        content_encoding: str | None,
        data: BinaryIO | bytes,
        is_chunked_encoding: bool = False,
        user_metadata: dict[str, str] | None = None,
        kms_encryption: str | None = None,
        kms_key_id: str | None = None,
    ) -> StoredObject:
        """Store an object, creating the bucket on first use.

        Args:
            bucket: Bucket name.
            key: Object key.
            content_type: MIME type; None means binary/octet-stream.
            content_encoding: Content-Encoding to record, if any.
            data: Payload as a binary stream or bytes.
            is_chunked_encoding: Payload uses aws-chunked framing.
            user_metadata: User metadata to record.
            kms_encryption: Encryption algorithm identifier.
            kms_key_id: Encryption key id; must be registered.

        Returns:
            The stored object's metadata.

        Raises:
            KmsKeyNotFoundError: If kms_key_id is not registered.
            PathTraversalError: If key cannot be mapped inside the bucket.
            ChunkEncodingError: If chunked framing is malformed.
        """
        ...

    @abstractmethod
    def store_object(
        self,
        bucket: str,
        key: str,
        chunks: Iterable[bytes],
        *,
        content_type: str | None = None,
        content_encoding: str | None = None,
        user_metadata: dict[str, str] | None = None,
        kms_encryption: str | None = None,
        kms_key_id: str | None = None,
        etag: str | None = None,
    ) -> StoredObject:
        """Publish an object from already-decoded payload chunks.

        Args:
            etag: Precomputed ETag (e.g. a composite multipart ETag). When
                None the ETag is derived from the payload.
        """
        ...

    @abstractmethod
    def get_object(self, bucket: str, key: str) -> StoredObject | None:
        """Retrieve an object's metadata with its data file attached.

        Returns:
            The object, or None if it does not exist.
        """
        ...

    @abstractmethod
    def get_objects(self, bucket: str, prefix: str | None = None) -> list[StoredObject]:
        """List objects whose key starts with prefix, sorted by key."""
        ...

    @abstractmethod
    def copy_object(
        self,
        src_bucket: str,
        src_key: str,
        dst_bucket: str,
        dst_key: str,
        kms_encryption: str | None = None,
        kms_key_id: str | None = None,
        user_metadata: dict[str, str] | None = None,
    ) -> StoredObject | None:
        """Copy an object, re-deriving its ETag for the destination.

        Returns:
            The destination object, or None if the source does not exist.
        """
        ...

    @abstractmethod
    def set_object_tags(self, bucket: str, key: str, tags: Iterable[Tag]) -> None:
        """Replace an object's tags.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        ...

    @abstractmethod
    def get_object_tags(self, bucket: str, key: str) -> list[Tag] | None:
        """Return an object's tags, or None if the object does not exist."""
        ...

    @abstractmethod
    def delete_object(self, bucket: str, key: str) -> bool:
        """Delete an object.

        Returns:
            True if the object existed and was deleted.
        """
        ...
