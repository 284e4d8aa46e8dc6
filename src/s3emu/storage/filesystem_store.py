"""s3emu Filesystem Object Storage backend.

Provides the object store on top of the local filesystem with:
- Keys mirrored as nested directories below the bucket root
- Path traversal protection
- Plain or key-salted MD5 ETags computed while streaming
- Atomic publication (temp sibling + os.replace) under a per-key lock
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from pydantic import ValidationError

from s3emu.models import DEFAULT_CONTENT_TYPE, StoredObject, Tag
from s3emu.storage.buckets import BucketDirectory
from s3emu.storage.chunked import iter_payload, iter_plain_payload
from s3emu.storage.digest import DigestingWriter
from s3emu.storage.errors import ObjectNotFoundError, PathTraversalError
from s3emu.storage.layout import (
    DATA_FILE,
    METADATA_FILE,
    TAGS_FILE,
    object_dir,
    prune_empty_dirs,
    temp_sibling,
)
from s3emu.storage.listing import list_objects, load_object, load_tags
from s3emu.storage.locks import KeyedLock
from s3emu.storage.object_store import ObjectStore
from s3emu.storage.tracing import traced_storage_operation

if TYPE_CHECKING:
    from s3emu.kms.registry import KmsKeyRegistry

logger = logging.getLogger(__name__)


def _write_text_atomic(target: Path, text: str) -> None:
    tmp_file = temp_sibling(target)
    try:
        tmp_file.write_text(text, encoding="utf-8")
        tmp_file.replace(target)
    except OSError:
        tmp_file.unlink(missing_ok=True)
        raise


class FilesystemObjectStore(ObjectStore):
    """Filesystem-based object storage implementation.

    Objects are stored in a directory per key:
        {root}/{bucket}/{key segments}/
            fileData    # payload
            metadata    # StoredObject record (JSON)
            tags        # tag list (JSON, optional)

    Writers stream the payload into a temp file outside any lock, then take
    the (bucket, key) lock only to publish it.
    """

    def __init__(self, buckets: BucketDirectory, kms_registry: KmsKeyRegistry) -> None:
        """Initialize filesystem storage.

        Args:
            buckets: Bucket directory that owns the storage root.
            kms_registry: Registry used to validate encryption key ids.
        """
        self._buckets = buckets
        self._kms = kms_registry
        self._locks = KeyedLock()
        logger.debug("FilesystemObjectStore initialized with root_dir=%s", buckets.root_dir)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "filesystem"

    @property
    def locks(self) -> KeyedLock:
        """Per-(bucket, key) locks guarding object publication."""
        return self._locks

    def object_dir(self, bucket: str, key: str) -> Path:
        """Return the directory of an object, validating bucket and key.

        Raises:
            InvalidBucketNameError: If bucket is not a valid name.
            PathTraversalError: If key would resolve outside the bucket.
        """
        bucket_dir = self._buckets.bucket_dir(bucket)
        path = object_dir(bucket_dir, bucket, key)
        try:
            path.resolve().relative_to(bucket_dir.resolve())
        except ValueError as e:
            raise PathTraversalError(
                "Path resolves outside bucket directory", bucket=bucket, key=key
            ) from e
        return path

    def _read_record(self, obj_dir: Path, bucket: str, key: str) -> StoredObject | None:
        """Read an object's record; corrupt records are logged and treated as absent."""
        try:
            return load_object(obj_dir)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(
                "Failed to read object record: bucket=%s key=%s error=%s", bucket, key, e
            )
            return None

    @traced_storage_operation("put_object")
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
        """Store an object."""
        return self.store_object(
            bucket,
            key,
            iter_payload(data, is_chunked_encoding),
            content_type=content_type,
            content_encoding=content_encoding,
            user_metadata=user_metadata,
            kms_encryption=kms_encryption,
            kms_key_id=kms_key_id,
        )

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
        """Publish an object from payload chunks.

        The previous creation date is kept when an existing object is
        overwritten; its tags are dropped.
        """
        if kms_key_id is not None:
            self._kms.validate(kms_key_id)

        obj_dir = self.object_dir(bucket, key)
        self._buckets.make_dirs(bucket, obj_dir)

        data_file = obj_dir / DATA_FILE
        tmp_data = temp_sibling(data_file)
        writer = DigestingWriter(kms_key_id)
        try:
            with tmp_data.open("wb") as fh:
                for chunk in chunks:
                    writer.update(chunk)
                    fh.write(chunk)

            with self._locks.hold(bucket, key):
                previous = self._read_record(obj_dir, bucket, key)
                now = datetime.now(UTC)
                stored = StoredObject(
                    name=key,
                    size=writer.size,
                    creation_date=previous.creation_date if previous else now,
                    last_modified=now,
                    content_type=content_type or DEFAULT_CONTENT_TYPE,
                    content_encoding=content_encoding,
                    etag=etag or writer.etag,
                    md5=writer.md5_hex,
                    encrypted=bool(kms_encryption and kms_key_id),
                    kms_encryption=kms_encryption,
                    kms_key_id=kms_key_id,
                    user_metadata=dict(user_metadata or {}),
                )
                tmp_data.replace(data_file)
                _write_text_atomic(
                    obj_dir / METADATA_FILE, stored.model_dump_json(exclude={"tags"}, indent=2)
                )
                (obj_dir / TAGS_FILE).unlink(missing_ok=True)
        except Exception:
            tmp_data.unlink(missing_ok=True)
            with self._locks.hold(bucket, key):
                prune_empty_dirs(obj_dir, self._buckets.bucket_dir(bucket))
            raise

        logger.debug(
            "Stored object: bucket=%s key=%s etag=%s size=%d encrypted=%s",
            bucket,
            key,
            stored.etag,
            stored.size,
            stored.encrypted,
        )
        return stored.model_copy(update={"data_file": data_file})

    @traced_storage_operation("get_object")
    def get_object(self, bucket: str, key: str) -> StoredObject | None:
        """Retrieve an object's metadata with its data file attached.

        The attached data_file is a path, not a handle: reading it after a
        concurrent overwrite returns the new payload while etag and size
        describe the old one. Use open_object for a consistent read.
        """
        obj_dir = self.object_dir(bucket, key)
        with self._locks.hold(bucket, key):
            return self._read_record(obj_dir, bucket, key)

    def open_object(self, bucket: str, key: str) -> tuple[StoredObject, BinaryIO] | None:
        """Read an object's record and open its data file under the object lock.

        The open handle keeps that generation of the payload readable after
        the lock is released, even if the object is overwritten or deleted.
        The caller closes the handle.
        """
        obj_dir = self.object_dir(bucket, key)
        with self._locks.hold(bucket, key):
            stored = self._read_record(obj_dir, bucket, key)
            if stored is None:
                return None
            return stored, (obj_dir / DATA_FILE).open("rb")

    @traced_storage_operation("get_objects", keyed=False)
    def get_objects(self, bucket: str, prefix: str | None = None) -> list[StoredObject]:
        """List objects whose key starts with prefix."""
        return list_objects(self._buckets.bucket_dir(bucket), bucket, prefix)

    @traced_storage_operation("copy_object")
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
        """Copy an object.

        The source is snapshotted with open_object, so the source and
        destination locks are never held together.
        """
        if kms_key_id is not None:
            self._kms.validate(kms_key_id)

        opened = self.open_object(src_bucket, src_key)
        if opened is None:
            logger.debug("Copy source not found: bucket=%s key=%s", src_bucket, src_key)
            return None
        source, src_fh = opened

        with src_fh:
            copied = self.store_object(
                dst_bucket,
                dst_key,
                iter_plain_payload(src_fh),
                content_type=source.content_type,
                content_encoding=source.content_encoding,
                user_metadata=source.user_metadata if user_metadata is None else user_metadata,
                kms_encryption=kms_encryption,
                kms_key_id=kms_key_id,
            )

        logger.debug(
            "Copied object: %s/%s -> %s/%s", src_bucket, src_key, dst_bucket, dst_key
        )
        return copied

    @traced_storage_operation("set_object_tags")
    def set_object_tags(self, bucket: str, key: str, tags: Iterable[Tag]) -> None:
        """Replace an object's tags; a repeated key keeps its last value."""
        deduped: dict[str, Tag] = {}
        for tag in tags:
            deduped[tag.key] = tag

        obj_dir = self.object_dir(bucket, key)
        with self._locks.hold(bucket, key):
            if not (obj_dir / METADATA_FILE).is_file():
                raise ObjectNotFoundError(bucket=bucket, key=key)
            payload = json.dumps([tag.model_dump() for tag in deduped.values()], indent=2)
            _write_text_atomic(obj_dir / TAGS_FILE, payload)

        logger.debug("Set object tags: bucket=%s key=%s count=%d", bucket, key, len(deduped))

    @traced_storage_operation("get_object_tags")
    def get_object_tags(self, bucket: str, key: str) -> list[Tag] | None:
        """Return an object's tags."""
        obj_dir = self.object_dir(bucket, key)
        with self._locks.hold(bucket, key):
            if not (obj_dir / METADATA_FILE).is_file():
                return None
            return load_tags(obj_dir)

    @traced_storage_operation("delete_object")
    def delete_object(self, bucket: str, key: str) -> bool:
        """Delete an object and prune its now-empty key directories."""
        bucket_dir = self._buckets.bucket_dir(bucket)
        obj_dir = self.object_dir(bucket, key)
        with self._locks.hold(bucket, key):
            if not (obj_dir / METADATA_FILE).is_file():
                return False
            for name in (DATA_FILE, METADATA_FILE, TAGS_FILE):
                (obj_dir / name).unlink(missing_ok=True)
            prune_empty_dirs(obj_dir, bucket_dir)

        logger.debug("Deleted object: bucket=%s key=%s", bucket, key)
        return True
