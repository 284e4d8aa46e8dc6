"""Multipart upload engine.

Lifecycle of an upload, keyed by (bucket, key, upload_id):

    absent -> prepared -> (put_part | copy_part)* -> completed | aborted

Prepared uploads live in an in-memory index. Parts are stored as
"{n}.part" files in a temp directory inside the target object's directory,
and are concatenated in ascending part-number order on completion.

Locking: every operation on an upload holds that upload's lock. When an
operation also touches the target or source object it takes the object lock
second, never the other way round.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from s3emu.models import MAX_PART_NUMBER, MIN_PART_NUMBER, ByteRange, MultipartUpload, Owner, Part
from s3emu.storage.buckets import BucketDirectory
from s3emu.storage.chunked import READ_SIZE, iter_payload, iter_plain_payload
from s3emu.storage.digest import DigestingWriter, file_md5, multipart_etag
from s3emu.storage.errors import (
    BucketNotEmptyError,
    InvalidPartError,
    InvalidRangeError,
    MultipartUploadStateError,
    ObjectNotFoundError,
    PartNotFoundError,
)
from s3emu.storage.filesystem_store import FilesystemObjectStore
from s3emu.storage.layout import (
    METADATA_FILE,
    PART_FILE_PATTERN,
    PART_TEMP_PATTERN,
    part_file,
    prune_empty_dirs,
    temp_sibling,
    upload_dir,
)
from s3emu.storage.locks import KeyedLock
from s3emu.storage.tracing import traced_storage_operation

if TYPE_CHECKING:
    from s3emu.kms.registry import KmsKeyRegistry

logger = logging.getLogger(__name__)

_UploadKey = tuple[str, str, str]


def _iter_slice(stream: BinaryIO, offset: int, count: int) -> Iterator[bytes]:
    stream.seek(offset)
    remaining = count
    while remaining > 0:
        chunk = stream.read(min(remaining, READ_SIZE))
        if not chunk:
            return
        remaining -= len(chunk)
        yield chunk


def _iter_files(paths: Iterable[Path]) -> Iterator[bytes]:
    for path in paths:
        with path.open("rb") as fh:
            yield from iter_plain_payload(fh)


def _stored_part_files(upload_path: Path) -> dict[int, Path]:
    """Map part number to part file for every part stored in upload_path."""
    found: dict[int, Path] = {}
    if not upload_path.is_dir():
        return found
    for entry in upload_path.iterdir():
        match = PART_FILE_PATTERN.match(entry.name)
        if match is None or not entry.is_file():
            continue
        number = int(match.group(1))
        if MIN_PART_NUMBER <= number <= MAX_PART_NUMBER:
            found[number] = entry
    return found


def _discard_part_files(upload_path: Path) -> None:
    """Remove an upload's part and part temp files, leaving anything else.

    The upload directory doubles as the directory of the key
    "{key}/{upload_id}", so it may hold another object's files.
    """
    if not upload_path.is_dir():
        return
    for entry in upload_path.iterdir():
        if not entry.is_file():
            continue
        if PART_FILE_PATTERN.match(entry.name) or PART_TEMP_PATTERN.match(entry.name):
            entry.unlink(missing_ok=True)


class MultipartUploadEngine:
    """Manages multipart uploads on top of a FilesystemObjectStore."""

    def __init__(
        self,
        object_store: FilesystemObjectStore,
        buckets: BucketDirectory,
        kms_registry: KmsKeyRegistry,
    ) -> None:
        self._store = object_store
        self._buckets = buckets
        self._kms = kms_registry
        self._uploads: dict[_UploadKey, MultipartUpload] = {}
        self._index_lock = threading.Lock()
        self._locks = KeyedLock()

    @property
    def backend_name(self) -> str:
        return self._store.backend_name

    def _upload_path(self, bucket: str, key: str, upload_id: str) -> Path:
        return upload_dir(self._store.object_dir(bucket, key), bucket, key, upload_id)

    def _require_upload(self, bucket: str, key: str, upload_id: str) -> MultipartUpload:
        with self._index_lock:
            upload = self._uploads.get((bucket, key, upload_id))
        if upload is None:
            raise MultipartUploadStateError(bucket=bucket, key=key, upload_id=upload_id)
        return upload

    def _write_part(self, upload_path: Path, part_number: int, chunks: Iterable[bytes]) -> Part:
        """Write a part file via temp sibling and rename; replaces any earlier part."""
        upload_path.mkdir(parents=True, exist_ok=True)
        target = part_file(upload_path, part_number)
        tmp_file = temp_sibling(target)
        writer = DigestingWriter()
        try:
            with tmp_file.open("wb") as fh:
                for chunk in chunks:
                    writer.update(chunk)
                    fh.write(chunk)
            tmp_file.replace(target)
        except Exception:
            tmp_file.unlink(missing_ok=True)
            raise
        return Part(
            part_number=part_number,
            etag=writer.md5_hex,
            size=writer.size,
            last_modified=datetime.now(UTC),
        )

    @traced_storage_operation("prepare_upload")
    def prepare_upload(
        self,
        bucket: str,
        key: str,
        content_type: str | None,
        content_encoding: str | None,
        upload_id: str | None,
        owner: Owner | None = None,
        initiator: Owner | None = None,
        kms_encryption: str | None = None,
        kms_key_id: str | None = None,
        user_metadata: dict[str, str] | None = None,
    ) -> MultipartUpload:
        """Register a new upload and create its temp directory.

        Args:
            upload_id: Upload token; None generates one.

        Raises:
            KmsKeyNotFoundError: If kms_key_id is not registered.
            MultipartUploadStateError: If the upload is already prepared, or
                its directory already holds the object "{key}/{upload_id}".
            PathTraversalError: If upload_id is not a usable directory name.
        """
        if kms_key_id is not None:
            self._kms.validate(kms_key_id)

        upload_id = upload_id or uuid.uuid4().hex
        upload_path = self._upload_path(bucket, key, upload_id)
        coordinates = (bucket, key, upload_id)

        with self._locks.hold(*coordinates), self._index_lock:
            if coordinates in self._uploads:
                raise MultipartUploadStateError(
                    "Multipart upload is already prepared",
                    bucket=bucket,
                    key=key,
                    upload_id=upload_id,
                )
            if (upload_path / METADATA_FILE).is_file():
                raise MultipartUploadStateError(
                    "Upload id collides with an existing object",
                    bucket=bucket,
                    key=key,
                    upload_id=upload_id,
                )

            self._buckets.make_dirs(bucket, upload_path)

            upload = MultipartUpload(
                upload_id=upload_id,
                bucket_name=bucket,
                key=key,
                initiated=datetime.now(UTC),
                content_type=content_type,
                content_encoding=content_encoding,
                owner=owner,
                initiator=initiator,
                kms_encryption=kms_encryption,
                kms_key_id=kms_key_id,
                user_metadata={k.lower(): v for k, v in (user_metadata or {}).items()},
            )
            self._uploads[coordinates] = upload

        logger.debug("Prepared upload: bucket=%s key=%s upload_id=%s", bucket, key, upload_id)
        return upload

    @traced_storage_operation("put_part")
    def put_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        data: BinaryIO | bytes,
        is_chunked_encoding: bool = False,
    ) -> Part:
        """Store one part of a prepared upload.

        Raises:
            InvalidPartError: If part_number is outside 1..10000.
            MultipartUploadStateError: If the upload is not prepared.
        """
        if not MIN_PART_NUMBER <= part_number <= MAX_PART_NUMBER:
            raise InvalidPartError(
                f"Part number must be between {MIN_PART_NUMBER} and {MAX_PART_NUMBER},"
                f" got {part_number}",
                bucket=bucket,
                key=key,
            )

        upload_path = self._upload_path(bucket, key, upload_id)
        with self._locks.hold(bucket, key, upload_id):
            self._require_upload(bucket, key, upload_id)
            part = self._write_part(
                upload_path, part_number, iter_payload(data, is_chunked_encoding)
            )

        logger.debug(
            "Stored part: bucket=%s key=%s upload_id=%s part=%d size=%s",
            bucket,
            key,
            upload_id,
            part_number,
            part.size,
        )
        return part

    @traced_storage_operation("copy_part")
    def copy_part(
        self,
        src_bucket: str,
        src_key: str,
        byte_range: ByteRange | None,
        part_number: int,
        dst_bucket: str,
        dst_key: str,
        upload_id: str,
    ) -> Part:
        """Store a part copied from a range of an existing object.

        Args:
            byte_range: Inclusive byte range of the source; None copies it all.

        Raises:
            MultipartUploadStateError: If the destination upload is not prepared.
            ObjectNotFoundError: If the source object does not exist.
            InvalidRangeError: If the range starts past the end of the source.
        """
        if not MIN_PART_NUMBER <= part_number <= MAX_PART_NUMBER:
            raise InvalidPartError(
                f"Part number must be between {MIN_PART_NUMBER} and {MAX_PART_NUMBER},"
                f" got {part_number}",
                bucket=dst_bucket,
                key=dst_key,
            )

        upload_path = self._upload_path(dst_bucket, dst_key, upload_id)
        with self._locks.hold(dst_bucket, dst_key, upload_id):
            self._require_upload(dst_bucket, dst_key, upload_id)

            opened = self._store.open_object(src_bucket, src_key)
            if opened is None:
                raise ObjectNotFoundError("Copy source not found", bucket=src_bucket, key=src_key)
            source, src_fh = opened

            with src_fh:
                if byte_range is None:
                    chunks: Iterator[bytes] = iter_plain_payload(src_fh)
                else:
                    if source.size > 0 and byte_range.start >= source.size:
                        raise InvalidRangeError(
                            f"Range start {byte_range.start} is beyond object size {source.size}",
                            bucket=src_bucket,
                            key=src_key,
                        )
                    offset, count = byte_range.bounds(source.size)
                    chunks = _iter_slice(src_fh, offset, count)
                part = self._write_part(upload_path, part_number, chunks)

        logger.debug(
            "Copied part: %s/%s -> %s/%s upload_id=%s part=%d size=%s",
            src_bucket,
            src_key,
            dst_bucket,
            dst_key,
            upload_id,
            part_number,
            part.size,
        )
        return part

    @traced_storage_operation("list_parts")
    def list_parts(self, bucket: str, key: str, upload_id: str) -> list[Part]:
        """Return the stored parts of an upload in ascending part-number order.

        Raises:
            MultipartUploadStateError: If the upload is not prepared.
        """
        upload_path = self._upload_path(bucket, key, upload_id)
        with self._locks.hold(bucket, key, upload_id):
            self._require_upload(bucket, key, upload_id)
            parts: list[Part] = []
            for number, path in sorted(_stored_part_files(upload_path).items()):
                stat = path.stat()
                parts.append(
                    Part(
                        part_number=number,
                        etag=file_md5(path).hexdigest(),
                        size=stat.st_size,
                        last_modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
                    )
                )
        return parts

    @traced_storage_operation("complete_upload")
    def complete_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Iterable[Part],
    ) -> str:
        """Assemble the listed parts into the target object.

        Parts are concatenated in ascending part-number order whatever the
        manifest order; a number listed twice is used once. A manifest ETag,
        when given, must match the stored part.

        Returns:
            The composite ETag, hex(md5(md5(P1) + ... + md5(Pn))) + "-" + n.

        Raises:
            MultipartUploadStateError: If the upload is not prepared.
            PartNotFoundError: If a listed part was never stored.
            InvalidPartError: If a listed ETag does not match the stored part.
        """
        upload_path = self._upload_path(bucket, key, upload_id)
        with self._locks.hold(bucket, key, upload_id):
            upload = self._require_upload(bucket, key, upload_id)

            requested: dict[int, Part] = {}
            for part in parts:
                requested[part.part_number] = part

            stored_parts = _stored_part_files(upload_path)
            selected: list[Path] = []
            digests: list[bytes] = []
            for number in sorted(requested):
                path = stored_parts.get(number)
                if path is None:
                    raise PartNotFoundError(number, bucket=bucket, key=key)
                md5 = file_md5(path)
                expected = requested[number].etag
                if expected and expected.strip('"') != md5.hexdigest():
                    raise InvalidPartError(
                        f"ETag of part {number} does not match the stored part",
                        bucket=bucket,
                        key=key,
                    )
                selected.append(path)
                digests.append(md5.digest())

            etag = multipart_etag(digests)
            self._store.store_object(
                bucket,
                key,
                _iter_files(selected),
                content_type=upload.content_type,
                content_encoding=upload.content_encoding,
                user_metadata=upload.user_metadata,
                kms_encryption=upload.kms_encryption,
                kms_key_id=upload.kms_key_id,
                etag=etag,
            )

            _discard_part_files(upload_path)
            with self._store.locks.hold(bucket, key):
                prune_empty_dirs(upload_path, upload_path.parent)
            with self._index_lock:
                self._uploads.pop((bucket, key, upload_id), None)

        logger.debug(
            "Completed upload: bucket=%s key=%s upload_id=%s parts=%d etag=%s",
            bucket,
            key,
            upload_id,
            len(selected),
            etag,
        )
        return etag

    @traced_storage_operation("abort_upload")
    def abort_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """Discard an upload and its parts. Aborting an unknown upload is a no-op."""
        bucket_dir = self._buckets.bucket_dir(bucket)
        upload_path = self._upload_path(bucket, key, upload_id)
        with self._locks.hold(bucket, key, upload_id):
            with self._index_lock:
                removed = self._uploads.pop((bucket, key, upload_id), None)
            _discard_part_files(upload_path)
            with self._store.locks.hold(bucket, key):
                prune_empty_dirs(upload_path, bucket_dir)

        if removed is not None:
            logger.debug("Aborted upload: bucket=%s key=%s upload_id=%s", bucket, key, upload_id)

    def list_uploads(self, bucket: str | None = None) -> list[MultipartUpload]:
        """Return active uploads, optionally for one bucket only.

        Sorted by (bucket_name, key, initiated).
        """
        with self._index_lock:
            uploads = list(self._uploads.values())
        if bucket is not None:
            uploads = [u for u in uploads if u.bucket_name == bucket]
        uploads.sort(key=lambda u: (u.bucket_name, u.key, u.initiated))
        return uploads

    def get_upload(self, bucket: str, key: str, upload_id: str) -> MultipartUpload | None:
        with self._index_lock:
            return self._uploads.get((bucket, key, upload_id))

    def delete_bucket(self, bucket: str) -> bool:
        """Delete a bucket unless it is non-empty or has active uploads.

        The upload check and the deletion run under the index lock, so no
        upload can be prepared into the bucket in between.

        Raises:
            BucketNotEmptyError: If objects or active uploads remain.
        """
        with self._index_lock:
            if any(coordinates[0] == bucket for coordinates in self._uploads):
                raise BucketNotEmptyError(bucket)
            return self._buckets.delete_bucket(bucket)
