"""Storage engine facade.

Wires the bucket directory, object store, multipart upload engine and KMS
key registry over one storage root.

Usage:
    with StorageEngine.from_config(load_store_config()) as engine:
        engine.objects.put_object("bucket", "key", None, None, b"data")
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Iterable
from pathlib import Path
from types import TracebackType

from s3emu.config import StoreConfig
from s3emu.kms.registry import KmsKeyRegistry
from s3emu.models import Bucket
from s3emu.storage.buckets import BucketDirectory
from s3emu.storage.filesystem_store import FilesystemObjectStore
from s3emu.storage.multipart import MultipartUploadEngine

logger = logging.getLogger(__name__)


class StorageEngine:
    """Object-storage emulator over a local directory.

    Args:
        root_dir: Storage root. None creates a fresh temp directory.
        kms_keys: KMS key ARNs or ids accepted for encryption.
        initial_buckets: Buckets created at startup.
        retain_files_on_exit: Keep the root directory on close().
    """

    def __init__(
        self,
        root_dir: str | Path | None = None,
        *,
        kms_keys: Iterable[str] = (),
        initial_buckets: Iterable[str] = (),
        retain_files_on_exit: bool = False,
    ) -> None:
        if root_dir is None:
            root_dir = tempfile.mkdtemp(prefix="s3emu-")
        self._retain_files_on_exit = retain_files_on_exit
        self._closed = False

        self._kms = KmsKeyRegistry(kms_keys)
        self._buckets = BucketDirectory(root_dir)
        self._objects = FilesystemObjectStore(self._buckets, self._kms)
        self._uploads = MultipartUploadEngine(self._objects, self._buckets, self._kms)

        for name in initial_buckets:
            self._buckets.create_bucket(name)

        logger.info(
            "Storage engine started: root_dir=%s buckets=%d kms_keys=%d",
            self._buckets.root_dir,
            len(self._buckets.list_buckets()),
            len(self._kms.key_refs()),
        )

    @classmethod
    def from_config(cls, config: StoreConfig) -> StorageEngine:
        return cls(
            config.root_dir,
            kms_keys=config.valid_kms_keys,
            initial_buckets=config.initial_buckets,
            retain_files_on_exit=config.retain_files_on_exit,
        )

    @property
    def root_dir(self) -> Path:
        return self._buckets.root_dir

    @property
    def buckets(self) -> BucketDirectory:
        return self._buckets

    @property
    def objects(self) -> FilesystemObjectStore:
        return self._objects

    @property
    def uploads(self) -> MultipartUploadEngine:
        return self._uploads

    @property
    def kms(self) -> KmsKeyRegistry:
        return self._kms

    def create_bucket(self, name: str) -> Bucket:
        return self._buckets.create_bucket(name)

    def delete_bucket(self, name: str) -> bool:
        """Delete an empty bucket with no active multipart uploads.

        Raises:
            BucketNotEmptyError: If objects or active uploads remain.
        """
        return self._uploads.delete_bucket(name)

    def close(self) -> None:
        """Release the storage root, deleting it unless files are retained."""
        if self._closed:
            return
        self._closed = True
        if self._retain_files_on_exit:
            logger.info("Storage engine closed, retaining files in %s", self.root_dir)
            return
        shutil.rmtree(self.root_dir, ignore_errors=True)
        logger.info("Storage engine closed, removed %s", self.root_dir)

    def __enter__(self) -> StorageEngine:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
