"""Bucket directory: the set of buckets under the storage root.

Each bucket is a directory directly below the root. The in-memory listing is
seeded from the directories that already exist when the directory is opened.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from pathlib import Path

from s3emu.models import Bucket
from s3emu.storage.errors import BucketNotEmptyError
from s3emu.storage.layout import validate_bucket_name

logger = logging.getLogger(__name__)


class BucketDirectory:
    """Thread-safe registry of buckets backed by root-level directories."""

    def __init__(self, root_dir: str | Path) -> None:
        self._root_dir = Path(root_dir).resolve()
        self._root_dir.mkdir(parents=True, exist_ok=True)
        self._buckets: dict[str, Bucket] = {}
        self._lock = threading.Lock()
        self._load_existing()

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    def _load_existing(self) -> None:
        for entry in self._root_dir.iterdir():
            if not entry.is_dir() or entry.name.startswith("."):
                continue
            created = datetime.fromtimestamp(entry.stat().st_mtime, tz=UTC)
            self._buckets[entry.name] = Bucket(name=entry.name, creation_date=created)
        if self._buckets:
            logger.debug("Loaded %d existing buckets from %s", len(self._buckets), self._root_dir)

    def bucket_dir(self, name: str) -> Path:
        """Return the root directory of a bucket.

        Raises:
            InvalidBucketNameError: If name is not a valid bucket name.
        """
        validate_bucket_name(name)
        return self._root_dir / name

    def create_bucket(self, name: str) -> Bucket:
        """Create a bucket, or return the existing one.

        Raises:
            InvalidBucketNameError: If name is not a valid bucket name.
        """
        path = self.bucket_dir(name)
        with self._lock:
            existing = self._buckets.get(name)
            if existing is not None:
                path.mkdir(exist_ok=True)
                return existing
            path.mkdir(exist_ok=True)
            bucket = Bucket(name=name, creation_date=datetime.now(UTC))
            self._buckets[name] = bucket
        logger.debug("Created bucket: bucket=%s", name)
        return bucket

    def does_bucket_exist(self, name: str) -> bool:
        with self._lock:
            return name in self._buckets

    def get_bucket(self, name: str) -> Bucket | None:
        with self._lock:
            return self._buckets.get(name)

    def list_buckets(self) -> list[Bucket]:
        """Return all buckets sorted by name."""
        with self._lock:
            return sorted(self._buckets.values(), key=lambda b: b.name)

    def make_dirs(self, name: str, path: Path) -> Bucket:
        """Create the bucket if needed and a directory inside it.

        Both happen under the directory lock, so a concurrent delete_bucket
        either runs first or sees the new directory and refuses.

        Raises:
            InvalidBucketNameError: If name is not a valid bucket name.
        """
        bucket_path = self.bucket_dir(name)
        with self._lock:
            bucket = self._buckets.get(name)
            if bucket is None:
                bucket = Bucket(name=name, creation_date=datetime.now(UTC))
                self._buckets[name] = bucket
                logger.debug("Created bucket: bucket=%s", name)
            bucket_path.mkdir(exist_ok=True)
            path.mkdir(parents=True, exist_ok=True)
        return bucket

    def delete_bucket(self, name: str) -> bool:
        """Delete an empty bucket.

        Returns:
            False if the bucket does not exist, True once removed.

        Raises:
            BucketNotEmptyError: If any file or directory remains under the
                bucket root.
        """
        path = self.bucket_dir(name)
        with self._lock:
            if name not in self._buckets:
                return False
            if path.is_dir() and any(path.iterdir()):
                raise BucketNotEmptyError(name)
            if path.exists():
                path.rmdir()
            del self._buckets[name]
        logger.debug("Deleted bucket: bucket=%s", name)
        return True
