"""s3emu storage layer.

Buckets, objects and multipart uploads stored on the local filesystem.
The StorageEngine facade lives in s3emu.storage.engine.
"""

from s3emu.storage.buckets import BucketDirectory
from s3emu.storage.errors import (
    BucketNotEmptyError,
    ChunkEncodingError,
    InvalidBucketNameError,
    InvalidPartError,
    InvalidRangeError,
    KmsKeyNotFoundError,
    MultipartUploadStateError,
    ObjectNotFoundError,
    ObjectStorageError,
    PartNotFoundError,
    PathTraversalError,
)
from s3emu.storage.filesystem_store import FilesystemObjectStore
from s3emu.storage.listing import list_objects
from s3emu.storage.multipart import MultipartUploadEngine
from s3emu.storage.object_store import ObjectStore

__all__ = [
    "BucketDirectory",
    "BucketNotEmptyError",
    "ChunkEncodingError",
    "FilesystemObjectStore",
    "InvalidBucketNameError",
    "InvalidPartError",
    "InvalidRangeError",
    "KmsKeyNotFoundError",
    "MultipartUploadEngine",
    "MultipartUploadStateError",
    "ObjectNotFoundError",
    "ObjectStorageError",
    "ObjectStore",
    "PartNotFoundError",
    "PathTraversalError",
    "list_objects",
]
