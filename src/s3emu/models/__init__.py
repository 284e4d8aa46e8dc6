"""s3emu domain models.

Entities returned by the storage engine to the request layer.
"""

from s3emu.models.bucket import Bucket, ByteRange
from s3emu.models.multipart_upload import (
    MAX_PART_NUMBER,
    MIN_PART_NUMBER,
    MultipartUpload,
    Owner,
    Part,
)
from s3emu.models.stored_object import DEFAULT_CONTENT_TYPE, StoredObject, Tag

__all__ = [
    "Bucket",
    "ByteRange",
    "DEFAULT_CONTENT_TYPE",
    "MAX_PART_NUMBER",
    "MIN_PART_NUMBER",
    "MultipartUpload",
    "Owner",
    "Part",
    "StoredObject",
    "Tag",
]
