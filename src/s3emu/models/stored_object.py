"""Persisted metadata record of a single object.

The record is written as JSON beside the object's data file. The data file
path is attached when the record is loaded and is never serialized.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_CONTENT_TYPE = "binary/octet-stream"


class Tag(BaseModel):
    """A single object tag."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1)
    value: str = ""


class StoredObject(BaseModel):
    """Metadata of a stored object.

    Attributes:
        name: Object key exactly as supplied by the caller.
        size: Payload size in bytes.
        creation_date: When the object was first written at this key.
        last_modified: When the current content was written.
        content_type: MIME type of the content.
        content_encoding: Content-Encoding supplied at upload, if any.
        etag: Content digest (lowercase hex, unquoted). Key-salted for
            objects stored with a KMS key id; composite for multipart objects.
        md5: Plain hex MD5 of the stored bytes.
        encrypted: True iff both an algorithm and a key id were supplied.
        kms_encryption: Encryption algorithm identifier (e.g. "aws:kms").
        kms_key_id: Encryption key identifier.
        user_metadata: User metadata; keys are lowercased.
        tags: Object tags, in insertion order.
        data_file: Path to the payload file (attached on load only).
    """

    model_config = ConfigDict(extra="ignore")

    name: str
    size: int = Field(default=0, ge=0)
    creation_date: datetime
    last_modified: datetime
    content_type: str = DEFAULT_CONTENT_TYPE
    content_encoding: str | None = None
    etag: str
    md5: str
    encrypted: bool = False
    kms_encryption: str | None = None
    kms_key_id: str | None = None
    user_metadata: dict[str, str] = Field(default_factory=dict)
    tags: list[Tag] = Field(default_factory=list)
    data_file: Path | None = Field(default=None, exclude=True)

    @field_validator("user_metadata", mode="before")
    @classmethod
    def lowercase_metadata_keys(cls, v: object) -> object:
        """Normalise metadata keys so lookups are case-insensitive."""
        if isinstance(v, dict):
            return {str(k).lower(): val for k, val in v.items()}
        return v

    def read_bytes(self) -> bytes:
        """Return the payload currently stored at data_file.

        This reads the path as it is now; it may belong to a newer write
        than this record. FilesystemObjectStore.open_object pairs a record
        with a handle on its own payload.

        Raises:
            FileNotFoundError: If no data file is attached or it was removed.
        """
        if self.data_file is None:
            raise FileNotFoundError(f"No data file attached to {self.name!r}")
        return self.data_file.read_bytes()
