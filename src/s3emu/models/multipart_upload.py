"""Multipart upload models.

MultipartUpload is held in the engine's in-memory upload index while the
upload is prepared. Part describes both a stored part (from list_parts) and
an entry of a completion manifest, where only part_number is required.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

MIN_PART_NUMBER = 1
MAX_PART_NUMBER = 10000


class Owner(BaseModel):
    """Owner or initiator identity of an upload."""

    model_config = ConfigDict(frozen=True)

    id: int | str
    display_name: str = ""


class MultipartUpload(BaseModel):
    """An in-progress multipart upload.

    Attributes:
        upload_id: Opaque upload token.
        bucket_name: Bucket the upload targets.
        key: Object key the upload will produce.
        initiated: When prepare_upload was called.
        content_type: Content type for the completed object.
        content_encoding: Content encoding for the completed object.
        owner: Owner identity.
        initiator: Initiator identity.
        kms_encryption: Encryption algorithm for the completed object.
        kms_key_id: Encryption key id for the completed object.
        user_metadata: User metadata for the completed object.
    """

    model_config = ConfigDict(frozen=True)

    upload_id: str = Field(..., min_length=1)
    bucket_name: str
    key: str
    initiated: datetime
    content_type: str | None = None
    content_encoding: str | None = None
    owner: Owner | None = None
    initiator: Owner | None = None
    kms_encryption: str | None = None
    kms_key_id: str | None = None
    user_metadata: dict[str, str] = Field(default_factory=dict)


class Part(BaseModel):
    """One numbered part of a multipart upload."""

    model_config = ConfigDict(frozen=True)

    part_number: int = Field(..., ge=MIN_PART_NUMBER, le=MAX_PART_NUMBER)
    etag: str | None = None
    size: int | None = Field(default=None, ge=0)
    last_modified: datetime | None = None
