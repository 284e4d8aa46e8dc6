"""Prefix listing over a bucket's directory tree."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from s3emu.models import StoredObject, Tag
from s3emu.storage.layout import DATA_FILE, METADATA_FILE, TAGS_FILE

logger = logging.getLogger(__name__)


def load_tags(obj_dir: Path) -> list[Tag]:
    """Read the tag list stored beside an object, if any."""
    tags_file = obj_dir / TAGS_FILE
    try:
        raw = json.loads(tags_file.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return []
    return [Tag.model_validate(item) for item in raw]


def load_object(obj_dir: Path) -> StoredObject | None:
    """Load the metadata record in obj_dir, with data file and tags attached.

    Returns:
        The record, or None if obj_dir holds no object.

    Raises:
        ValueError: If the record or tag list is corrupt.
    """
    meta_file = obj_dir / METADATA_FILE
    try:
        raw = meta_file.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None

    stored = StoredObject.model_validate_json(raw)
    return stored.model_copy(update={"data_file": obj_dir / DATA_FILE, "tags": load_tags(obj_dir)})


def list_objects(bucket_dir: Path, bucket_name: str, prefix: str | None) -> list[StoredObject]:
    """Return every object in a bucket whose key starts with prefix.

    Args:
        bucket_dir: Root directory of the bucket.
        bucket_name: Bucket name (for logging only).
        prefix: Plain string prefix; None or "" matches every key.

    Returns:
        Matching objects sorted by key.
    """
    if not bucket_dir.is_dir():
        return []

    results: list[StoredObject] = []
    for dirpath, _dirnames, filenames in os.walk(bucket_dir):
        if METADATA_FILE not in filenames:
            continue
        obj_dir = Path(dirpath)
        try:
            stored = load_object(obj_dir)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(
                "Skipping unreadable object record: bucket=%s dir=%s error=%s",
                bucket_name,
                obj_dir.relative_to(bucket_dir),
                e,
            )
            continue
        if stored is None:
            continue
        if prefix and not stored.name.startswith(prefix):
            continue
        results.append(stored)

    results.sort(key=lambda obj: obj.name)
    logger.debug(
        "Listed objects: bucket=%s prefix=%r count=%d", bucket_name, prefix, len(results)
    )
    return results
