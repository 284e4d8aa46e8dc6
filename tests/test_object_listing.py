"""Tests for prefix listing of objects."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pytest

from s3emu.storage.listing import list_objects


@pytest.fixture
def populated(store: Any, bucket: str) -> str:
    for key in ("a/b/c", "a/bee/c", "a/b", "foo", "fo/o", "zeta"):
        store.put_object(bucket, key, None, None, key.encode())
    return bucket


class TestPrefixListing:
    """Tests for get_objects / list_objects."""

    @pytest.mark.parametrize("prefix", [None, ""])
    def test_no_prefix_lists_everything_sorted(
        self, store: Any, populated: str, prefix: str | None
    ) -> None:
        """A missing or empty prefix matches every key, sorted by key."""
        names = [o.name for o in store.get_objects(populated, prefix)]

        assert names == ["a/b", "a/b/c", "a/bee/c", "fo/o", "foo", "zeta"]

    def test_prefix_is_plain_string_match(self, store: Any, populated: str) -> None:
        """"a/b" matches keys in a/b, a/b/ and a/bee."""
        names = [o.name for o in store.get_objects(populated, "a/b")]

        assert names == ["a/b", "a/b/c", "a/bee/c"]

    def test_prefix_with_delimiter(self, store: Any, populated: str) -> None:
        """A trailing slash restricts to keys below that directory."""
        names = [o.name for o in store.get_objects(populated, "a/b/")]

        assert names == ["a/b/c"]

    def test_prefix_matches_partial_segment(self, store: Any, populated: str) -> None:
        names = [o.name for o in store.get_objects(populated, "fo")]

        assert names == ["fo/o", "foo"]

    def test_no_match(self, store: Any, populated: str) -> None:
        assert store.get_objects(populated, "nothing") == []

    def test_missing_bucket_lists_nothing(self, store: Any) -> None:
        assert store.get_objects("no-such-bucket", None) == []

    def test_listed_objects_have_data_attached(self, store: Any, populated: str) -> None:
        """Listed records can read their payload."""
        [obj] = store.get_objects(populated, "zeta")

        assert obj.read_bytes() == b"zeta"
        assert obj.size == 4

    def test_leading_slash_keys_keep_name(self, store: Any, bucket: str) -> None:
        """Keys stored with a leading slash match prefixes that include it."""
        store.put_object(bucket, "/app/config/x", None, None, b"cfg")

        assert [o.name for o in store.get_objects(bucket, "/app")] == ["/app/config/x"]
        assert store.get_objects(bucket, "app") == []


class TestListingSkips:
    """Tests for records that never appear in listings."""

    def test_upload_dirs_not_listed(self, store: Any, uploads: Any, bucket: str) -> None:
        """In-progress uploads hold no object record."""
        from s3emu.models import Owner

        uploads.prepare_upload(bucket, "pending", None, None, "u1", Owner(id=1), Owner(id=1))
        uploads.put_part(bucket, "pending", "u1", 1, b"part")

        assert store.get_objects(bucket, None) == []

    def test_corrupt_record_is_skipped(
        self,
        store: Any,
        bucket: str,
        temp_storage_dir: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Unreadable metadata is logged and left out."""
        store.put_object(bucket, "good", None, None, b"ok")
        store.put_object(bucket, "bad", None, None, b"ok")
        (temp_storage_dir / bucket / "bad" / "metadata").write_text("{not json", encoding="utf-8")

        with caplog.at_level(logging.WARNING, logger="s3emu.storage.listing"):
            names = [o.name for o in list_objects(temp_storage_dir / bucket, bucket, None)]

        assert names == ["good"]
        assert "Skipping unreadable object record" in caplog.text
        assert store.get_object(bucket, "bad") is None
