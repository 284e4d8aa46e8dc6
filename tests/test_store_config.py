"""Tests for storage engine configuration from environment variables."""

from __future__ import annotations

from pathlib import Path

import pytest

from s3emu.config import (
    ENV_INITIAL_BUCKETS,
    ENV_RETAIN_FILES_ON_EXIT,
    ENV_ROOT_DIR,
    ENV_VALID_KMS_KEYS,
    StoreConfig,
    StoreConfigError,
    load_store_config,
)


class TestLoadStoreConfig:
    """Tests for load_store_config()."""

    def test_defaults(self) -> None:
        """With no variables set, defaults apply."""
        config = load_store_config()

        assert config.root_dir is None
        assert config.initial_buckets == ()
        assert config.valid_kms_keys == ()
        assert config.retain_files_on_exit is False

    def test_reads_all_variables(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """All variables are parsed; list entries are trimmed."""
        monkeypatch.setenv(ENV_ROOT_DIR, str(tmp_path))
        monkeypatch.setenv(ENV_INITIAL_BUCKETS, " alpha, beta ,,")
        monkeypatch.setenv(ENV_VALID_KMS_KEYS, "arn:aws:kms:us-east-1:1:key/k1,k2")
        monkeypatch.setenv(ENV_RETAIN_FILES_ON_EXIT, "true")

        config = load_store_config()

        assert config.root_dir == tmp_path
        assert config.initial_buckets == ("alpha", "beta")
        assert config.valid_kms_keys == ("arn:aws:kms:us-east-1:1:key/k1", "k2")
        assert config.retain_files_on_exit is True

    def test_invalid_boolean_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Unrecognised boolean values are rejected."""
        monkeypatch.setenv(ENV_RETAIN_FILES_ON_EXIT, "sometimes")

        with pytest.raises(StoreConfigError, match=ENV_RETAIN_FILES_ON_EXIT):
            load_store_config()

    def test_invalid_bucket_name_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Bucket names containing "/" are rejected."""
        monkeypatch.setenv(ENV_INITIAL_BUCKETS, "good,bad/name")

        with pytest.raises(StoreConfigError, match=ENV_INITIAL_BUCKETS):
            load_store_config()

    def test_root_dir_must_be_directory(self, tmp_path: Path) -> None:
        """A root that is an existing file is rejected."""
        file_path = tmp_path / "file"
        file_path.write_text("x")

        with pytest.raises(StoreConfigError):
            StoreConfig(root_dir=file_path)

    def test_config_is_frozen(self) -> None:
        """StoreConfig cannot be mutated."""
        config = StoreConfig()

        with pytest.raises(AttributeError):
            config.retain_files_on_exit = True  # type: ignore[misc]


class TestEngineFromConfig:
    """Tests for building an engine from configuration."""

    def test_from_config_applies_settings(self, tmp_path: Path) -> None:
        """Initial buckets and keys are created; the root is retained on close."""
        from s3emu.storage.engine import StorageEngine

        config = StoreConfig(
            root_dir=tmp_path / "root",
            initial_buckets=("alpha", "beta"),
            valid_kms_keys=("key-1",),
            retain_files_on_exit=True,
        )

        with StorageEngine.from_config(config) as engine:
            assert [b.name for b in engine.buckets.list_buckets()] == ["alpha", "beta"]
            assert engine.kms.is_registered("key-1")

        assert (tmp_path / "root" / "alpha").is_dir()

    def test_close_removes_root_by_default(self, tmp_path: Path) -> None:
        """Without retention the root directory is removed on close."""
        from s3emu.storage.engine import StorageEngine

        root = tmp_path / "root"
        engine = StorageEngine(root, initial_buckets=["alpha"])
        engine.objects.put_object("alpha", "key", None, None, b"data")

        engine.close()
        engine.close()

        assert not root.exists()

    def test_default_root_is_temp_dir(self) -> None:
        """With no root a fresh temp directory is used and removed on close."""
        from s3emu.storage.engine import StorageEngine

        with StorageEngine() as engine:
            root = engine.root_dir
            assert root.is_dir()
            assert root.name.startswith("s3emu-")

        assert not root.exists()
