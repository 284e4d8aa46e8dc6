"""Pytest configuration and fixtures for s3emu tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

TEST_KMS_KEY_ID = "valid-test-key-id"
TEST_KMS_KEY_ARN = f"arn:aws:kms:us-east-1:1234567890:key/{TEST_KMS_KEY_ID}"


@pytest.fixture(autouse=True)
def clear_s3emu_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test without s3emu configuration from the environment.

    Tests that need a variable set it with monkeypatch.
    """
    for var in (
        "S3EMU_ROOT_DIR",
        "S3EMU_INITIAL_BUCKETS",
        "S3EMU_VALID_KMS_KEYS",
        "S3EMU_RETAIN_FILES_ON_EXIT",
        "S3EMU_OTEL_ENABLED",
        "S3EMU_OTEL_TEST_CAPTURE",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def temp_storage_dir() -> Iterator[Path]:
    """Create a temporary directory for storage tests."""
    with tempfile.TemporaryDirectory(prefix="s3emu_test_storage_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def engine(temp_storage_dir: Path) -> Iterator[Any]:
    """Create a StorageEngine rooted in a temp directory with one KMS key."""
    from s3emu.storage.engine import StorageEngine

    with StorageEngine(
        temp_storage_dir,
        kms_keys=[TEST_KMS_KEY_ARN],
        retain_files_on_exit=True,
    ) as storage_engine:
        yield storage_engine


@pytest.fixture
def store(engine: Any) -> Any:
    """The engine's FilesystemObjectStore."""
    return engine.objects


@pytest.fixture
def uploads(engine: Any) -> Any:
    """The engine's MultipartUploadEngine."""
    return engine.uploads


@pytest.fixture
def bucket(engine: Any) -> str:
    """Create and return a test bucket."""
    name = "bucket"
    engine.create_bucket(name)
    return name
