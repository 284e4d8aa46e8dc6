"""Storage engine configuration.

Configuration is read from environment variables into an immutable
StoreConfig:

    S3EMU_ROOT_DIR: Storage root directory (default: a new temp directory)
    S3EMU_INITIAL_BUCKETS: Comma-separated bucket names to create at startup
    S3EMU_VALID_KMS_KEYS: Comma-separated KMS key ARNs or ids to register
    S3EMU_RETAIN_FILES_ON_EXIT: "1"/"true"/"yes" keeps the root on close()
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

ENV_ROOT_DIR: Final[str] = "S3EMU_ROOT_DIR"
ENV_INITIAL_BUCKETS: Final[str] = "S3EMU_INITIAL_BUCKETS"
ENV_VALID_KMS_KEYS: Final[str] = "S3EMU_VALID_KMS_KEYS"
ENV_RETAIN_FILES_ON_EXIT: Final[str] = "S3EMU_RETAIN_FILES_ON_EXIT"

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "no", ""})


class StoreConfigError(Exception):
    """Raised when storage configuration is invalid."""


@dataclass(frozen=True)
class StoreConfig:
    """Storage engine configuration (immutable).

    Attributes:
        root_dir: Storage root. None means a fresh temp directory.
        initial_buckets: Buckets created when the engine starts.
        valid_kms_keys: KMS key references registered when the engine starts.
        retain_files_on_exit: Keep the root directory when the engine closes.
    """

    root_dir: Path | None = None
    initial_buckets: tuple[str, ...] = field(default_factory=tuple)
    valid_kms_keys: tuple[str, ...] = field(default_factory=tuple)
    retain_files_on_exit: bool = False

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.root_dir is not None and self.root_dir.exists() and not self.root_dir.is_dir():
            raise StoreConfigError(f"{ENV_ROOT_DIR} is not a directory: {self.root_dir}")
        for name in self.initial_buckets:
            if "/" in name or name in (".", ".."):
                raise StoreConfigError(f"{ENV_INITIAL_BUCKETS} contains invalid name {name!r}")


def _parse_list(env_var: str) -> tuple[str, ...]:
    raw = os.environ.get(env_var, "")
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _parse_bool(env_var: str, default: bool) -> bool:
    raw = os.environ.get(env_var)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return default
    raise StoreConfigError(f"{env_var} must be a boolean (1/0, true/false, yes/no), got '{raw}'")


def load_store_config() -> StoreConfig:
    """Load storage configuration from environment variables.

    Returns:
        StoreConfig with validated values.

    Raises:
        StoreConfigError: If any value is invalid.
    """
    root_raw = os.environ.get(ENV_ROOT_DIR, "").strip()
    return StoreConfig(
        root_dir=Path(root_raw) if root_raw else None,
        initial_buckets=_parse_list(ENV_INITIAL_BUCKETS),
        valid_kms_keys=_parse_list(ENV_VALID_KMS_KEYS),
        retain_files_on_exit=_parse_bool(ENV_RETAIN_FILES_ON_EXIT, False),
    )
