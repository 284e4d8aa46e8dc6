"""KMS key registry for simulated server-side encryption.

Holds the key references that uploads may name. Nothing is ever encrypted:
the registry only lets the object store reject unknown key ids before any
data is written.

Keys are registered by ARN (arn:aws:kms:<region>:<account>:key/<key-id>) or
by bare key id. Lookups accept the full ARN of a registered key or its bare
key id.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterable

from s3emu.storage.errors import KmsKeyNotFoundError

logger = logging.getLogger(__name__)

KEY_REF_PATTERN = re.compile(r"^[^\s]{1,2048}$")

_ARN_KEY_MARKER = ":key/"


def _key_id_of(key_ref: str) -> str:
    """Return the bare key id of an ARN, or key_ref itself."""
    return key_ref.rsplit("/", 1)[-1]


class KmsKeyRegistry:
    """Thread-safe in-memory registry of known KMS key references."""

    def __init__(self, key_refs: Iterable[str] = ()) -> None:
        self._keys: dict[str, str] = {}
        self._lock = threading.Lock()
        for key_ref in key_refs:
            self.register(key_ref)

    def register(self, key_ref: str) -> None:
        """Register a key by ARN or bare id.

        Raises:
            ValueError: If key_ref is empty or contains whitespace.
        """
        if not KEY_REF_PATTERN.match(key_ref):
            raise ValueError(f"Invalid KMS key reference: {key_ref!r}")
        with self._lock:
            self._keys[_key_id_of(key_ref)] = key_ref
        logger.debug("Registered KMS key ref (length=%d)", len(key_ref))

    def unregister(self, key_ref: str) -> bool:
        """Remove a key. Returns False if it was not registered."""
        with self._lock:
            key_id = _key_id_of(key_ref)
            stored = self._keys.get(key_id)
            if stored is None or (_ARN_KEY_MARKER in key_ref and stored != key_ref):
                return False
            del self._keys[key_id]
            return True

    def is_registered(self, key_ref: str) -> bool:
        """Check whether an ARN or bare key id refers to a registered key."""
        with self._lock:
            if _ARN_KEY_MARKER in key_ref:
                return key_ref in self._keys.values()
            return key_ref in self._keys

    def validate(self, key_ref: str) -> None:
        """Fail closed on an unknown key.

        Raises:
            KmsKeyNotFoundError: If key_ref is not registered.
        """
        if not self.is_registered(key_ref):
            raise KmsKeyNotFoundError(key_ref)

    def key_refs(self) -> list[str]:
        """Return registered key references, sorted."""
        with self._lock:
            return sorted(self._keys.values())

    def clear(self) -> None:
        """Remove all keys (for testing)."""
        with self._lock:
            self._keys.clear()
