"""
Error taxonomy for cache operations.

"Not found" is deliberately absent: a missing cache is an expected
outcome and travels as a boolean, never as an exception.
"""

from __future__ import annotations

from typing import Iterable


class CacheError(Exception):
    """Base class for every failure raised by the cache core."""


class UnsupportedHashError(CacheError):
    """Raised when a hash algorithm name is not in the registry.

    Attributes:
        name: The name that was requested.
        valid_names: Every canonical name the registry knows about.
    """

    def __init__(self, name: str, valid_names: Iterable[str]):
        self.name = name
        self.valid_names = list(valid_names)
        super().__init__(
            f"Hash algorithm '{name}' is not supported, use one of these instead: "
            + ", ".join(self.valid_names)
        )


class CorruptMetadataError(CacheError):
    """Raised when a stored object exists but cannot be safely interpreted."""


class IntegrityError(CorruptMetadataError):
    """Raised when downloaded bytes do not match the stored checksum."""


class StoreError(CacheError):
    """Raised when the object store fails (transport, auth, permissions)."""


class ObjectNotFoundError(StoreError):
    """Raised when an object disappears between the existence check and download."""


class UnpackError(CacheError):
    """Raised when extracting an archive onto the local filesystem fails."""


class PackError(CacheError):
    """Raised when reading local paths into an archive fails."""
