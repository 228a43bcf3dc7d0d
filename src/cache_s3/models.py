"""
Cache data models -- compression schemes and archive metadata.
"""

from __future__ import annotations

from enum import Enum
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

HASH_META_KEY = "hash"
COMPRESSION_META_KEY = "compression"
CHECKSUM_META_KEY = "checksum"


class CompressionScheme(str, Enum):
    """Stream compression applied to the tar archive."""

    GZIP = "gzip"
    LZ4 = "lz4"

    def to_name(self) -> str:
        """Canonical lowercase name, used as identifier and metadata value."""
        return self.value

    @classmethod
    def from_name(cls, name: str) -> Optional["CompressionScheme"]:
        """Inverse of ``to_name``. Returns None for unrecognized names."""
        try:
            return cls(name.lower())
        except ValueError:
            return None


class ArchiveMetadata(BaseModel):
    """Metadata attached to an uploaded cache object.

    Only ``hash`` and ``compression`` are required to decode an archive.
    ``checksum`` is optional so objects without it stay restorable, and
    unknown keys in stored metadata are ignored.
    """

    model_config = ConfigDict(frozen=True)

    hash_algorithm: str
    compression: str
    checksum: Optional[str] = None

    def to_store(self) -> dict[str, str]:
        """Render as the string mapping handed to the object store."""
        data = {
            HASH_META_KEY: self.hash_algorithm,
            COMPRESSION_META_KEY: self.compression,
        }
        if self.checksum:
            data[CHECKSUM_META_KEY] = self.checksum
        return data

    @classmethod
    def from_store(cls, metadata: Mapping[str, str]) -> Optional["ArchiveMetadata"]:
        """Read metadata back from the store.

        Keys are matched case-insensitively since some stores normalize
        header casing.

        Returns:
            The parsed metadata, or None if a required key is missing.
        """
        lowered = {k.lower(): v for k, v in metadata.items()}
        hash_name = lowered.get(HASH_META_KEY)
        compression = lowered.get(COMPRESSION_META_KEY)
        if not hash_name or not compression:
            return None
        return cls(
            hash_algorithm=hash_name,
            compression=compression,
            checksum=lowered.get(CHECKSUM_META_KEY) or None,
        )
