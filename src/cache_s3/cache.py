"""
Cache store -- save, restore and clear one cache object.

    save     ->  resolve hash -> pack + compress + hash -> upload with metadata
    restore  ->  exists? -> read metadata -> download + hash -> verify -> unpack
    clear    ->  delete

Archives are spooled through a temporary file so memory stays bounded
no matter how large the cache is, while the digest is computed over
exactly the compressed bytes that are stored.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from contextlib import closing
from pathlib import Path
from typing import Optional, Sequence

from .archive import HashingReader, HashingWriter, pack, unpack
from .errors import CorruptMetadataError, IntegrityError, ObjectNotFoundError
from .hashing import HashAlgorithm, HashRegistry, default_registry
from .keys import CacheKey
from .models import ArchiveMetadata, CompressionScheme
from .storage import ObjectStore

logger = logging.getLogger("cache_s3.cache")

SPOOL_MAX_MEMORY = 16 * 1024 * 1024


class CacheStore:
    """Moves cache archives between the local filesystem and an object store."""

    def __init__(
        self,
        store: ObjectStore,
        registry: Optional[HashRegistry] = None,
        spool_dir: Optional[Path] = None,
    ):
        """Initialize the cache store.

        Args:
            store: Object store holding the archives.
            registry: Hash algorithms to accept. Defaults to the full registry.
            spool_dir: Where temporary archives spill to disk.
        """
        self.store = store
        self.registry = registry or default_registry
        self.spool_dir = spool_dir

    def _spool(self):
        return tempfile.SpooledTemporaryFile(
            max_size=SPOOL_MAX_MEMORY,
            dir=str(self.spool_dir) if self.spool_dir else None,
        )

    def save(
        self,
        paths: Sequence[Path],
        hash_name: str,
        compression: CompressionScheme,
        key: CacheKey,
    ) -> bool:
        """Archive ``paths`` and upload them under ``key``.

        The hash name is validated before anything is packed or uploaded.
        If the stored object already has the same checksum the upload is
        skipped.

        Args:
            paths: Files and directories to cache.
            hash_name: Hash algorithm name, any case.
            compression: Compression scheme for the archive.
            key: Destination key.

        Returns:
            True if an upload happened, False if the remote was unchanged.

        Raises:
            UnsupportedHashError: Unknown hash algorithm.
            PackError: A local path could not be archived.
            StoreError: Object store failure.
        """
        algorithm = self.registry.resolve(hash_name)
        object_key = key.object_key

        with self._spool() as spool:
            writer = HashingWriter(spool, algorithm.new())
            pack(paths, compression, writer)
            checksum = writer.hasher.hexdigest()
            metadata = ArchiveMetadata(
                hash_algorithm=algorithm.name,
                compression=compression.to_name(),
                checksum=checksum,
            )

            remote = self.store.head(object_key)
            if remote is not None and ArchiveMetadata.from_store(remote) == metadata:
                logger.info(
                    "No change to cache was detected, skipping upload of %s", object_key
                )
                return False

            spool.seek(0)
            logger.info(
                "Uploading %s to %s (%d bytes, %s %s)",
                object_key,
                self.store.name,
                writer.bytes_written,
                algorithm.name,
                checksum,
            )
            self.store.put(object_key, spool, metadata.to_store())

        logger.info("Saved cache %s", object_key)
        return True

    def _interpret(
        self, object_key: str, raw: dict[str, str]
    ) -> tuple[ArchiveMetadata, HashAlgorithm, CompressionScheme]:
        metadata = ArchiveMetadata.from_store(raw)
        if metadata is None:
            raise CorruptMetadataError(
                f"Cache {object_key} is missing hash or compression metadata: {raw}"
            )
        compression = CompressionScheme.from_name(metadata.compression)
        if compression is None:
            raise CorruptMetadataError(
                f"Cache {object_key} uses unrecognized compression '{metadata.compression}'"
            )
        algorithm = self.registry.find(metadata.hash_algorithm)
        if algorithm is None:
            raise CorruptMetadataError(
                f"Cache {object_key} uses unrecognized hash '{metadata.hash_algorithm}'"
            )
        return metadata, algorithm, compression

    def restore(self, key: CacheKey, unpack_root: Optional[Path] = None) -> bool:
        """Download the cache under ``key`` and unpack it.

        The decoder is chosen from the object's own metadata, not from
        the caller's current defaults.

        Args:
            key: Key to restore from.
            unpack_root: Extraction root, default the filesystem root.

        Returns:
            True if a cache was restored, False if none exists.

        Raises:
            CorruptMetadataError: Object exists but cannot be interpreted.
            IntegrityError: Downloaded bytes do not match the checksum.
            StoreError: Object store failure.
            UnpackError: Local extraction failure.
        """
        object_key = key.object_key
        if not self.store.exists(object_key):
            logger.info("No cache found at %s", object_key)
            return False

        try:
            body, raw = self.store.get(object_key)
        except ObjectNotFoundError:
            logger.info("Cache %s disappeared before download", object_key)
            return False

        with closing(body):
            metadata, algorithm, compression = self._interpret(object_key, raw)
            with self._spool() as spool:
                reader = HashingReader(body, algorithm.new())
                shutil.copyfileobj(reader, spool)
                checksum = reader.hasher.hexdigest()
                if metadata.checksum and metadata.checksum != checksum:
                    raise IntegrityError(
                        f"Cache {object_key} checksum mismatch: "
                        f"expected {metadata.checksum}, got {checksum}"
                    )
                logger.debug(
                    "Downloaded %s (%d bytes, %s verified=%s)",
                    object_key,
                    reader.bytes_read,
                    algorithm.name,
                    bool(metadata.checksum),
                )
                spool.seek(0)
                unpack(spool, compression, unpack_root)

        logger.info("Restored cache %s", object_key)
        return True

    def exists(self, key: CacheKey) -> bool:
        """Whether a cache object exists under ``key``."""
        return self.store.exists(key.object_key)

    def delete(self, key: CacheKey) -> bool:
        """Remove the cache under ``key``.

        Returns:
            True if something was deleted, False if it was already absent.
        """
        object_key = key.object_key
        if not self.store.exists(object_key):
            logger.info("No cache to clear at %s", object_key)
            return False
        self.store.delete(object_key)
        logger.info("Cleared cache %s", object_key)
        return True
