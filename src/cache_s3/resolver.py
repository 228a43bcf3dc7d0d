"""
Branch fallback for restores.

A feature branch's first CI run has no cache of its own. Rather than
building from scratch it inherits the base branch's cache. Only a
confirmed absence triggers the fallback: corrupt objects and store
failures propagate unchanged.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .cache import CacheStore
from .keys import CacheKey

logger = logging.getLogger("cache_s3.resolver")


def restore_with_fallback(
    cache: CacheStore,
    primary: CacheKey,
    base: Optional[CacheKey] = None,
    unpack_root: Optional[Path] = None,
) -> bool:
    """Restore ``primary``, falling back to ``base`` if it does not exist.

    Args:
        cache: Cache store to restore through.
        primary: Branch-specific key, tried first.
        base: Base-branch key, tried only when ``primary`` is absent.
        unpack_root: Extraction root for whichever key is restored.

    Returns:
        True if either key was restored.

    Raises:
        CorruptMetadataError: From the first key found to be corrupt.
        StoreError: On object store failures.
        UnpackError: On local extraction failures.
    """
    if cache.restore(primary, unpack_root):
        return True
    if base is None:
        return False

    logger.info("Falling back to base branch cache %s", base.object_key)
    return cache.restore(base, unpack_root)
