"""
Cache key derivation.

A key is ``cache/`` + ``<prefix>/`` + ``<variant>`` + ``.<suffix>`` +
``.cache``, with absent components dropped. The variant is normally
the git branch, so every branch gets its own cache under one prefix.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .git import current_branch_name

logger = logging.getLogger("cache_s3.keys")

KEY_ROOT = "cache/"
KEY_EXTENSION = ".cache"


class CacheKey(BaseModel):
    """Immutable identity of one cache object.

    Two keys are equal iff prefix, variant and suffix are all equal.
    """

    model_config = ConfigDict(frozen=True)

    prefix: Optional[str] = None
    variant: Optional[str] = None
    suffix: Optional[str] = None

    @classmethod
    def derive(
        cls,
        prefix: Optional[str] = None,
        variant: Optional[str] = None,
        suffix: Optional[str] = None,
    ) -> "CacheKey":
        """Build a key. Empty strings count as absent."""
        return cls(prefix=prefix or None, variant=variant or None, suffix=suffix or None)

    @property
    def object_key(self) -> str:
        """The opaque identifier used in the object store."""
        parts = [KEY_ROOT]
        if self.prefix:
            parts.append(f"{self.prefix}/")
        parts.append(self.variant or "")
        if self.suffix:
            parts.append(f".{self.suffix}")
        parts.append(KEY_EXTENSION)
        return "".join(parts)

    def with_variant(self, variant: Optional[str]) -> "CacheKey":
        """Same prefix and suffix, different variant."""
        return CacheKey.derive(self.prefix, variant, self.suffix)

    def with_suffix(self, suffix: Optional[str]) -> "CacheKey":
        """Same prefix and variant, different suffix."""
        return CacheKey.derive(self.prefix, self.variant, suffix)

    def __str__(self) -> str:
        return self.object_key


def resolve_variant(
    override: Optional[str] = None,
    git_dir: Optional[Path] = None,
) -> Optional[str]:
    """Pick the variant for a key.

    An explicit override wins. Otherwise the current git branch is used;
    if that lookup fails the variant is simply absent.

    Args:
        override: Explicitly supplied branch or variant name.
        git_dir: Repository to query for its current branch.

    Returns:
        The variant name, or None.
    """
    if override:
        return override
    branch = current_branch_name(git_dir)
    if branch is None:
        logger.warning(
            "Could not determine git branch, using key without a branch name"
        )
    return branch


def base_key(key: CacheKey, base_branch: Optional[str]) -> Optional[CacheKey]:
    """Fallback key for ``key`` on the base branch, or None.

    Returns None when no base branch is given or it equals the key's own
    variant, since restoring the same object twice gains nothing.
    """
    if not base_branch or base_branch == key.variant:
        return None
    return key.with_variant(base_branch)
