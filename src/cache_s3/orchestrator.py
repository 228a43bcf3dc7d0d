"""
Orchestrator -- maps actions onto key derivation and the cache store.

Every action is a value created by the caller and consumed once. The
stack variants are expanded into a plain Save/Restore/Clear plus a
suffix, so each variant derives its own key from the same prefix and
branch, differing only in the suffix.

Failures come back as an ActionResult; turning them into an exit code
is the caller's business.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .cache import CacheStore
from .config import CommonArgs
from .errors import (
    CacheError,
    CorruptMetadataError,
    PackError,
    StoreError,
    UnpackError,
    UnsupportedHashError,
)
from .keys import CacheKey, base_key, resolve_variant
from .models import CompressionScheme
from .resolver import restore_with_fallback
from .stack import get_stack_global_paths, get_stack_work_paths, upgrade_stack

logger = logging.getLogger("cache_s3.orchestrator")

STACK_SUFFIX = "stack"
STACK_WORK_SUFFIX = f"{STACK_SUFFIX}-work"


class Action(BaseModel):
    """Base class for all cache actions."""

    model_config = ConfigDict(frozen=True)


class Save(Action):
    paths: tuple[Path, ...] = ()
    hash_algorithm: str = "sha256"
    compression: CompressionScheme = CompressionScheme.GZIP


class SaveStack(Save):
    """Save plus the global stack root, under the ``stack`` suffix."""

    stack_root: Optional[Path] = None


class SaveStackWork(SaveStack):
    """Save plus every package's work directory, under ``stack-work``."""

    stack_yaml: Optional[Path] = None
    work_dir: Optional[Path] = None


class Restore(Action):
    base_branch: Optional[str] = None
    dest: Optional[Path] = None


class RestoreStack(Restore):
    upgrade: bool = False
    stack_root: Optional[Path] = None


class RestoreStackWork(Restore):
    pass


class Clear(Action):
    pass


class ClearStack(Clear):
    pass


class ClearStackWork(Clear):
    pass


@dataclass
class ActionResult:
    """Outcome of one action.

    Attributes:
        action: Name of the action that ran.
        key: Object key the action addressed.
        ok: False if the action failed.
        changed: Whether the remote or local state changed: uploaded
            for saves, restored for restores, deleted for clears.
        error: The failure, when ``ok`` is False.
    """

    action: str
    key: str
    ok: bool = True
    changed: bool = False
    error: Optional[CacheError] = None


def _plain_save(action: Save, extra: list[Path]) -> Save:
    return Save(
        paths=tuple(action.paths) + tuple(extra),
        hash_algorithm=action.hash_algorithm,
        compression=action.compression,
    )


def _plain_restore(action: Restore) -> Restore:
    return Restore(base_branch=action.base_branch, dest=action.dest)


def expand_action(common: CommonArgs, action: Action) -> tuple[CommonArgs, Action]:
    """Reduce a variant action to a plain one plus its suffix.

    Plain actions are returned unchanged. Variants discover their extra
    paths here.

    Returns:
        The settings to derive the key from and the plain action.
    """
    if isinstance(action, SaveStackWork):
        extra = get_stack_work_paths(action.stack_yaml, action.work_dir)
        return common.model_copy(update={"suffix": STACK_WORK_SUFFIX}), _plain_save(action, extra)
    if isinstance(action, SaveStack):
        extra = get_stack_global_paths(action.stack_root)
        return common.model_copy(update={"suffix": STACK_SUFFIX}), _plain_save(action, extra)
    if isinstance(action, RestoreStackWork):
        return common.model_copy(update={"suffix": STACK_WORK_SUFFIX}), _plain_restore(action)
    if isinstance(action, RestoreStack):
        return common.model_copy(update={"suffix": STACK_SUFFIX}), _plain_restore(action)
    if isinstance(action, ClearStackWork):
        return common.model_copy(update={"suffix": STACK_WORK_SUFFIX}), Clear()
    if isinstance(action, ClearStack):
        return common.model_copy(update={"suffix": STACK_SUFFIX}), Clear()
    return common, action


def derive_key(common: CommonArgs) -> CacheKey:
    """Key for the given settings, resolving the branch if not supplied."""
    variant = resolve_variant(common.git_branch, common.git_dir)
    return CacheKey.derive(common.prefix, variant, common.suffix)


class Orchestrator:
    """Runs cache actions against one cache store."""

    def __init__(self, cache: CacheStore):
        self.cache = cache

    def run(self, common: CommonArgs, action: Action) -> ActionResult:
        """Execute ``action`` and report its outcome.

        Args:
            common: Invocation settings.
            action: Action to run.

        Returns:
            The action's result. Never raises for cache failures.
        """
        name = type(action).__name__
        if isinstance(action, RestoreStack) and action.upgrade:
            upgrade_stack(action.stack_root)

        result = ActionResult(action=name, key="")
        try:
            common, plain = expand_action(common, action)
            key = derive_key(common)
            result.key = key.object_key
            if isinstance(plain, Save):
                result.changed = self.cache.save(
                    list(plain.paths), plain.hash_algorithm, plain.compression, key
                )
            elif isinstance(plain, Restore):
                result.changed = restore_with_fallback(
                    self.cache, key, base_key(key, plain.base_branch), plain.dest
                )
            elif isinstance(plain, Clear):
                result.changed = self.cache.delete(key)
            else:
                raise TypeError(f"Unknown action: {name}")
        except UnsupportedHashError as exc:
            logger.error("%s", exc)
            result.ok, result.error = False, exc
        except CorruptMetadataError as exc:
            logger.error("Corrupt cache: %s", exc)
            result.ok, result.error = False, exc
        except StoreError as exc:
            logger.error("Object store error: %s", exc)
            result.ok, result.error = False, exc
        except UnpackError as exc:
            logger.error("Unpack failed: %s", exc)
            result.ok, result.error = False, exc
        except PackError as exc:
            logger.error("Pack failed: %s", exc)
            result.ok, result.error = False, exc
        except CacheError as exc:
            logger.error("Cache action failed: %s", exc)
            result.ok, result.error = False, exc
        return result
