"""Shared test fixtures for cache-s3."""

from __future__ import annotations

from pathlib import Path

import pytest

from cache_s3.cache import CacheStore
from cache_s3.storage import LocalObjectStore


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    """Provide a small build tree with nested files and an executable."""
    root = tmp_path / "project"
    (root / "node_modules" / "left-pad").mkdir(parents=True)
    (root / "node_modules" / "left-pad" / "index.js").write_text("module.exports = 1;\n")
    (root / "node_modules" / "left-pad" / "package.json").write_text('{"name": "left-pad"}')
    (root / "dist").mkdir()
    (root / "dist" / "app.bin").write_bytes(bytes(range(256)) * 64)
    script = root / "dist" / "run.sh"
    script.write_text("#!/bin/sh\necho hi\n")
    script.chmod(0o755)
    return root


@pytest.fixture
def local_store(tmp_path: Path) -> LocalObjectStore:
    """Provide a directory-backed object store."""
    return LocalObjectStore(tmp_path / "bucket")


@pytest.fixture
def cache(local_store: LocalObjectStore, tmp_path: Path) -> CacheStore:
    """Provide a cache store over the local object store."""
    spool = tmp_path / "spool"
    spool.mkdir()
    return CacheStore(local_store, spool_dir=spool)
