"""Tests for action expansion and dispatch."""

from __future__ import annotations

import io
import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ResponseStreamingError

from cache_s3.cache import CacheStore
from cache_s3.config import CommonArgs
from cache_s3.errors import (
    CacheError,
    CorruptMetadataError,
    PackError,
    StoreError,
    UnsupportedHashError,
)
from cache_s3.models import CompressionScheme
from cache_s3.orchestrator import (
    Clear,
    ClearStack,
    ClearStackWork,
    Orchestrator,
    Restore,
    RestoreStack,
    RestoreStackWork,
    Save,
    SaveStack,
    SaveStackWork,
    derive_key,
    expand_action,
)
from cache_s3.storage import LocalObjectStore, S3ObjectStore

COMMON = CommonArgs(prefix="myproj", git_branch="main")


def _restored(dest: Path, original: Path) -> Path:
    return dest / str(original.absolute()).lstrip(os.sep)


@pytest.fixture
def orchestrator(cache: CacheStore) -> Orchestrator:
    return Orchestrator(cache)


class TestExpandAction:
    """Variants reduce to plain actions plus a suffix."""

    def test_plain_unchanged(self) -> None:
        action = Save(paths=(Path("a"),))
        assert expand_action(COMMON, action) == (COMMON, action)

    def test_save_stack_appends_global_paths(self, tmp_path: Path) -> None:
        action = SaveStack(paths=(Path("dist"),), hash_algorithm="md5", stack_root=tmp_path)
        common, plain = expand_action(COMMON, action)

        assert common.suffix == "stack"
        assert type(plain) is Save
        assert plain.paths == (Path("dist"), tmp_path)
        assert plain.hash_algorithm == "md5"

    def test_save_stack_work_appends_work_dirs(self, tmp_path: Path) -> None:
        stack_yaml = tmp_path / "stack.yaml"
        stack_yaml.write_text("packages: [lib]\n")
        common, plain = expand_action(COMMON, SaveStackWork(stack_yaml=stack_yaml))

        assert common.suffix == "stack-work"
        assert plain.paths == ((tmp_path / "lib" / ".stack-work").resolve(),)

    @pytest.mark.parametrize("action, suffix", [
        (RestoreStack(base_branch="main"), "stack"),
        (RestoreStackWork(base_branch="main"), "stack-work"),
        (ClearStack(), "stack"),
        (ClearStackWork(), "stack-work"),
    ])
    def test_suffixes(self, action, suffix: str) -> None:
        common, plain = expand_action(COMMON, action)
        assert common.suffix == suffix
        assert type(plain) in (Restore, Clear)

    def test_restore_keeps_base_branch(self) -> None:
        _, plain = expand_action(COMMON, RestoreStack(base_branch="develop", upgrade=True))
        assert plain == Restore(base_branch="develop")

    def test_variants_share_prefix_and_branch(self) -> None:
        keys = [
            derive_key(expand_action(COMMON, action)[0])
            for action in (Clear(), ClearStack(), ClearStackWork())
        ]
        assert [k.object_key for k in keys] == [
            "cache/myproj/main.cache",
            "cache/myproj/main.stack.cache",
            "cache/myproj/main.stack-work.cache",
        ]


class TestDeriveKey:
    """Branch discovery during key derivation."""

    def test_git_lookup_when_branch_not_given(self) -> None:
        with patch("cache_s3.keys.current_branch_name", return_value="dev"):
            key = derive_key(CommonArgs(prefix="p"))
        assert key.object_key == "cache/p/dev.cache"

    def test_degenerate_when_git_fails(self) -> None:
        with patch("cache_s3.keys.current_branch_name", return_value=None):
            assert derive_key(CommonArgs()).object_key == "cache/.cache"


class TestOrchestrator:
    """End-to-end dispatch against a local store."""

    def test_save_and_restore(self, orchestrator: Orchestrator, source_tree: Path,
                              tmp_path: Path) -> None:
        saved = orchestrator.run(COMMON, Save(paths=(source_tree / "dist",)))
        assert saved.ok and saved.changed
        assert saved.key == "cache/myproj/main.cache"

        dest = tmp_path / "out"
        restored = orchestrator.run(COMMON, Restore(dest=dest))
        assert restored.ok and restored.changed
        target = source_tree / "dist" / "app.bin"
        assert _restored(dest, target).read_bytes() == target.read_bytes()

    def test_save_stack_key(self, orchestrator: Orchestrator, local_store: LocalObjectStore,
                            source_tree: Path) -> None:
        result = orchestrator.run(COMMON, SaveStack(stack_root=source_tree / "dist"))
        assert result.ok
        assert result.key == "cache/myproj/main.stack.cache"
        assert local_store.exists("cache/myproj/main.stack.cache")

    def test_restore_falls_back_to_base_branch(self, orchestrator: Orchestrator,
                                               source_tree: Path, tmp_path: Path) -> None:
        orchestrator.run(COMMON, Save(paths=(source_tree / "dist",)))

        feature = COMMON.model_copy(update={"git_branch": "feature-x"})
        dest = tmp_path / "out"
        result = orchestrator.run(feature, Restore(base_branch="main", dest=dest))

        assert result.ok and result.changed
        assert result.key == "cache/myproj/feature-x.cache"
        assert _restored(dest, source_tree / "dist" / "run.sh").exists()

    def test_restore_not_found_is_ok(self, orchestrator: Orchestrator, tmp_path: Path) -> None:
        result = orchestrator.run(COMMON, Restore(dest=tmp_path / "out"))
        assert result.ok is True
        assert result.changed is False

    def test_restore_stack_upgrades_first(self, orchestrator: Orchestrator, tmp_path: Path) -> None:
        with patch("cache_s3.orchestrator.upgrade_stack") as upgrade:
            orchestrator.run(COMMON, RestoreStack(upgrade=True, stack_root=tmp_path,
                                                  dest=tmp_path / "out"))
        upgrade.assert_called_once_with(tmp_path)

    def test_unsupported_hash_reported(self, orchestrator: Orchestrator,
                                       source_tree: Path, caplog) -> None:
        with caplog.at_level("ERROR", logger="cache_s3"):
            result = orchestrator.run(COMMON, Save(paths=(source_tree,), hash_algorithm="crc32"))

        assert result.ok is False
        assert isinstance(result.error, UnsupportedHashError)
        assert "sha256" in caplog.text

    def test_corrupt_reported(self, orchestrator: Orchestrator,
                              local_store: LocalObjectStore, tmp_path: Path) -> None:
        local_store.put("cache/myproj/main.cache", io.BytesIO(b"x"), {"hash": "sha256"})
        result = orchestrator.run(COMMON, Restore(dest=tmp_path / "out"))
        assert result.ok is False
        assert isinstance(result.error, CorruptMetadataError)

    def test_store_error_reported(self, orchestrator: Orchestrator, cache: CacheStore,
                                  source_tree: Path) -> None:
        with patch.object(cache.store, "put", side_effect=StoreError("denied")):
            result = orchestrator.run(COMMON, Save(paths=(source_tree / "dist",)))
        assert result.ok is False
        assert isinstance(result.error, StoreError)

    def test_clear_is_idempotent(self, orchestrator: Orchestrator, source_tree: Path) -> None:
        orchestrator.run(COMMON, Save(paths=(source_tree / "dist",),
                                      compression=CompressionScheme.LZ4))
        first = orchestrator.run(COMMON, Clear())
        second = orchestrator.run(COMMON, Clear())
        assert first.ok and first.changed
        assert second.ok and not second.changed

    def test_not_found_logs_below_error(self, orchestrator: Orchestrator, tmp_path: Path,
                                        caplog) -> None:
        with caplog.at_level("DEBUG", logger="cache_s3"):
            orchestrator.run(COMMON, Restore(dest=tmp_path / "out"))
        assert caplog.records
        assert all(r.levelname not in ("ERROR", "CRITICAL") for r in caplog.records)

    def test_download_interrupted_reported(self, tmp_path: Path) -> None:
        client = MagicMock()
        client.head_object.return_value = {"Metadata": {"hash": "sha256", "compression": "gzip"}}
        body = MagicMock()
        body.read.side_effect = ResponseStreamingError(error="connection reset")
        client.get_object.return_value = {"Body": body, "Metadata": {"hash": "sha256",
                                                                    "compression": "gzip"}}
        orchestrator = Orchestrator(CacheStore(S3ObjectStore("ci-bucket", client=client)))

        result = orchestrator.run(COMMON, Restore(dest=tmp_path / "out"))

        assert result.ok is False
        assert isinstance(result.error, StoreError)
        assert "connection reset" in str(result.error)

    def test_unreadable_source_reported(self, orchestrator: Orchestrator,
                                        local_store: LocalObjectStore, source_tree: Path) -> None:
        with patch("cache_s3.archive.tarfile.TarFile.add", side_effect=PermissionError("denied")):
            result = orchestrator.run(COMMON, Save(paths=(source_tree / "dist",)))

        assert result.ok is False
        assert isinstance(result.error, PackError)
        assert not local_store.exists("cache/myproj/main.cache")

    def test_undecodable_stack_yaml_still_saves(self, orchestrator: Orchestrator,
                                                tmp_path: Path) -> None:
        stack_yaml = tmp_path / "stack.yaml"
        stack_yaml.write_bytes(b"\xff\xfe")

        result = orchestrator.run(COMMON, SaveStackWork(stack_yaml=stack_yaml))

        assert result.ok is True
        assert result.key == "cache/myproj/main.stack-work.cache"

    def test_path_discovery_failure_reported(self, orchestrator: Orchestrator) -> None:
        with patch("cache_s3.orchestrator.get_stack_work_paths",
                   side_effect=CacheError("no project")):
            result = orchestrator.run(COMMON, SaveStackWork())

        assert result.ok is False
        assert isinstance(result.error, CacheError)
        assert result.key == ""
