"""Tests for git branch discovery."""

from __future__ import annotations

import subprocess
from unittest.mock import patch

from cache_s3.git import current_branch_name


def _completed(returncode: int = 0, stdout: str = "", stderr: str = ""):
    return subprocess.CompletedProcess(["git"], returncode, stdout=stdout, stderr=stderr)


class TestCurrentBranchName:
    """Soft-failing branch lookup."""

    def test_returns_branch(self, tmp_path) -> None:
        with patch("cache_s3.git.shutil.which", return_value="/usr/bin/git"), \
             patch("cache_s3.git.subprocess.run", return_value=_completed(stdout="feature/x\n")) as run:
            assert current_branch_name(tmp_path) == "feature/x"
        assert run.call_args.kwargs["cwd"] == str(tmp_path)

    def test_not_a_repository(self) -> None:
        with patch("cache_s3.git.shutil.which", return_value="/usr/bin/git"), \
             patch("cache_s3.git.subprocess.run",
                   return_value=_completed(128, stderr="fatal: not a git repository")):
            assert current_branch_name() is None

    def test_detached_head(self) -> None:
        with patch("cache_s3.git.shutil.which", return_value="/usr/bin/git"), \
             patch("cache_s3.git.subprocess.run", return_value=_completed(stdout="HEAD\n")):
            assert current_branch_name() is None

    def test_git_missing(self) -> None:
        with patch("cache_s3.git.shutil.which", return_value=None), \
             patch("cache_s3.git.subprocess.run") as run:
            assert current_branch_name() is None
        run.assert_not_called()

    def test_os_error(self) -> None:
        with patch("cache_s3.git.shutil.which", return_value="/usr/bin/git"), \
             patch("cache_s3.git.subprocess.run", side_effect=OSError("boom")):
            assert current_branch_name() is None
