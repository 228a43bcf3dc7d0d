"""
Git branch discovery.

Fails soft: outside a repository, without git installed, or on a
detached HEAD the branch is simply unknown.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Optional

logger = logging.getLogger("cache_s3.git")


def current_branch_name(repo_dir: Optional[Path] = None) -> Optional[str]:
    """Return the checked-out branch of ``repo_dir`` (default: cwd).

    Args:
        repo_dir: Directory inside the repository to query.

    Returns:
        Branch name, or None if it cannot be determined.
    """
    if shutil.which("git") is None:
        logger.debug("git executable not found")
        return None

    try:
        result = subprocess.run(
            ["git", "rev-parse", "--abbrev-ref", "HEAD"],
            capture_output=True,
            text=True,
            check=False,
            cwd=str(repo_dir) if repo_dir else None,
        )
    except OSError as exc:
        logger.debug("git branch lookup failed: %s", exc)
        return None

    if result.returncode != 0:
        logger.debug("git rev-parse failed: %s", result.stderr.strip())
        return None

    branch = result.stdout.strip()
    if not branch or branch == "HEAD":
        return None
    return branch
