"""
Stack (Haskell build tool) path discovery.

The global stack root holds compiled snapshots and GHC installs; each
package's work directory holds project-local build output. Both are
worth caching separately, under the ``stack`` and ``stack-work``
suffixes.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger("cache_s3.stack")

DEFAULT_STACK_ROOT = "~/.stack"
DEFAULT_STACK_YAML = "stack.yaml"
DEFAULT_WORK_DIR = ".stack-work"


def _stack_path(flag: str) -> Optional[str]:
    if shutil.which("stack") is None:
        return None
    try:
        result = subprocess.run(
            ["stack", "path", flag],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        logger.debug("stack path %s failed: %s", flag, exc)
        return None
    if result.returncode != 0:
        logger.debug("stack path %s failed: %s", flag, result.stderr.strip())
        return None
    return result.stdout.strip() or None


def get_stack_root(stack_root: Optional[Path] = None) -> Path:
    """Locate the global stack root.

    Explicit value, then ``$STACK_ROOT``, then ``stack path --stack-root``,
    then ``~/.stack``.
    """
    if stack_root:
        return Path(stack_root).expanduser()
    env_root = os.environ.get("STACK_ROOT")
    if env_root:
        return Path(env_root).expanduser()
    discovered = _stack_path("--stack-root")
    if discovered:
        return Path(discovered)
    return Path(DEFAULT_STACK_ROOT).expanduser()


def get_stack_global_paths(stack_root: Optional[Path] = None) -> list[Path]:
    """Paths making up the global stack cache."""
    return [get_stack_root(stack_root)]


def get_stack_work_paths(
    stack_yaml: Optional[Path] = None,
    work_dir: Optional[Path] = None,
) -> list[Path]:
    """Work directories of every package in the project.

    Args:
        stack_yaml: Project config. Defaults to ``$STACK_YAML`` or
            ``./stack.yaml``.
        work_dir: Work directory name. Defaults to ``$STACK_WORK`` or
            ``.stack-work``.

    Returns:
        One ``<project>/<package>/<work_dir>`` path per package.
    """
    yaml_path = Path(
        stack_yaml or os.environ.get("STACK_YAML") or DEFAULT_STACK_YAML
    ).expanduser()
    work = Path(work_dir or os.environ.get("STACK_WORK") or DEFAULT_WORK_DIR)
    project_dir = yaml_path.absolute().parent

    packages: list[str] = ["."]
    if yaml_path.exists():
        try:
            data = yaml.safe_load(yaml_path.read_text(encoding="utf-8")) or {}
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            logger.warning("Failed to read %s: %s", yaml_path, exc)
            data = {}
        listed = data.get("packages") if isinstance(data, dict) else None
        if isinstance(listed, list):
            packages = [p for p in listed if isinstance(p, str)] or packages
        elif listed is not None:
            logger.warning("Ignoring non-list packages in %s: %r", yaml_path, listed)
    else:
        logger.warning("%s not found, assuming a single package project", yaml_path)

    seen: set[Path] = set()
    paths: list[Path] = []
    for package in packages:
        path = (project_dir / package / work).resolve()
        if path not in seen:
            seen.add(path)
            paths.append(path)
    return paths


def upgrade_stack(stack_root: Optional[Path] = None) -> bool:
    """Run ``stack upgrade``. Failure is reported, never fatal.

    Returns:
        True if the upgrade command succeeded.
    """
    if shutil.which("stack") is None:
        logger.warning("stack executable not found, skipping upgrade")
        return False

    env = os.environ.copy()
    if stack_root:
        env["STACK_ROOT"] = str(Path(stack_root).expanduser())
    try:
        result = subprocess.run(
            ["stack", "upgrade"],
            capture_output=True,
            text=True,
            check=False,
            env=env,
        )
    except OSError as exc:
        logger.warning("stack upgrade failed: %s", exc)
        return False
    if result.returncode != 0:
        logger.warning("stack upgrade failed: %s", result.stderr.strip())
        return False
    logger.info("stack upgraded")
    return True
