"""
Configuration -- YAML file defaults plus per-invocation settings.

Lookup order for the config file: ``$CACHE_S3_CONFIG``, then
``./.cache-s3.yaml``. Command-line options override anything in the
file, the file overrides the built-in defaults.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict

from . import CONFIG_PATH
from .models import CompressionScheme

logger = logging.getLogger("cache_s3.config")


class StoreType(str, Enum):
    """Supported object store backends."""

    S3 = "s3"
    LOCAL = "local"


class Verbosity(str, Enum):
    """Minimum log level."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def level(self) -> int:
        return getattr(logging, self.name)


class CacheS3Config(BaseModel):
    """Settings read from the config file."""

    bucket: Optional[str] = None
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    prefix: Optional[str] = None
    git_dir: Optional[Path] = None
    git_branch: Optional[str] = None
    base_branch: Optional[str] = None
    hash: str = "sha256"
    compression: CompressionScheme = CompressionScheme.GZIP
    store: StoreType = StoreType.S3
    store_dir: Optional[Path] = None
    verbosity: Verbosity = Verbosity.INFO


class CommonArgs(BaseModel):
    """Inputs shared by every action of one invocation."""

    model_config = ConfigDict(frozen=True)

    bucket: Optional[str] = None
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    prefix: Optional[str] = None
    git_dir: Optional[Path] = None
    git_branch: Optional[str] = None
    suffix: Optional[str] = None
    store: StoreType = StoreType.S3
    store_dir: Optional[Path] = None
    verbosity: Verbosity = Verbosity.INFO

    @classmethod
    def from_config(cls, config: CacheS3Config, **overrides: Any) -> "CommonArgs":
        """Merge file settings with command-line overrides.

        Overrides that are None are ignored so unset options fall
        through to the file.
        """
        data = config.model_dump(include=set(cls.model_fields))
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**data)


def load_config(path: Optional[Path] = None) -> CacheS3Config:
    """Load settings from a YAML file.

    A missing file yields defaults. A malformed file is reported and
    also yields defaults.

    Args:
        path: Config file. Defaults to ``$CACHE_S3_CONFIG`` or
            ``.cache-s3.yaml`` in the working directory.

    Returns:
        Parsed configuration.
    """
    config_file = Path(path or CONFIG_PATH).expanduser()
    if not config_file.exists():
        return CacheS3Config()
    try:
        data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
        return CacheS3Config(**data)
    except (yaml.YAMLError, ValueError, TypeError) as exc:
        logger.warning("Failed to load config %s: %s", config_file, exc)
    return CacheS3Config()
