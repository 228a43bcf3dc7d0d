"""
cache-s3 -- build cache synchronization for CI.

Pack local build state into a single archive, park it in an object
store under a key derived from project, branch and variant, and pull
it back on the next run. Feature branches fall back to the base
branch's cache on their first run.
"""

import os

__version__ = "0.1.0"
__author__ = "cache-s3 contributors"

CONFIG_PATH = os.environ.get("CACHE_S3_CONFIG", ".cache-s3.yaml")
