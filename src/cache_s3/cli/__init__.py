"""
cache-s3 CLI -- save, restore and clear build caches.

The main Click group carries the options shared by every action
(bucket, prefix, branch ...) and builds the per-invocation settings.
Each command group lives in its own module and is registered here.

Entry point: cache_s3.cli:main
"""

from __future__ import annotations

from pathlib import Path

import click

from .. import __version__
from ..config import CommonArgs, StoreType, Verbosity, load_config
from ._common import CliState, configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="cache-s3")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
              envvar="CACHE_S3_CONFIG", help="YAML config file.")
@click.option("--bucket", "-b", default=None, envvar="S3_BUCKET", help="Bucket holding the caches.")
@click.option("--region", "-r", default=None, envvar="AWS_REGION", help="AWS region.")
@click.option("--endpoint-url", default=None, help="Endpoint of an S3-compatible service.")
@click.option("--prefix", default=None, help="Namespace for the cache keys, e.g. the project name.")
@click.option("--git-dir", default=None, type=click.Path(file_okay=False),
              help="Repository to read the current branch from.")
@click.option("--git-branch", default=None, help="Branch name, instead of asking git.")
@click.option("--suffix", default=None, help="Extra token distinguishing caches of one branch.")
@click.option("--store", default=None, type=click.Choice([s.value for s in StoreType]),
              help="Object store backend.")
@click.option("--store-dir", default=None, type=click.Path(file_okay=False),
              help="Directory for the local store.")
@click.option("--verbosity", "-v", default=None, type=click.Choice([v.value for v in Verbosity]),
              help="Minimum log level.")
@click.pass_context
def main(ctx, config_path, bucket, region, endpoint_url, prefix, git_dir, git_branch,
         suffix, store, store_dir, verbosity):
    """cache-s3 -- build caches for CI, stored in S3.

    Caches are keyed by prefix and git branch. A branch without a cache
    of its own can restore its base branch's cache instead.
    """
    config = load_config(Path(config_path) if config_path else None)
    common = CommonArgs.from_config(
        config,
        bucket=bucket,
        region=region,
        endpoint_url=endpoint_url,
        prefix=prefix,
        git_dir=Path(git_dir) if git_dir else None,
        git_branch=git_branch,
        suffix=suffix,
        store=StoreType(store) if store else None,
        store_dir=Path(store_dir) if store_dir else None,
        verbosity=Verbosity(verbosity) if verbosity else None,
    )
    configure_logging(common.verbosity)
    ctx.obj = CliState(config=config, common=common)


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .save import register_save_commands
from .restore import register_restore_commands
from .clear import register_clear_commands

register_save_commands(main)
register_restore_commands(main)
register_clear_commands(main)
