"""Save commands: save, save stack, save stack-work."""

from __future__ import annotations

from pathlib import Path

import click

from ..models import CompressionScheme
from ..orchestrator import Save, SaveStack, SaveStackWork
from ._common import CliState, pass_state, run_action


def register_save_commands(main: click.Group) -> None:
    """Register the save command group."""

    @main.group(invoke_without_command=True)
    @click.option("--path", "-p", "paths", multiple=True, type=click.Path(),
                  help="File or directory to cache. Repeatable.")
    @click.option("--hash", "hash_name", default=None, help="Hash algorithm (default sha256).")
    @click.option("--compression", "-c", default=None,
                  type=click.Choice([c.value for c in CompressionScheme]),
                  help="Archive compression (default gzip).")
    @click.pass_context
    def save(ctx, paths, hash_name, compression):
        """Archive paths and upload them under the current key.

        Examples:

            cache-s3 -b my-bucket --prefix myproj save -p node_modules

            cache-s3 -b my-bucket save -p dist stack
        """
        state: CliState = ctx.obj
        ctx.meta["save_action"] = Save(
            paths=tuple(Path(p) for p in paths),
            hash_algorithm=hash_name or state.config.hash,
            compression=CompressionScheme(compression) if compression else state.config.compression,
        )
        if ctx.invoked_subcommand is None:
            run_action(state, ctx.meta["save_action"])

    @save.command("stack")
    @click.option("--stack-root", default=None, type=click.Path(file_okay=False),
                  help="Global stack root (default: $STACK_ROOT or ~/.stack).")
    @pass_state
    def save_stack(state: CliState, stack_root):
        """Save the global stack root under the 'stack' suffix."""
        base: Save = click.get_current_context().meta["save_action"]
        run_action(state, SaveStack(
            **base.model_dump(),
            stack_root=Path(stack_root) if stack_root else None,
        ))

    @save.command("stack-work")
    @click.option("--stack-root", default=None, type=click.Path(file_okay=False),
                  help="Global stack root.")
    @click.option("--stack-yaml", default=None, type=click.Path(dir_okay=False),
                  help="Project config (default: $STACK_YAML or ./stack.yaml).")
    @click.option("--work-dir", default=None, type=click.Path(),
                  help="Work directory name (default: $STACK_WORK or .stack-work).")
    @pass_state
    def save_stack_work(state: CliState, stack_root, stack_yaml, work_dir):
        """Save every package's work directory under the 'stack-work' suffix."""
        base: Save = click.get_current_context().meta["save_action"]
        run_action(state, SaveStackWork(
            **base.model_dump(),
            stack_root=Path(stack_root) if stack_root else None,
            stack_yaml=Path(stack_yaml) if stack_yaml else None,
            work_dir=Path(work_dir) if work_dir else None,
        ))
