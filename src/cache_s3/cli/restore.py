"""Restore commands: restore, restore stack, restore stack-work."""

from __future__ import annotations

from pathlib import Path

import click

from ..orchestrator import Restore, RestoreStack, RestoreStackWork
from ._common import CliState, pass_state, run_action


def register_restore_commands(main: click.Group) -> None:
    """Register the restore command group."""

    @main.group(invoke_without_command=True)
    @click.option("--base-branch", default=None,
                  help="Branch whose cache to restore when this branch has none.")
    @click.option("--dest", default=None, type=click.Path(file_okay=False),
                  help="Extract beneath this directory instead of the original locations.")
    @click.pass_context
    def restore(ctx, base_branch, dest):
        """Download and unpack the cache for the current key.

        A missing cache is not an error: the command reports it and
        exits 0.

        Examples:

            cache-s3 -b my-bucket --prefix myproj restore --base-branch main

            cache-s3 -b my-bucket restore stack --upgrade
        """
        state: CliState = ctx.obj
        ctx.meta["restore_action"] = Restore(
            base_branch=base_branch or state.config.base_branch,
            dest=Path(dest) if dest else None,
        )
        if ctx.invoked_subcommand is None:
            run_action(state, ctx.meta["restore_action"])

    @restore.command("stack")
    @click.option("--upgrade", is_flag=True, help="Run 'stack upgrade' before restoring.")
    @click.option("--stack-root", default=None, type=click.Path(file_okay=False),
                  help="Global stack root.")
    @pass_state
    def restore_stack(state: CliState, upgrade, stack_root):
        """Restore the global stack cache."""
        base: Restore = click.get_current_context().meta["restore_action"]
        run_action(state, RestoreStack(
            **base.model_dump(),
            upgrade=upgrade,
            stack_root=Path(stack_root) if stack_root else None,
        ))

    @restore.command("stack-work")
    @pass_state
    def restore_stack_work(state: CliState):
        """Restore the project-local stack work directories."""
        base: Restore = click.get_current_context().meta["restore_action"]
        run_action(state, RestoreStackWork(**base.model_dump()))
