"""Clear commands: clear, clear stack, clear stack-work, and key."""

from __future__ import annotations

import click

from ..orchestrator import Clear, ClearStack, ClearStackWork, derive_key, expand_action
from ._common import CliState, console, pass_state, run_action

_CLEAR_ACTIONS = {
    None: Clear,
    "stack": ClearStack,
    "stack-work": ClearStackWork,
}


def register_clear_commands(main: click.Group) -> None:
    """Register the clear command group and the key command."""

    @main.group(invoke_without_command=True)
    @click.pass_context
    def clear(ctx):
        """Delete the cache for the current key. Absence is not an error."""
        if ctx.invoked_subcommand is None:
            run_action(ctx.obj, Clear())

    @clear.command("stack")
    @pass_state
    def clear_stack(state: CliState):
        """Delete the global stack cache."""
        run_action(state, ClearStack())

    @clear.command("stack-work")
    @pass_state
    def clear_stack_work(state: CliState):
        """Delete the stack work directory cache."""
        run_action(state, ClearStackWork())

    @main.command("key")
    @click.argument("variant", required=False, type=click.Choice(["stack", "stack-work"]))
    @pass_state
    def key(state: CliState, variant):
        """Print the object key the current settings resolve to.

        Does not contact the object store.

        Examples:

            cache-s3 --prefix myproj key

            cache-s3 --prefix myproj key stack-work
        """
        common, _ = expand_action(state.common, _CLEAR_ACTIONS[variant]())
        console.print(derive_key(common).object_key, highlight=False, soft_wrap=True)
