"""Shared utilities for all CLI command modules.

Provides the Rich console instance, logging setup, and the helper
that runs one action and turns its result into an exit code.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass

import click
from rich.console import Console

from ..cache import CacheStore
from ..config import CacheS3Config, CommonArgs, Verbosity
from ..orchestrator import Action, ActionResult, Orchestrator
from ..storage import create_store

console = Console()

LOG_FORMAT = "[cache-s3] - [%(asctime)s] %(levelname)s: %(message)s"
RFC822_DATE_FORMAT = "%a, %d %b %Y %H:%M:%S %Z"


def configure_logging(verbosity: Verbosity) -> None:
    """Install the timestamped log format, filtering below ``verbosity``."""
    logging.basicConfig(
        level=verbosity.level,
        format=LOG_FORMAT,
        datefmt=RFC822_DATE_FORMAT,
        force=True,
    )


@dataclass
class CliState:
    """Per-invocation state stored on the click context."""

    config: CacheS3Config
    common: CommonArgs


pass_state = click.make_pass_decorator(CliState)


def report(result: ActionResult) -> None:
    """Print a one-line summary of an action result."""
    if not result.ok:
        console.print(f"[bold red]{result.action} failed[/] [dim]{result.key}[/]: {result.error}")
        return
    if result.action.startswith("Save"):
        if result.changed:
            console.print(f"[green]Saved[/] [cyan]{result.key}[/]")
        else:
            console.print(f"[dim]Unchanged[/] [cyan]{result.key}[/]")
    elif result.action.startswith("Restore"):
        if result.changed:
            console.print(f"[green]Restored[/] [cyan]{result.key}[/]")
        else:
            console.print(f"[yellow]No cache found[/] for [cyan]{result.key}[/]")
    elif result.changed:
        console.print(f"[green]Cleared[/] [cyan]{result.key}[/]")
    else:
        console.print(f"[dim]Nothing to clear[/] at [cyan]{result.key}[/]")


def run_action(state: CliState, action: Action) -> ActionResult:
    """Run ``action`` and exit non-zero if it failed."""
    try:
        store = create_store(state.common)
    except ValueError as exc:
        console.print(f"[bold red]{exc}[/]")
        sys.exit(1)

    result = Orchestrator(CacheStore(store)).run(state.common, action)
    report(result)
    if not result.ok:
        sys.exit(1)
    return result
