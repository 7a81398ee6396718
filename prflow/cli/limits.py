"""Commands for running builds under resource limits."""

import sys
from typing import Tuple

import click
from rich.table import Table

from prflow.cli.common import console
from prflow.config import Config
from prflow.process_limits import (
    default_parallel_jobs,
    get_compilation_limit_env_vars,
    spawn_limited,
)


@click.command()
@click.pass_obj
def limits(config: Config) -> None:
    """Show the limits applied to build processes."""
    table = Table(title=f"Build limits ({default_parallel_jobs()} parallel jobs)")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    for name, value in get_compilation_limit_env_vars().items():
        table.add_row(name, value)
    table.add_row("nice", f"+{config.nice_value}")

    console.print(table)


@click.command(context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False})
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_obj
def run(config: Config, command: Tuple[str, ...]) -> None:
    """Run COMMAND with capped build parallelism and lowered priority.

    Exits with the command's exit code.

    Example:
        prflow run -- cargo build --release
    """
    try:
        proc = spawn_limited(list(command), nice_value=config.nice_value)
    except FileNotFoundError:
        console.print(f"[red]Error: command not found: {command[0]}[/red]")
        sys.exit(127)

    try:
        returncode = proc.wait()
    except KeyboardInterrupt:
        proc.terminate()
        returncode = proc.wait()
    sys.exit(returncode)
