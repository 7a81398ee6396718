"""CLI for prflow."""

import click

from prflow import __version__
from prflow.cli.common import setup_logging
from prflow.config import load_config


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """prflow: pull requests for agent workspaces

    Detect hosting providers, push workspace branches and open, attach or
    reconcile pull requests. Also runs build commands under CPU limits.
    """
    setup_logging(verbose)
    ctx.obj = load_config()


# Import and register command modules
from prflow.cli import detect
from prflow.cli import limits
from prflow.cli import pr
from prflow.cli import server

main.add_command(detect.detect)
main.add_command(pr.pr)
main.add_command(limits.limits)
main.add_command(limits.run)
main.add_command(server.serve)

__all__ = ["main"]
