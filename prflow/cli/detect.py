"""Provider detection command."""

import sys
from pathlib import Path

import click
from rich.table import Table

from prflow.cli.common import console
from prflow.errors import GitProviderError
from prflow.git_utils import GitService
from prflow.providers import provider_from_repo_info
from prflow.providers._utils import first_remote_url
from prflow.remote_url import RepoInfo


@click.command()
@click.argument("target", default=".")
def detect(target: str) -> None:
    """Show which hosting provider a remote URL or repository uses.

    TARGET is a remote URL or a path to a git repository (default: the
    current directory).

    Example:
        prflow detect git@github.com:owner/repo.git
    """
    try:
        if Path(target).exists():
            url = first_remote_url(GitService(), Path(target))
        else:
            url = target
        info = RepoInfo.from_remote_url(url)
    except GitProviderError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    provider = provider_from_repo_info(info)

    table = Table(title=url, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Provider", info.kind.value)
    table.add_row("Capability", provider.capability().value)
    table.add_row("Owner", info.owner)
    table.add_row("Repository", info.repo_name)
    table.add_row("Host", info.host)
    table.add_row("Base URL", info.base_url)
    console.print(table)
