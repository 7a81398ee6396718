"""Helpers shared by the provider implementations."""

from pathlib import Path
from typing import Optional
from urllib.parse import quote

from prflow.errors import repository_error
from prflow.executor import run_blocking
from prflow.git_utils import GitCliError, GitService
from prflow.remote_url import RepoInfo


def first_remote_url(git: GitService, repo_path: Path) -> str:
    """URL of the first configured remote that has one.

    Raises:
        GitProviderError: (REPOSITORY) if remotes can't be read or none has a URL
    """
    try:
        remotes = git.get_all_remotes(repo_path)
    except GitCliError as e:
        raise repository_error(f"Failed to get remotes: {e}") from e

    for remote in remotes:
        if remote.url:
            return remote.url
    raise repository_error("No remote URL found")


async def repo_info_from_path(git: GitService, repo_path: Path) -> RepoInfo:
    """Parse the repository descriptor from the first remote of ``repo_path``."""
    url = await run_blocking(first_remote_url, git, repo_path)
    return RepoInfo.from_remote_url(url)


def encode(value: Optional[str]) -> str:
    """Percent-encode a query value (slashes included)."""
    return quote(value or "", safe="")
