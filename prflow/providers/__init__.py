"""Git hosting providers and the factory that picks one for a repository.

Support comes in three tiers:

- Full (GitHub): PR creation, listing, status and comments via the gh CLI
- Basic (GitLab, Bitbucket): a prefilled web URL for manual PR creation
- Minimal (Azure DevOps, anything else): plain git only
"""

from pathlib import Path
from typing import Optional

from prflow.executor import run_blocking
from prflow.git_utils import GitService
from prflow.providers._utils import first_remote_url
from prflow.providers.base import GitProviderService, ProviderCapability
from prflow.providers.bitbucket import BitbucketService
from prflow.providers.generic import GenericProvider
from prflow.providers.github import GitHubService
from prflow.providers.gitlab import GitLabService
from prflow.remote_url import GitProviderKind, RepoInfo
from prflow.retry import DEFAULT_POLICY, RetryPolicy


def provider_from_repo_info(
    repo_info: RepoInfo,
    git: Optional[GitService] = None,
    retry_policy: RetryPolicy = DEFAULT_POLICY,
) -> GitProviderService:
    """Provider implementation for an already-parsed repository descriptor."""
    git = git or GitService()
    if repo_info.kind == GitProviderKind.GITHUB:
        return GitHubService(git=git, retry_policy=retry_policy)
    if repo_info.kind == GitProviderKind.GITLAB:
        return GitLabService(git=git)
    if repo_info.kind == GitProviderKind.BITBUCKET:
        return BitbucketService(git=git)
    return GenericProvider(git=git)


def provider_from_remote_url(
    remote_url: str,
    git: Optional[GitService] = None,
    retry_policy: RetryPolicy = DEFAULT_POLICY,
) -> GitProviderService:
    """Provider implementation for a remote URL.

    Raises:
        GitProviderError: (INVALID_URL) if the URL can't be parsed
    """
    return provider_from_repo_info(RepoInfo.from_remote_url(remote_url), git, retry_policy)


async def provider_from_repo_path(
    repo_path: Path,
    git: Optional[GitService] = None,
    retry_policy: RetryPolicy = DEFAULT_POLICY,
) -> GitProviderService:
    """Provider implementation for the repository at ``repo_path``.

    Uses the first remote that has a URL. Resolved fresh on every call since
    remotes can change between calls.

    Raises:
        GitProviderError: REPOSITORY if there is no usable remote, INVALID_URL
            if its URL can't be parsed
    """
    git = git or GitService()
    url = await run_blocking(first_remote_url, git, repo_path)
    return provider_from_remote_url(url, git, retry_policy)


__all__ = [
    "BitbucketService",
    "GenericProvider",
    "GitHubService",
    "GitLabService",
    "GitProviderService",
    "ProviderCapability",
    "provider_from_remote_url",
    "provider_from_repo_info",
    "provider_from_repo_path",
]
