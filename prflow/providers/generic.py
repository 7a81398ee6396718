"""Fallback provider for Azure DevOps and unrecognized hosts.

Only plain git works against these; every PR operation fails with a message
naming the host so the user knows to go to its web interface.
"""

from pathlib import Path
from typing import List, Optional

from prflow.errors import not_supported
from prflow.git_utils import GitService
from prflow.models import CreatePrRequest, PullRequestInfo
from prflow.providers._utils import repo_info_from_path
from prflow.providers.base import ProviderCapability
from prflow.remote_url import GitProviderKind, RepoInfo


class GenericProvider:
    def __init__(self, git: Optional[GitService] = None) -> None:
        self.git = git or GitService()

    async def get_repo_info(self, repo_path: Path) -> RepoInfo:
        return await repo_info_from_path(self.git, repo_path)

    async def check_auth(self) -> None:
        return None

    async def create_pr(self, repo_info: RepoInfo, request: CreatePrRequest) -> PullRequestInfo:
        raise not_supported(
            f"Pull request creation is not supported for {repo_info.host}. "
            "Please create the PR manually on the web interface."
        )

    async def update_pr_status(self, pr_url: str) -> PullRequestInfo:
        raise not_supported("PR status updates are not supported for generic git providers")

    async def list_prs_for_branch(self, repo_info: RepoInfo, branch_name: str) -> List[PullRequestInfo]:
        raise not_supported("PR listing is not supported for generic git providers")

    async def get_pr_comments(self, repo_info: RepoInfo, pr_number: int) -> list:
        raise not_supported("PR comments are not supported for generic git providers")

    def capability(self) -> ProviderCapability:
        return ProviderCapability.MINIMAL

    def provider_kind(self) -> GitProviderKind:
        return GitProviderKind.GENERIC
