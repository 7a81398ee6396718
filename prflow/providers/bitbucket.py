"""Bitbucket provider: basic support through prefilled pull-request URLs."""

from pathlib import Path
from typing import List, Optional

from prflow.errors import not_supported
from prflow.git_utils import GitService
from prflow.models import CreatePrRequest, PullRequestInfo
from prflow.providers._utils import encode, repo_info_from_path
from prflow.providers.base import ProviderCapability
from prflow.remote_url import GitProviderKind, RepoInfo


def build_pr_url(repo_info: RepoInfo, request: CreatePrRequest) -> str:
    """Web URL of Bitbucket's "new pull request" page with fields prefilled."""
    return (
        f"{repo_info.base_url}/pull-requests/new"
        f"?source={encode(request.head_branch)}"
        f"&dest={encode(request.base_branch)}"
        f"&title={encode(request.title)}"
    )


class BitbucketService:
    def __init__(self, git: Optional[GitService] = None) -> None:
        self.git = git or GitService()

    async def get_repo_info(self, repo_path: Path) -> RepoInfo:
        return await repo_info_from_path(self.git, repo_path)

    async def check_auth(self) -> None:
        # Bitbucket relies on git credentials only
        return None

    async def create_pr(self, repo_info: RepoInfo, request: CreatePrRequest) -> PullRequestInfo:
        pr_url = build_pr_url(repo_info, request)
        raise not_supported(
            f"Bitbucket PR creation requires manual action. "
            f"Please open this URL to create the PR: {pr_url}",
            manual_url=pr_url,
        )

    async def update_pr_status(self, pr_url: str) -> PullRequestInfo:
        raise not_supported("Bitbucket PR status updates require API integration")

    async def list_prs_for_branch(self, repo_info: RepoInfo, branch_name: str) -> List[PullRequestInfo]:
        raise not_supported("Bitbucket PR listing requires API integration")

    async def get_pr_comments(self, repo_info: RepoInfo, pr_number: int) -> list:
        raise not_supported("Bitbucket PR comments require API integration")

    def capability(self) -> ProviderCapability:
        return ProviderCapability.BASIC

    def provider_kind(self) -> GitProviderKind:
        return GitProviderKind.BITBUCKET
