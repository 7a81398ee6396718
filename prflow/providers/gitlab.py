"""GitLab provider: basic support through prefilled merge-request URLs.

Works for gitlab.com and self-hosted instances. Nothing here talks to the
GitLab API; creating an MR means opening the returned URL in a browser.
"""

from pathlib import Path
from typing import List, Optional

from prflow.errors import not_supported
from prflow.git_utils import GitService
from prflow.models import CreatePrRequest, PullRequestInfo
from prflow.providers._utils import encode, repo_info_from_path
from prflow.providers.base import ProviderCapability
from prflow.remote_url import GitProviderKind, RepoInfo


def build_mr_url(repo_info: RepoInfo, request: CreatePrRequest) -> str:
    """Web URL of GitLab's "new merge request" page with fields prefilled."""
    url = (
        f"{repo_info.base_url}/-/merge_requests/new"
        f"?merge_request[source_branch]={encode(request.head_branch)}"
        f"&merge_request[target_branch]={encode(request.base_branch)}"
        f"&merge_request[title]={encode(request.title)}"
    )
    if request.body:
        url += f"&merge_request[description]={encode(request.body)}"
    return url


class GitLabService:
    def __init__(self, git: Optional[GitService] = None) -> None:
        self.git = git or GitService()

    async def get_repo_info(self, repo_path: Path) -> RepoInfo:
        return await repo_info_from_path(self.git, repo_path)

    async def check_auth(self) -> None:
        # Pushes go through the user's git credentials; there is no CLI to check
        return None

    async def create_pr(self, repo_info: RepoInfo, request: CreatePrRequest) -> PullRequestInfo:
        # GitLab calls them merge requests
        mr_url = build_mr_url(repo_info, request)
        raise not_supported(
            f"GitLab Merge Request creation requires manual action. "
            f"Please open this URL to create the MR: {mr_url}",
            manual_url=mr_url,
        )

    async def update_pr_status(self, pr_url: str) -> PullRequestInfo:
        raise not_supported("GitLab MR status updates require glab CLI or API integration")

    async def list_prs_for_branch(self, repo_info: RepoInfo, branch_name: str) -> List[PullRequestInfo]:
        raise not_supported("GitLab MR listing requires glab CLI or API integration")

    async def get_pr_comments(self, repo_info: RepoInfo, pr_number: int) -> list:
        raise not_supported("GitLab MR comments require glab CLI or API integration")

    def capability(self) -> ProviderCapability:
        return ProviderCapability.BASIC

    def provider_kind(self) -> GitProviderKind:
        return GitProviderKind.GITLAB
