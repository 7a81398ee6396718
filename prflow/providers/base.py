"""Provider service interface and capability tiers."""

from enum import Enum
from pathlib import Path
from typing import List, Protocol, Union

from prflow.models import CreatePrRequest, GeneralPrComment, PullRequestInfo, ReviewPrComment
from prflow.remote_url import GitProviderKind, RepoInfo


class ProviderCapability(str, Enum):
    """How much of the PR workflow a provider integration can automate.

    - FULL: create/list/view/comments through a first-party CLI
    - BASIC: only a prefilled web URL for manual PR creation
    - MINIMAL: nothing beyond plain git; errors name the host
    """

    FULL = "full"
    BASIC = "basic"
    MINIMAL = "minimal"


class GitProviderService(Protocol):
    """Operations every provider tier exposes.

    Unsupported operations raise ``GitProviderError`` with kind
    OPERATION_NOT_SUPPORTED instead of being absent, so callers can treat all
    providers alike.
    """

    async def get_repo_info(self, repo_path: Path) -> RepoInfo:
        ...

    async def check_auth(self) -> None:
        ...

    async def create_pr(self, repo_info: RepoInfo, request: CreatePrRequest) -> PullRequestInfo:
        ...

    async def update_pr_status(self, pr_url: str) -> PullRequestInfo:
        ...

    async def list_prs_for_branch(self, repo_info: RepoInfo, branch_name: str) -> List[PullRequestInfo]:
        ...

    async def get_pr_comments(
        self, repo_info: RepoInfo, pr_number: int
    ) -> List[Union[GeneralPrComment, ReviewPrComment]]:
        ...

    def capability(self) -> ProviderCapability:
        ...

    def provider_kind(self) -> GitProviderKind:
        ...
