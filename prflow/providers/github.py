"""GitHub provider: full support through the gh CLI."""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, TypeVar, Union

from prflow.errors import GitProviderError, ProviderErrorKind
from prflow.executor import run_blocking
from prflow.gh_cli import GhCli, GhCliError
from prflow.git_utils import GitService
from prflow.models import (
    CreatePrRequest,
    GeneralPrComment,
    PullRequestInfo,
    ReviewPrComment,
)
from prflow.providers._utils import repo_info_from_path
from prflow.providers.base import ProviderCapability
from prflow.remote_url import GitProviderKind, RepoInfo
from prflow.retry import DEFAULT_POLICY, RetryPolicy, retry_with_backoff

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GitHubService:
    """GitHub through the gh CLI.

    Network calls are retried with backoff; auth, permission, not-found and
    missing-CLI errors fail on the first attempt.
    """

    def __init__(
        self,
        gh_cli: Optional[GhCli] = None,
        git: Optional[GitService] = None,
        retry_policy: RetryPolicy = DEFAULT_POLICY,
    ) -> None:
        self.gh_cli = gh_cli or GhCli()
        self.git = git or GitService()
        self.retry_policy = retry_policy

    async def _call_cli(self, func: Callable[..., T], *args: object) -> T:
        """Run one gh call on the CLI pool, translating its errors."""
        try:
            return await run_blocking(func, *args)
        except GhCliError as e:
            raise e.to_provider_error() from e

    async def _with_retry(self, description: str, operation: Callable[[], Awaitable[T]]) -> T:
        return await retry_with_backoff(
            operation,
            policy=self.retry_policy,
            description=f"GitHub API call ({description})",
        )

    async def get_repo_info(self, repo_path: Path) -> RepoInfo:
        """Descriptor of the repo ``repo_path`` pushes to.

        Parsed from the local remote rather than ``gh repo view``, which
        reports the upstream for forks.
        """
        info = await repo_info_from_path(self.git, repo_path)
        if info.kind != GitProviderKind.GITHUB:
            raise GitProviderError(
                ProviderErrorKind.UNSUPPORTED_PROVIDER,
                f"{info.host} is not a GitHub remote",
            )
        return info

    async def check_auth(self) -> None:
        try:
            await run_blocking(self.gh_cli.check_auth)
        except GhCliError as e:
            raise e.to_provider_error() from e

    async def create_pr(self, repo_info: RepoInfo, request: CreatePrRequest) -> PullRequestInfo:
        github_info = repo_info.to_github_repo_info()

        pr = await self._with_retry(
            "create PR",
            lambda: self._call_cli(self.gh_cli.create_pr, request, github_info),
        )
        logger.info(
            f"Created GitHub PR #{pr.number} for branch {request.head_branch} "
            f"in {repo_info.owner}/{repo_info.repo_name}"
        )
        return pr

    async def update_pr_status(self, pr_url: str) -> PullRequestInfo:
        return await self._with_retry(
            f"view PR {pr_url}",
            lambda: self._call_cli(self.gh_cli.view_pr, pr_url),
        )

    async def list_prs_for_branch(self, repo_info: RepoInfo, branch_name: str) -> List[PullRequestInfo]:
        """All PRs for the branch, including merged and closed ones."""
        return await self._with_retry(
            f"list PRs for {branch_name}",
            lambda: self._call_cli(
                self.gh_cli.list_prs_for_branch, repo_info.owner, repo_info.repo_name, branch_name
            ),
        )

    async def get_pr_comments(
        self, repo_info: RepoInfo, pr_number: int
    ) -> List[Union[GeneralPrComment, ReviewPrComment]]:
        """Conversation and inline review comments merged into one timeline.

        Both kinds are fetched concurrently; if one fetch fails the other is
        cancelled before the error propagates. The sort is stable, so comments
        with equal timestamps keep fetch order (general before review).
        """
        general_task = asyncio.ensure_future(self._with_retry(
            f"PR #{pr_number} comments",
            lambda: self._call_cli(
                self.gh_cli.get_pr_comments, repo_info.owner, repo_info.repo_name, pr_number
            ),
        ))
        review_task = asyncio.ensure_future(self._with_retry(
            f"PR #{pr_number} review comments",
            lambda: self._call_cli(
                self.gh_cli.get_pr_review_comments, repo_info.owner, repo_info.repo_name, pr_number
            ),
        ))
        try:
            general, review = await asyncio.gather(general_task, review_task)
        finally:
            for task in (general_task, review_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(general_task, review_task, return_exceptions=True)

        unified: List[Union[GeneralPrComment, ReviewPrComment]] = [*general, *review]
        unified.sort(key=lambda c: c.created_at)
        return unified

    def capability(self) -> ProviderCapability:
        return ProviderCapability.FULL

    def provider_kind(self) -> GitProviderKind:
        return GitProviderKind.GITHUB
