"""Pull request actions for workspaces.

``PrOrchestrator`` drives one PR attempt per (workspace, repo):

1. Return the recorded PR if there already is one
2. Check the target branch exists on the remote (no push otherwise)
3. Push the workspace branch from its worktree
4. Strip the ``{remote}/`` prefix from remote-tracking target branches
5. Create the PR through the repo's hosting provider
6. Record it, then open it in a browser and/or ask the agent to write a
   description (both best effort)

Expected failures come back as typed error records rather than exceptions so
callers can render them; multi-repo fan-out collects one result per repo.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Protocol

from pydantic import BaseModel

from prflow.browser import open_browser as default_open_browser
from prflow.config import Config
from prflow.errors import GitProviderError, ProviderErrorKind
from prflow.executor import run_blocking
from prflow.git_utils import BranchType, GitCliError, GitCliErrorKind, GitService
from prflow.models import (
    CreatePrRequest,
    MergeStatus,
    PrRecord,
    Project,
    PullRequestInfo,
    Repo,
    Task,
    TaskStatus,
    UnifiedPrComment,
    Workspace,
    WorkspaceRepo,
)
from prflow.providers import GitProviderService, provider_from_repo_path
from prflow.retry import policy_from_config
from prflow.state_machine import PrLifecycle
from prflow.store import PrStore, TaskLifecycle, WorkspaceDirectory

logger = logging.getLogger(__name__)

DEFAULT_PR_DESCRIPTION_PROMPT = """Update the pull request that was just created with a better title and description.
The PR number is #{pr_number} and the URL is {pr_url}.
The repository is {repo_owner}/{repo_name}.

Analyze the changes in this branch and write:
1. A concise, descriptive title that summarizes the changes
2. A detailed description that explains:
   - What changes were made
   - Why they were made (based on the task context)
   - Any important implementation details

Use `gh pr edit {pr_number} --repo {repo_owner}/{repo_name}` to update the PR."""


class CreatePrErrorType(str, Enum):
    TARGET_BRANCH_NOT_FOUND = "target_branch_not_found"
    GIT_CLI_NOT_LOGGED_IN = "git_cli_not_logged_in"
    GIT_CLI_NOT_INSTALLED = "git_cli_not_installed"
    GITHUB_CLI_NOT_INSTALLED = "github_cli_not_installed"
    GITHUB_CLI_NOT_LOGGED_IN = "github_cli_not_logged_in"
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"
    REPO_NOT_FOUND = "repo_not_found"
    OPERATION_NOT_SUPPORTED = "operation_not_supported"
    OTHER = "other"


class AutoPrErrorType(str, Enum):
    GITHUB_CLI_NOT_INSTALLED = "github_cli_not_installed"
    GITHUB_CLI_NOT_LOGGED_IN = "github_cli_not_logged_in"
    GIT_CLI_NOT_LOGGED_IN = "git_cli_not_logged_in"
    GIT_CLI_NOT_INSTALLED = "git_cli_not_installed"
    TARGET_BRANCH_NOT_FOUND = "target_branch_not_found"
    PR_ALREADY_EXISTS = "pr_already_exists"
    OPERATION_NOT_SUPPORTED = "operation_not_supported"
    REPO_NOT_FOUND = "repo_not_found"
    OTHER = "other"


class PrCommentsErrorType(str, Enum):
    NO_PR_ATTACHED = "no_pr_attached"
    GITHUB_CLI_NOT_INSTALLED = "github_cli_not_installed"
    GITHUB_CLI_NOT_LOGGED_IN = "github_cli_not_logged_in"


class _TaggedError(BaseModel):
    """Error record serialized as ``{"type": ..., <fields>}``."""

    branch: Optional[str] = None
    url: Optional[str] = None
    manual_url: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class CreatePrError(_TaggedError):
    type: CreatePrErrorType


class AutoPrError(_TaggedError):
    type: AutoPrErrorType


class PrCommentsError(_TaggedError):
    type: PrCommentsErrorType


class CreatePrOptions(BaseModel):
    """What the caller asks for when creating a PR by hand."""

    title: str
    body: Optional[str] = None
    target_branch: Optional[str] = None  # defaults to the workspace repo's target
    draft: Optional[bool] = None
    open_in_browser: Optional[bool] = None  # defaults to config.open_pr_in_browser
    auto_generate_description: bool = False


class CreatePrResult(BaseModel):
    success: bool
    pr_url: Optional[str] = None
    pr_number: Optional[int] = None
    target_branch: Optional[str] = None
    already_existed: bool = False
    state: str = "unattempted"
    error: Optional[CreatePrError] = None


class AttachPrResponse(BaseModel):
    pr_attached: bool
    pr_url: Optional[str] = None
    pr_number: Optional[int] = None
    pr_status: Optional[MergeStatus] = None


class PrCommentsResult(BaseModel):
    comments: List[UnifiedPrComment] = []
    error: Optional[PrCommentsError] = None


class AutoPrResult(BaseModel):
    repo_id: str
    repo_name: str
    success: bool
    pr_url: Optional[str] = None
    pr_number: Optional[int] = None
    error: Optional[AutoPrError] = None


class FollowUpRunner(Protocol):
    """Sends a follow-up prompt to the coding agent working in a workspace."""

    async def start_follow_up(self, workspace: Workspace, prompt: str) -> None: ...


ProviderFactory = Callable[[Path], Awaitable[GitProviderService]]
BrowserOpener = Callable[[str], Awaitable[None]]


def build_pr_description_prompt(
    template: Optional[str],
    pr_number: int,
    pr_url: str,
    repo_owner: str,
    repo_name: str,
) -> str:
    """Fill the description prompt placeholders.

    Only ``{pr_number}``, ``{pr_url}``, ``{repo_owner}`` and ``{repo_name}``
    are substituted; any other braces in a custom template are left alone.
    """
    prompt = template or DEFAULT_PR_DESCRIPTION_PROMPT
    return (
        prompt.replace("{pr_number}", str(pr_number))
        .replace("{pr_url}", pr_url)
        .replace("{repo_owner}", repo_owner)
        .replace("{repo_name}", repo_name)
    )


def _git_error(e: GitCliError) -> CreatePrError:
    if e.kind == GitCliErrorKind.AUTH_FAILED:
        return CreatePrError(type=CreatePrErrorType.GIT_CLI_NOT_LOGGED_IN)
    if e.kind == GitCliErrorKind.NOT_AVAILABLE:
        return CreatePrError(type=CreatePrErrorType.GIT_CLI_NOT_INSTALLED)
    return CreatePrError(type=CreatePrErrorType.OTHER, message=str(e))


_PROVIDER_ERROR_TYPES = {
    ProviderErrorKind.CLI_NOT_INSTALLED: CreatePrErrorType.GITHUB_CLI_NOT_INSTALLED,
    ProviderErrorKind.AUTH_FAILED: CreatePrErrorType.GITHUB_CLI_NOT_LOGGED_IN,
    ProviderErrorKind.INSUFFICIENT_PERMISSIONS: CreatePrErrorType.INSUFFICIENT_PERMISSIONS,
    ProviderErrorKind.REPO_NOT_FOUND_OR_NO_ACCESS: CreatePrErrorType.REPO_NOT_FOUND,
    ProviderErrorKind.OPERATION_NOT_SUPPORTED: CreatePrErrorType.OPERATION_NOT_SUPPORTED,
}


def _provider_error(e: GitProviderError) -> CreatePrError:
    error_type = _PROVIDER_ERROR_TYPES.get(e.kind, CreatePrErrorType.OTHER)
    message = str(e)
    if e.remediation:
        message = f"{message} {e.remediation}"
    return CreatePrError(type=error_type, message=message, manual_url=e.manual_url)


def _auto_error(error: CreatePrError) -> AutoPrError:
    """Narrow a create error onto the auto-PR taxonomy."""
    try:
        error_type = AutoPrErrorType(error.type.value)
    except ValueError:
        return AutoPrError(type=AutoPrErrorType.OTHER, message=error.message or error.type.value)
    return AutoPrError(type=error_type, **error.model_dump(exclude={"type"}))


class PrOrchestrator:
    """Creates, attaches and reconciles PRs for workspaces.

    Args:
        store: PR records
        git: Git operations (default: ``GitService()``)
        tasks: Task/workspace side effects (default: ``store``)
        directory: Workspace record lookup for fan-out (default: ``store``)
        config: Settings (default: ``Config()``)
        provider_factory: Resolves the hosting provider for a worktree path
        open_browser: Opens a created PR
        follow_up: Sends the description prompt to the agent
    """

    def __init__(
        self,
        store: PrStore,
        git: Optional[GitService] = None,
        tasks: Optional[TaskLifecycle] = None,
        directory: Optional[WorkspaceDirectory] = None,
        config: Optional[Config] = None,
        provider_factory: Optional[ProviderFactory] = None,
        open_browser: BrowserOpener = default_open_browser,
        follow_up: Optional[FollowUpRunner] = None,
    ) -> None:
        self.store = store
        self.git = git or GitService()
        self.tasks = tasks if tasks is not None else store
        self.directory = directory if directory is not None else store
        self.config = config or Config()
        self.provider_factory = provider_factory or self._default_provider_factory
        self.open_browser = open_browser
        self.follow_up = follow_up

    async def _default_provider_factory(self, repo_path: Path) -> GitProviderService:
        return await provider_from_repo_path(repo_path, self.git, policy_from_config(self.config))

    async def _find_record(self, workspace_id: str, repo_id: str) -> Optional[PrRecord]:
        return await run_blocking(self.store.find_by_workspace_and_repo_id, workspace_id, repo_id)

    async def _normalize_target_branch(self, repo: Repo, worktree_path: Path, target_branch: str) -> str:
        """``origin/main`` -> ``main`` when the target is a remote-tracking branch."""
        try:
            branch_type = await run_blocking(self.git.find_branch_type, repo.path, target_branch)
            if branch_type != BranchType.REMOTE:
                return target_branch
            remote = await run_blocking(
                self.git.get_remote_name_from_branch_name, worktree_path, target_branch
            )
        except GitCliError as e:
            logger.debug(f"Keeping target branch {target_branch} as given: {e}")
            return target_branch

        prefix = f"{remote}/"
        if target_branch.startswith(prefix):
            return target_branch[len(prefix):]
        return target_branch

    async def _attempt(
        self,
        workspace: Workspace,
        repo: Repo,
        target_branch: str,
        title: str,
        body: Optional[str],
        draft: Optional[bool],
        open_in_browser: bool,
        auto_generate_description: bool,
    ) -> CreatePrResult:
        lifecycle = PrLifecycle(repo.name)

        def failed(error: CreatePrError) -> CreatePrResult:
            lifecycle.fire("fail")
            return CreatePrResult(success=False, state=lifecycle.current_state, error=error)

        existing = await self._find_record(workspace.id, repo.id)
        if existing is not None:
            lifecycle.fire("attach")
            return CreatePrResult(
                success=True,
                pr_url=existing.pr_info.url,
                pr_number=existing.pr_info.number,
                target_branch=existing.target_branch,
                already_existed=True,
                state=lifecycle.current_state,
            )

        worktree_path = workspace.worktree_path(repo)

        try:
            exists = await run_blocking(self.git.check_remote_branch_exists, repo.path, target_branch)
        except GitCliError as e:
            logger.error(f"Failed to check target branch {target_branch} for {repo.name}: {e}")
            return failed(_git_error(e))
        if not exists:
            lifecycle.fire("target_missing")
            return CreatePrResult(
                success=False,
                state=lifecycle.current_state,
                error=CreatePrError(type=CreatePrErrorType.TARGET_BRANCH_NOT_FOUND, branch=target_branch),
            )

        try:
            await run_blocking(self.git.push, worktree_path, workspace.branch, False)
        except GitCliError as e:
            logger.error(f"Failed to push branch {workspace.branch} for {repo.name}: {e}")
            return failed(_git_error(e))
        lifecycle.fire("push")

        base_branch = await self._normalize_target_branch(repo, worktree_path, target_branch)
        request = CreatePrRequest(
            title=title,
            body=body,
            head_branch=workspace.branch,
            base_branch=base_branch,
            draft=draft,
        )

        try:
            provider = await self.provider_factory(worktree_path)
            repo_info = await provider.get_repo_info(worktree_path)
            pr_info = await provider.create_pr(repo_info, request)
        except GitProviderError as e:
            logger.error(f"Failed to create PR for workspace {workspace.id} repo {repo.name}: {e}")
            return failed(_provider_error(e))
        lifecycle.fire("create")

        try:
            await run_blocking(self.store.create_pr, workspace.id, repo.id, base_branch, pr_info)
        except Exception as e:
            # The PR exists on the host; the next attach reconciles the record
            logger.error(f"Failed to record PR {pr_info.url} for workspace {workspace.id}: {e}")

        if open_in_browser:
            try:
                await self.open_browser(pr_info.url)
            except Exception as e:
                logger.warning(f"Failed to open PR in browser: {e}")

        if auto_generate_description:
            await self._trigger_description_follow_up(
                workspace, pr_info, repo_info.owner, repo_info.repo_name
            )

        return CreatePrResult(
            success=True,
            pr_url=pr_info.url,
            pr_number=pr_info.number,
            target_branch=base_branch,
            state=lifecycle.current_state,
        )

    async def _trigger_description_follow_up(
        self, workspace: Workspace, pr_info: PullRequestInfo, owner: str, repo_name: str
    ) -> None:
        if self.follow_up is None:
            logger.warning(
                f"PR description requested for workspace {workspace.id} but no follow-up runner is configured"
            )
            return

        prompt = build_pr_description_prompt(
            self.config.pr_auto_description_prompt, pr_info.number, pr_info.url, owner, repo_name
        )
        try:
            await self.follow_up.start_follow_up(workspace, prompt)
        except Exception as e:
            logger.warning(f"Failed to trigger PR description follow-up for workspace {workspace.id}: {e}")

    async def create_pr(
        self,
        workspace: Workspace,
        repo: Repo,
        workspace_repo: WorkspaceRepo,
        options: CreatePrOptions,
    ) -> CreatePrResult:
        """Push the workspace branch and open a PR for one repository.

        Args:
            workspace: Workspace whose branch is pushed
            repo: Repository to open the PR in
            workspace_repo: Binding supplying the default target branch
            options: Title, body and behaviour flags

        Returns:
            Result carrying either the PR or a typed error
        """
        open_in_browser = options.open_in_browser
        if open_in_browser is None:
            open_in_browser = self.config.open_pr_in_browser

        return await self._attempt(
            workspace,
            repo,
            options.target_branch or workspace_repo.target_branch,
            options.title,
            options.body,
            options.draft,
            open_in_browser,
            options.auto_generate_description,
        )

    async def attach_existing_pr(
        self,
        workspace: Workspace,
        task: Task,
        repo: Repo,
        workspace_repo: WorkspaceRepo,
    ) -> AttachPrResponse:
        """Record a PR that was opened outside prflow for the workspace branch.

        Open PRs are preferred, but merged and closed ones are attached too.
        Attaching a merged PR completes the task and archives the workspace
        unless it is pinned.

        Raises:
            GitProviderError: If the provider can't list PRs
        """
        existing = await self._find_record(workspace.id, repo.id)
        if existing is not None:
            return AttachPrResponse(
                pr_attached=True,
                pr_url=existing.pr_info.url,
                pr_number=existing.pr_info.number,
                pr_status=existing.pr_info.status,
            )

        worktree_path = workspace.worktree_path(repo)
        provider = await self.provider_factory(worktree_path)
        repo_info = await provider.get_repo_info(worktree_path)
        prs = await provider.list_prs_for_branch(repo_info, workspace.branch)

        if not prs:
            return AttachPrResponse(pr_attached=False)

        pr_info = prs[0]
        record = await run_blocking(
            self.store.create_pr,
            workspace.id,
            repo.id,
            workspace_repo.target_branch,
            PullRequestInfo(number=pr_info.number, url=pr_info.url),
        )
        if pr_info.status != MergeStatus.OPEN:
            await run_blocking(self.store.update_status, record.id, pr_info.status, pr_info.merge_commit_sha)

        if pr_info.status == MergeStatus.MERGED:
            await self._complete_task(workspace, task)

        logger.info(f"Attached PR #{pr_info.number} ({pr_info.status.value}) to workspace {workspace.id}")
        return AttachPrResponse(
            pr_attached=True,
            pr_url=pr_info.url,
            pr_number=pr_info.number,
            pr_status=pr_info.status,
        )

    async def _complete_task(self, workspace: Workspace, task: Task) -> None:
        await run_blocking(self.tasks.update_task_status, task.id, TaskStatus.DONE)
        if not workspace.pinned:
            await run_blocking(self.tasks.set_workspace_archived, workspace.id, True)

    async def get_pr_comments(self, workspace: Workspace, repo: Repo) -> PrCommentsResult:
        """Comments on the PR recorded for (workspace, repo).

        Raises:
            GitProviderError: For failures other than a missing or logged-out CLI
        """
        record = await self._find_record(workspace.id, repo.id)
        if record is None:
            return PrCommentsResult(error=PrCommentsError(type=PrCommentsErrorType.NO_PR_ATTACHED))

        worktree_path = workspace.worktree_path(repo)
        try:
            provider = await self.provider_factory(worktree_path)
            repo_info = await provider.get_repo_info(worktree_path)
            comments = await provider.get_pr_comments(repo_info, record.pr_info.number)
        except GitProviderError as e:
            logger.error(
                f"Failed to fetch PR comments for workspace {workspace.id}, PR #{record.pr_info.number}: {e}"
            )
            if e.kind == ProviderErrorKind.CLI_NOT_INSTALLED:
                return PrCommentsResult(
                    error=PrCommentsError(type=PrCommentsErrorType.GITHUB_CLI_NOT_INSTALLED, message=str(e))
                )
            if e.kind == ProviderErrorKind.AUTH_FAILED:
                return PrCommentsResult(
                    error=PrCommentsError(type=PrCommentsErrorType.GITHUB_CLI_NOT_LOGGED_IN, message=str(e))
                )
            raise

        return PrCommentsResult(comments=comments)

    async def refresh_pr_status(self, workspace: Workspace, task: Task, repo: Repo) -> Optional[PrRecord]:
        """Reconcile the recorded PR with the host.

        Returns:
            The updated record, or None if no PR is recorded

        Raises:
            GitProviderError: If the provider can't report the PR
        """
        record = await self._find_record(workspace.id, repo.id)
        if record is None:
            return None

        provider = await self.provider_factory(workspace.worktree_path(repo))
        latest = await provider.update_pr_status(record.pr_info.url)

        previous = record.pr_info
        if latest.status == previous.status and latest.merge_commit_sha == previous.merge_commit_sha:
            return record

        await run_blocking(self.store.update_status, record.id, latest.status, latest.merge_commit_sha)
        logger.info(f"PR #{previous.number} is now {latest.status.value} (was {previous.status.value})")

        if latest.status == MergeStatus.MERGED and previous.status != MergeStatus.MERGED:
            await self._complete_task(workspace, task)

        updated_info = previous.model_copy(
            update={"status": latest.status, "merge_commit_sha": latest.merge_commit_sha}
        )
        return record.model_copy(update={"pr_info": updated_info})

    async def auto_create_prs_for_workspace(
        self,
        workspace: Workspace,
        task: Task,
        is_draft: bool,
        auto_generate_description: bool,
    ) -> List[AutoPrResult]:
        """Create a PR in every repository bound to the workspace.

        Repositories are processed one after another; a failure in one is
        recorded in its result and never stops the others.
        """
        try:
            workspace_repos = await run_blocking(self.directory.get_workspace_repos, workspace.id)
        except Exception as e:
            logger.error(f"Failed to get workspace repos for {workspace.id}: {e}")
            return []

        results = []
        for workspace_repo in workspace_repos:
            try:
                result = await self._auto_create_pr_for_repo(
                    workspace, task, workspace_repo, is_draft, auto_generate_description
                )
            except Exception as e:
                logger.exception(f"Auto-PR failed for repo {workspace_repo.repo_id}")
                result = AutoPrResult(
                    repo_id=workspace_repo.repo_id,
                    repo_name="unknown",
                    success=False,
                    error=AutoPrError(type=AutoPrErrorType.OTHER, message=str(e)),
                )
            results.append(result)
        return results

    async def _auto_create_pr_for_repo(
        self,
        workspace: Workspace,
        task: Task,
        workspace_repo: WorkspaceRepo,
        is_draft: bool,
        auto_generate_description: bool,
    ) -> AutoPrResult:
        repo = await run_blocking(self.directory.get_repo, workspace_repo.repo_id)
        if repo is None:
            return AutoPrResult(
                repo_id=workspace_repo.repo_id,
                repo_name="unknown",
                success=False,
                error=AutoPrError(type=AutoPrErrorType.REPO_NOT_FOUND),
            )

        result = await self._attempt(
            workspace,
            repo,
            workspace_repo.target_branch,
            task.title,
            task.description,
            is_draft,
            False,
            auto_generate_description,
        )

        if result.already_existed:
            return AutoPrResult(
                repo_id=repo.id,
                repo_name=repo.name,
                success=True,
                pr_url=result.pr_url,
                pr_number=result.pr_number,
                error=AutoPrError(type=AutoPrErrorType.PR_ALREADY_EXISTS, url=result.pr_url),
            )

        return AutoPrResult(
            repo_id=repo.id,
            repo_name=repo.name,
            success=result.success,
            pr_url=result.pr_url,
            pr_number=result.pr_number,
            error=_auto_error(result.error) if result.error else None,
        )

    async def try_auto_create_prs(
        self, task: Task, project: Project, workspace: Optional[Workspace]
    ) -> Optional[List[AutoPrResult]]:
        """Auto-create PRs when a task moves into review, if enabled.

        Project settings override the global config.

        Returns:
            Per-repo results, or None when auto-PR is off, there is no
            workspace, or nothing was attempted
        """
        if not self.config.resolve_auto_pr_enabled(project.auto_pr_on_review_enabled):
            return None
        if workspace is None:
            logger.debug(f"No workspace found for task {task.id}, skipping auto-PR")
            return None

        is_draft = self.config.resolve_auto_pr_draft(project.auto_pr_draft)
        results = await self.auto_create_prs_for_workspace(
            workspace, task, is_draft, self.config.pr_auto_description_enabled
        )
        return results or None
