"""Pull request commands."""

import sys
from pathlib import Path
from typing import Callable, Optional, Tuple

import click
from rich.table import Table

from prflow.cli.common import console, get_store, run_async
from prflow.config import Config
from prflow.errors import GitProviderError
from prflow.git_utils import GitCliError, GitService
from prflow.models import Repo, Task, Workspace, WorkspaceRepo
from prflow.pr_actions import CreatePrError, CreatePrErrorType, CreatePrOptions, PrOrchestrator
from prflow.store import YamlPrStore

_ERROR_HINTS = {
    CreatePrErrorType.GIT_CLI_NOT_LOGGED_IN: "Configure git credentials for the remote, then retry.",
    CreatePrErrorType.GIT_CLI_NOT_INSTALLED: "Install git: https://git-scm.com/downloads",
}


_WORKSPACE_OPTIONS = [
    click.option("--worktree", type=click.Path(exists=True, file_okay=False, path_type=Path),
                 default=".", help="Worktree holding the workspace branch"),
    click.option("--repo-path", type=click.Path(exists=True, file_okay=False, path_type=Path),
                 default=None, help="Main repository checkout (default: the worktree)"),
    click.option("--branch", default=None, help="Workspace branch (default: current branch)"),
    click.option("--target", default="main", show_default=True, help="Branch to open the PR against"),
    click.option("--workspace-id", default=None, help="Workspace id (default: the branch name)"),
    click.option("--repo-id", default=None, help="Repository id (default: the worktree directory name)"),
]


def workspace_options(func: Callable) -> Callable:
    """Options identifying the workspace and repository a PR command acts on."""
    for option in reversed(_WORKSPACE_OPTIONS):
        func = option(func)
    return func


def resolve_records(
    store: YamlPrStore,
    worktree: Path,
    repo_path: Optional[Path],
    branch: Optional[str],
    target: str,
    workspace_id: Optional[str],
    repo_id: Optional[str],
    title: Optional[str] = None,
) -> Tuple[Workspace, Task, Repo, WorkspaceRepo]:
    """Load the records for a command, registering any that don't exist yet.

    Records already in the store win over command-line values, so a
    workspace created by an agent runner keeps its settings.
    """
    worktree = worktree.resolve()
    if branch is None:
        try:
            branch = GitService().get_current_branch(worktree)
        except GitCliError as e:
            console.print(f"[red]Error: could not determine branch: {e}[/red]")
            sys.exit(1)

    workspace_id = workspace_id or branch
    repo_id = repo_id or worktree.name

    workspace = store.get_workspace(workspace_id)
    if workspace is None:
        workspace = Workspace(id=workspace_id, task_id=workspace_id, branch=branch, container_ref=worktree.parent)
        store.save_workspace(workspace)

    task = store.get_task(workspace.task_id)
    if task is None:
        task = Task(id=workspace.task_id, project_id="default", title=title or branch)
        store.save_task(task)

    repo = store.get_repo(repo_id)
    if repo is None:
        repo = Repo(id=repo_id, name=worktree.name, path=(repo_path or worktree).resolve())
        store.save_repo(repo)

    workspace_repo = store.get_workspace_repo(workspace.id, repo.id)
    if workspace_repo is None:
        workspace_repo = WorkspaceRepo(workspace_id=workspace.id, repo_id=repo.id, target_branch=target)
        store.save_workspace_repo(workspace_repo)

    return workspace, task, repo, workspace_repo


def print_create_error(error: CreatePrError) -> None:
    if error.type == CreatePrErrorType.TARGET_BRANCH_NOT_FOUND:
        console.print(f"[red]Target branch '{error.branch}' does not exist on the remote[/red]")
        return

    console.print(f"[red]Error ({error.type.value}): {error.message or 'PR creation failed'}[/red]")
    hint = _ERROR_HINTS.get(error.type)
    if hint:
        console.print(f"[yellow]{hint}[/yellow]")
    if error.manual_url:
        console.print(f"[cyan]Create it manually: {error.manual_url}[/cyan]")


@click.group()
def pr() -> None:
    """Create and track pull requests for a workspace."""
    pass


@pr.command("create")
@workspace_options
@click.option("--title", required=True, help="PR title")
@click.option("--body", default=None, help="PR description")
@click.option("--draft", is_flag=True, help="Open as a draft")
@click.option("--no-browser", is_flag=True, help="Don't open the PR in a browser")
@click.option("--describe", is_flag=True, help="Ask the agent to write the PR description")
@click.pass_obj
def create(
    config: Config,
    worktree: Path,
    repo_path: Optional[Path],
    branch: Optional[str],
    target: str,
    workspace_id: Optional[str],
    repo_id: Optional[str],
    title: str,
    body: Optional[str],
    draft: bool,
    no_browser: bool,
    describe: bool,
) -> None:
    """Push the workspace branch and open a pull request.

    Example:
        prflow pr create --title "Add retry to uploads" --target main
    """
    store = get_store(config)
    workspace, _task, repo, workspace_repo = resolve_records(
        store, worktree, repo_path, branch, target, workspace_id, repo_id, title
    )
    orchestrator = PrOrchestrator(store, config=config)

    console.print(f"[dim]Pushing {workspace.branch} and creating PR against {target}...[/dim]")
    result = run_async(orchestrator.create_pr(
        workspace,
        repo,
        workspace_repo,
        CreatePrOptions(
            title=title,
            body=body,
            target_branch=target,
            draft=draft or None,
            open_in_browser=False if no_browser else None,
            auto_generate_description=describe,
        ),
    ))

    if result.error is not None:
        print_create_error(result.error)
        sys.exit(1)

    if result.already_existed:
        console.print(f"[yellow]PR #{result.pr_number} already exists: {result.pr_url}[/yellow]")
    else:
        console.print(f"[green]✓ Created PR #{result.pr_number}: {result.pr_url}[/green]")


@pr.command("attach")
@workspace_options
@click.pass_obj
def attach(
    config: Config,
    worktree: Path,
    repo_path: Optional[Path],
    branch: Optional[str],
    target: str,
    workspace_id: Optional[str],
    repo_id: Optional[str],
) -> None:
    """Attach a PR opened outside prflow for the workspace branch."""
    store = get_store(config)
    workspace, task, repo, workspace_repo = resolve_records(
        store, worktree, repo_path, branch, target, workspace_id, repo_id
    )
    orchestrator = PrOrchestrator(store, config=config)

    try:
        response = run_async(orchestrator.attach_existing_pr(workspace, task, repo, workspace_repo))
    except GitProviderError as e:
        console.print(f"[red]Error: {e}[/red]")
        if e.remediation:
            console.print(f"[yellow]{e.remediation}[/yellow]")
        sys.exit(1)

    if not response.pr_attached:
        console.print(f"[yellow]No PR found for branch {workspace.branch}[/yellow]")
        return

    console.print(
        f"[green]✓ Attached PR #{response.pr_number} ({response.pr_status.value}): {response.pr_url}[/green]"
    )


@pr.command("comments")
@workspace_options
@click.pass_obj
def comments(
    config: Config,
    worktree: Path,
    repo_path: Optional[Path],
    branch: Optional[str],
    target: str,
    workspace_id: Optional[str],
    repo_id: Optional[str],
) -> None:
    """Show conversation and review comments on the workspace PR."""
    store = get_store(config)
    workspace, _task, repo, _wr = resolve_records(
        store, worktree, repo_path, branch, target, workspace_id, repo_id
    )
    orchestrator = PrOrchestrator(store, config=config)

    try:
        result = run_async(orchestrator.get_pr_comments(workspace, repo))
    except GitProviderError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if result.error is not None:
        console.print(f"[red]Error: {result.error.type.value}[/red]")
        sys.exit(1)

    if not result.comments:
        console.print("[dim]No comments[/dim]")
        return

    for comment in result.comments:
        where = ""
        if comment.comment_type == "review":
            where = f" [dim]{comment.path}:{comment.line or '?'}[/dim]"
        console.print(
            f"[cyan]{comment.author}[/cyan] [dim]{comment.created_at:%Y-%m-%d %H:%M}[/dim]{where}"
        )
        console.print(comment.body)
        console.print()


@pr.command("status")
@workspace_options
@click.pass_obj
def status(
    config: Config,
    worktree: Path,
    repo_path: Optional[Path],
    branch: Optional[str],
    target: str,
    workspace_id: Optional[str],
    repo_id: Optional[str],
) -> None:
    """Refresh the recorded PR status from the host."""
    store = get_store(config)
    workspace, task, repo, _wr = resolve_records(
        store, worktree, repo_path, branch, target, workspace_id, repo_id
    )
    orchestrator = PrOrchestrator(store, config=config)

    try:
        record = run_async(orchestrator.refresh_pr_status(workspace, task, repo))
    except GitProviderError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if record is None:
        console.print(f"[yellow]No PR recorded for {workspace.id}/{repo.id}[/yellow]")
        return

    table = Table(title=f"PR #{record.pr_info.number}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("URL", record.pr_info.url)
    table.add_row("Status", record.pr_info.status.value)
    table.add_row("Target", record.target_branch)
    table.add_row("Merge commit", record.pr_info.merge_commit_sha or "-")
    console.print(table)
