"""Pull request API routes for workspaces."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool

from prflow.models import Project, Workspace
from prflow.pr_actions import CreatePrOptions, PrOrchestrator
from prflow.store import WorkspaceDirectory
from prflow.web.deps import (
    get_directory,
    get_orchestrator,
    get_task,
    get_workspace,
    get_workspace_repo,
    verify_credentials,
)
from prflow.web.models import ApiResponse, AutoPrBody, CreatePrBody, RepoRequest

router = APIRouter(
    prefix="/api/workspaces/{workspace_id}/pr",
    tags=["pull-requests"],
    dependencies=[Depends(verify_credentials)],
)


@router.post("")
async def create_pr(
    body: CreatePrBody,
    workspace: Workspace = Depends(get_workspace),
    directory: WorkspaceDirectory = Depends(get_directory),
    orchestrator: PrOrchestrator = Depends(get_orchestrator),
) -> ApiResponse:
    """Push the workspace branch and open a PR; ``data`` is the PR URL."""
    repo, workspace_repo = await run_in_threadpool(get_workspace_repo, directory, workspace, body.repo_id)

    result = await orchestrator.create_pr(
        workspace,
        repo,
        workspace_repo,
        CreatePrOptions(
            title=body.title,
            body=body.body,
            target_branch=body.target_branch,
            draft=body.draft,
            open_in_browser=body.open_in_browser,
            auto_generate_description=body.auto_generate_description,
        ),
    )
    if result.error is not None:
        return ApiResponse.error_with_data(result.error.to_dict(), message=result.error.message)
    return ApiResponse.ok(result.pr_url)


@router.post("/attach")
async def attach_existing_pr(
    body: RepoRequest,
    workspace: Workspace = Depends(get_workspace),
    directory: WorkspaceDirectory = Depends(get_directory),
    orchestrator: PrOrchestrator = Depends(get_orchestrator),
) -> ApiResponse:
    """Attach a PR that already exists for the workspace branch."""
    task = await run_in_threadpool(get_task, directory, workspace)
    repo, workspace_repo = await run_in_threadpool(get_workspace_repo, directory, workspace, body.repo_id)

    response = await orchestrator.attach_existing_pr(workspace, task, repo, workspace_repo)
    return ApiResponse.ok(response.model_dump(mode="json"))


@router.get("/comments")
async def get_pr_comments(
    repo_id: str = Query(...),
    workspace: Workspace = Depends(get_workspace),
    directory: WorkspaceDirectory = Depends(get_directory),
    orchestrator: PrOrchestrator = Depends(get_orchestrator),
) -> ApiResponse:
    """Conversation and review comments, oldest first."""
    repo, _ = await run_in_threadpool(get_workspace_repo, directory, workspace, repo_id)

    result = await orchestrator.get_pr_comments(workspace, repo)
    if result.error is not None:
        return ApiResponse.error_with_data(result.error.to_dict())
    return ApiResponse.ok({"comments": [c.model_dump(mode="json") for c in result.comments]})


@router.post("/refresh")
async def refresh_pr_status(
    body: RepoRequest,
    workspace: Workspace = Depends(get_workspace),
    directory: WorkspaceDirectory = Depends(get_directory),
    orchestrator: PrOrchestrator = Depends(get_orchestrator),
) -> ApiResponse:
    """Reconcile the recorded PR with the host; ``data`` is null when none is recorded."""
    task = await run_in_threadpool(get_task, directory, workspace)
    repo, _ = await run_in_threadpool(get_workspace_repo, directory, workspace, body.repo_id)

    record = await orchestrator.refresh_pr_status(workspace, task, repo)
    return ApiResponse.ok(record.model_dump(mode="json") if record else None)


@router.post("/auto")
async def auto_create_prs(
    body: Optional[AutoPrBody] = None,
    workspace: Workspace = Depends(get_workspace),
    directory: WorkspaceDirectory = Depends(get_directory),
    orchestrator: PrOrchestrator = Depends(get_orchestrator),
) -> ApiResponse:
    """Create PRs in every repository of the workspace; one result per repo."""
    body = body or AutoPrBody()
    task = await run_in_threadpool(get_task, directory, workspace)
    project = await run_in_threadpool(directory.get_project, task.project_id)

    config = orchestrator.config
    if not config.resolve_auto_pr_enabled(project.auto_pr_on_review_enabled if project else None):
        return ApiResponse.error_with_data(
            {"type": "auto_pr_disabled"}, message=f"Auto-PR is disabled for project {task.project_id}"
        )

    is_draft = body.is_draft
    if is_draft is None:
        is_draft = config.resolve_auto_pr_draft(project.auto_pr_draft if project else None)
    auto_generate_description = body.auto_generate_description
    if auto_generate_description is None:
        auto_generate_description = config.pr_auto_description_enabled

    results = await orchestrator.auto_create_prs_for_workspace(
        workspace, task, is_draft, auto_generate_description
    )
    return ApiResponse.ok([r.model_dump(mode="json") for r in results])


@router.post("/review")
async def submit_for_review(
    workspace: Workspace = Depends(get_workspace),
    directory: WorkspaceDirectory = Depends(get_directory),
    orchestrator: PrOrchestrator = Depends(get_orchestrator),
) -> ApiResponse:
    """Hook for a task entering review; ``data`` is null when auto-PR is off."""
    task = await run_in_threadpool(get_task, directory, workspace)
    project = await run_in_threadpool(directory.get_project, task.project_id)

    results = await orchestrator.try_auto_create_prs(task, project or Project(id=task.project_id), workspace)
    return ApiResponse.ok([r.model_dump(mode="json") for r in results] if results is not None else None)
