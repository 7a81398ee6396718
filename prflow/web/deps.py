"""Shared dependencies for web routes."""

import os
import secrets
from typing import Optional, Tuple

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from prflow.models import Repo, Task, Workspace, WorkspaceRepo
from prflow.pr_actions import PrOrchestrator
from prflow.store import WorkspaceDirectory

# Optional authentication (auto_error=False allows requests without credentials)
security = HTTPBasic(auto_error=False)

# Auth configuration from environment variables
AUTH_ENABLED = os.getenv("PRFLOW_WEB_AUTH", "false").lower() == "true"
AUTH_USERNAME = os.getenv("PRFLOW_WEB_USERNAME", "admin")
AUTH_PASSWORD = os.getenv("PRFLOW_WEB_PASSWORD", "changeme")


def verify_credentials(
    credentials: Optional[HTTPBasicCredentials] = Depends(security),
) -> Optional[str]:
    """Verify HTTP Basic Auth credentials.

    Only enforced when PRFLOW_WEB_AUTH=true.
    """
    if not AUTH_ENABLED:
        return None

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Basic"},
        )

    username_correct = secrets.compare_digest(
        credentials.username.encode("utf-8"), AUTH_USERNAME.encode("utf-8")
    )
    password_correct = secrets.compare_digest(
        credentials.password.encode("utf-8"), AUTH_PASSWORD.encode("utf-8")
    )

    if not (username_correct and password_correct):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return str(credentials.username)


def get_orchestrator(request: Request) -> PrOrchestrator:
    return request.app.state.orchestrator


def get_directory(request: Request) -> WorkspaceDirectory:
    return request.app.state.directory


def get_workspace(
    workspace_id: str,
    directory: WorkspaceDirectory = Depends(get_directory),
) -> Workspace:
    """The workspace named in the path, or 404."""
    workspace = directory.get_workspace(workspace_id)
    if workspace is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Workspace {workspace_id} not found")
    return workspace


def get_task(directory: WorkspaceDirectory, workspace: Workspace) -> Task:
    task = directory.get_task(workspace.task_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Task {workspace.task_id} not found")
    return task


def get_workspace_repo(
    directory: WorkspaceDirectory, workspace: Workspace, repo_id: str
) -> Tuple[Repo, WorkspaceRepo]:
    """A repository bound to the workspace, or 404."""
    workspace_repo = directory.get_workspace_repo(workspace.id, repo_id)
    repo = directory.get_repo(repo_id) if workspace_repo else None
    if workspace_repo is None or repo is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repository {repo_id} not found in workspace {workspace.id}",
        )
    return repo, workspace_repo
