"""Pytest configuration and fixtures for prflow tests.

Every test runs from its own temporary directory so the YAML store and any
.prflow.yaml lookups never touch the developer's checkout.
"""

from pathlib import Path

import pytest
from click.testing import CliRunner

from prflow.models import Project, Repo, Task, Workspace, WorkspaceRepo
from prflow.store import YamlPrStore


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Run each test from an empty temporary directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("PRFLOW_WEB_AUTH", raising=False)
    return tmp_path


@pytest.fixture
def cli_runner():
    """Create a Click test runner."""
    return CliRunner()


@pytest.fixture
def store(tmp_path: Path) -> YamlPrStore:
    return YamlPrStore(tmp_path / ".prflow")


@pytest.fixture
def project() -> Project:
    return Project(id="proj-1", name="widgets")


@pytest.fixture
def task(project: Project) -> Task:
    return Task(id="task-1", project_id=project.id, title="Add login", description="Users can log in")


@pytest.fixture
def repo(tmp_path: Path) -> Repo:
    return Repo(id="repo-1", name="widgets", path=tmp_path / "repos" / "widgets")


@pytest.fixture
def workspace(task: Task, tmp_path: Path) -> Workspace:
    return Workspace(
        id="ws-1",
        task_id=task.id,
        branch="feature/login",
        container_ref=tmp_path / "workspaces" / "ws-1",
    )


@pytest.fixture
def workspace_repo(workspace: Workspace, repo: Repo) -> WorkspaceRepo:
    return WorkspaceRepo(workspace_id=workspace.id, repo_id=repo.id, target_branch="main")


@pytest.fixture
def seeded_store(store, project, task, repo, workspace, workspace_repo) -> YamlPrStore:
    """Store holding one project/task/workspace with one bound repository."""
    store.save_project(project)
    store.save_task(task)
    store.save_repo(repo)
    store.save_workspace(workspace)
    store.save_workspace_repo(workspace_repo)
    return store
