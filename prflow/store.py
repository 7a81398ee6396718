"""Persistence for pull-request records and the workspace records around them.

Everything lives in one YAML file (``prs.yaml`` under the state directory).
Writers take a file lock for the whole read-modify-write, so two processes
creating a PR for the same (workspace, repo) pair can't both persist one.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, List, Optional, Protocol

import yaml
from filelock import FileLock

from prflow.models import (
    MergeStatus,
    PrRecord,
    Project,
    PullRequestInfo,
    Repo,
    Task,
    TaskStatus,
    Workspace,
    WorkspaceRepo,
)

logger = logging.getLogger(__name__)

STATE_FILENAME = "prs.yaml"

# Lock timeout in seconds - prevents deadlocks if a process crashes while holding lock
_LOCK_TIMEOUT = 5.0

_SECTIONS = ("pull_requests", "tasks", "projects", "workspaces", "repos", "workspace_repos")


class RecordNotFoundError(LookupError):
    """A record referenced by id does not exist."""


class PrStore(Protocol):
    """Storage for PR records, at most one per (workspace, repo)."""

    def find_by_workspace_and_repo_id(self, workspace_id: str, repo_id: str) -> Optional[PrRecord]: ...

    def create_pr(
        self, workspace_id: str, repo_id: str, target_branch: str, pr_info: PullRequestInfo
    ) -> PrRecord: ...

    def update_status(self, record_id: str, status: MergeStatus, merge_commit_sha: Optional[str]) -> None: ...


class TaskLifecycle(Protocol):
    """Side effects on the task and workspace a PR belongs to."""

    def update_task_status(self, task_id: str, status: TaskStatus) -> None: ...

    def set_workspace_archived(self, workspace_id: str, archived: bool) -> None: ...


class WorkspaceDirectory(Protocol):
    """Lookup of the workspace-side records the PR workflow operates on."""

    def get_task(self, task_id: str) -> Optional[Task]: ...

    def get_project(self, project_id: str) -> Optional[Project]: ...

    def get_workspace(self, workspace_id: str) -> Optional[Workspace]: ...

    def get_repo(self, repo_id: str) -> Optional[Repo]: ...

    def get_workspace_repos(self, workspace_id: str) -> List[WorkspaceRepo]: ...

    def get_workspace_repo(self, workspace_id: str, repo_id: str) -> Optional[WorkspaceRepo]: ...


class YamlPrStore:
    """File-backed store for PRs, tasks, projects, workspaces and repos.

    Implements ``PrStore``, ``TaskLifecycle`` and the web layer's
    ``WorkspaceDirectory``.
    """

    def __init__(self, state_dir: Path) -> None:
        self.state_dir = Path(state_dir)

    @property
    def path(self) -> Path:
        return self.state_dir / STATE_FILENAME

    @property
    def lock_path(self) -> Path:
        return self.state_dir / f"{STATE_FILENAME}.lock"

    @contextmanager
    def lock(self) -> Generator[None, None, None]:
        """Exclusive access to the state file.

        Raises:
            Timeout: If the lock cannot be acquired within 5 seconds
        """
        self.state_dir.mkdir(parents=True, exist_ok=True)
        with FileLock(self.lock_path, timeout=_LOCK_TIMEOUT):
            yield

    def load(self) -> dict:
        """Load the raw state, with every section present."""
        data = None
        if self.path.exists():
            with open(self.path) as f:
                data = yaml.safe_load(f)
        data = data or {}
        for section in _SECTIONS:
            if data.get(section) is None:
                data[section] = [] if section == "workspace_repos" else {}
        return data

    def save(self, state: dict) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.dump(state, f, default_flow_style=False, sort_keys=False)

    # PR records

    def find_by_workspace_and_repo_id(self, workspace_id: str, repo_id: str) -> Optional[PrRecord]:
        return self._find(self.load(), workspace_id, repo_id)

    @staticmethod
    def _find(state: dict, workspace_id: str, repo_id: str) -> Optional[PrRecord]:
        for data in state["pull_requests"].values():
            if data.get("workspace_id") == workspace_id and data.get("repo_id") == repo_id:
                return PrRecord.model_validate(data)
        return None

    def create_pr(
        self, workspace_id: str, repo_id: str, target_branch: str, pr_info: PullRequestInfo
    ) -> PrRecord:
        """Persist a PR for the pair.

        If another writer got there first, its record is returned and nothing
        is written.
        """
        with self.lock():
            state = self.load()
            existing = self._find(state, workspace_id, repo_id)
            if existing is not None:
                logger.info(
                    f"PR record for workspace {workspace_id} repo {repo_id} already exists: "
                    f"{existing.pr_info.url}"
                )
                return existing

            record = PrRecord(
                id=uuid.uuid4().hex,
                workspace_id=workspace_id,
                repo_id=repo_id,
                target_branch=target_branch,
                pr_info=pr_info,
            )
            state["pull_requests"][record.id] = record.model_dump(mode="json")
            self.save(state)
            return record

    def update_status(self, record_id: str, status: MergeStatus, merge_commit_sha: Optional[str]) -> None:
        with self.lock():
            state = self.load()
            data = state["pull_requests"].get(record_id)
            if data is None:
                raise RecordNotFoundError(f"PR record {record_id} not found")
            data["pr_info"]["status"] = status.value
            data["pr_info"]["merge_commit_sha"] = merge_commit_sha
            data["updated_at"] = datetime.now(timezone.utc).isoformat()
            self.save(state)

    def list_prs(self, workspace_id: Optional[str] = None) -> List[PrRecord]:
        records = [PrRecord.model_validate(d) for d in self.load()["pull_requests"].values()]
        if workspace_id is not None:
            records = [r for r in records if r.workspace_id == workspace_id]
        return records

    # Task lifecycle

    def update_task_status(self, task_id: str, status: TaskStatus) -> None:
        with self.lock():
            state = self.load()
            data = state["tasks"].get(task_id)
            if data is None:
                raise RecordNotFoundError(f"Task {task_id} not found")
            data["status"] = status.value
            self.save(state)

    def set_workspace_archived(self, workspace_id: str, archived: bool) -> None:
        with self.lock():
            state = self.load()
            data = state["workspaces"].get(workspace_id)
            if data is None:
                raise RecordNotFoundError(f"Workspace {workspace_id} not found")
            data["archived"] = archived
            self.save(state)

    # Workspace records

    def _put(self, section: str, record) -> None:
        with self.lock():
            state = self.load()
            state[section][record.id] = record.model_dump(mode="json")
            self.save(state)

    def save_task(self, task: Task) -> None:
        self._put("tasks", task)

    def save_project(self, project: Project) -> None:
        self._put("projects", project)

    def save_workspace(self, workspace: Workspace) -> None:
        self._put("workspaces", workspace)

    def save_repo(self, repo: Repo) -> None:
        self._put("repos", repo)

    def save_workspace_repo(self, workspace_repo: WorkspaceRepo) -> None:
        """Bind a repo to a workspace, replacing any earlier binding for the pair."""
        with self.lock():
            state = self.load()
            state["workspace_repos"] = [
                wr for wr in state["workspace_repos"]
                if not (wr["workspace_id"] == workspace_repo.workspace_id
                        and wr["repo_id"] == workspace_repo.repo_id)
            ]
            state["workspace_repos"].append(workspace_repo.model_dump(mode="json"))
            self.save(state)

    def get_task(self, task_id: str) -> Optional[Task]:
        data = self.load()["tasks"].get(task_id)
        return Task.model_validate(data) if data else None

    def get_project(self, project_id: str) -> Optional[Project]:
        data = self.load()["projects"].get(project_id)
        return Project.model_validate(data) if data else None

    def get_workspace(self, workspace_id: str) -> Optional[Workspace]:
        data = self.load()["workspaces"].get(workspace_id)
        return Workspace.model_validate(data) if data else None

    def get_repo(self, repo_id: str) -> Optional[Repo]:
        data = self.load()["repos"].get(repo_id)
        return Repo.model_validate(data) if data else None

    def get_workspace_repos(self, workspace_id: str) -> List[WorkspaceRepo]:
        return [
            WorkspaceRepo.model_validate(wr)
            for wr in self.load()["workspace_repos"]
            if wr.get("workspace_id") == workspace_id
        ]

    def get_workspace_repo(self, workspace_id: str, repo_id: str) -> Optional[WorkspaceRepo]:
        for wr in self.get_workspace_repos(workspace_id):
            if wr.repo_id == repo_id:
                return wr
        return None
