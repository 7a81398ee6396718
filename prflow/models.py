"""Records shared across prflow.

Provider-facing records (pull requests, comments) and the workspace-side
records the PR workflow reads: tasks, projects, workspaces and the
repositories bound to them.
"""

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class MergeStatus(str, Enum):
    OPEN = "open"
    MERGED = "merged"
    CLOSED = "closed"
    UNKNOWN = "unknown"


class PullRequestInfo(BaseModel):
    """A pull request as reported by the hosting provider."""

    number: int
    url: str
    status: MergeStatus = MergeStatus.OPEN
    merge_commit_sha: Optional[str] = None


class CreatePrRequest(BaseModel):
    title: str
    body: Optional[str] = None
    head_branch: str
    base_branch: str
    draft: Optional[bool] = None


class GeneralPrComment(BaseModel):
    """Conversation comment on a PR."""

    comment_type: Literal["general"] = "general"
    id: str
    author: str
    author_association: str = ""
    body: str
    created_at: datetime
    url: str = ""


class ReviewPrComment(BaseModel):
    """Inline code-review comment."""

    comment_type: Literal["review"] = "review"
    id: int
    author: str
    author_association: str = ""
    body: str
    created_at: datetime
    url: str = ""
    path: str = ""
    line: Optional[int] = None
    diff_hunk: str = ""


UnifiedPrComment = Annotated[
    Union[GeneralPrComment, ReviewPrComment], Field(discriminator="comment_type")
]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PrRecord(BaseModel):
    """Persisted PR for one (workspace, repo) pair."""

    id: str
    workspace_id: str
    repo_id: str
    target_branch: str
    pr_info: PullRequestInfo
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    DONE = "done"
    CANCELLED = "cancelled"


class Task(BaseModel):
    id: str
    project_id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO


class Project(BaseModel):
    """Project with optional PR overrides (None means use the global config)."""

    id: str
    name: str = ""
    auto_pr_on_review_enabled: Optional[bool] = None
    auto_pr_draft: Optional[bool] = None


class Workspace(BaseModel):
    """Isolated working copy an agent works in for one task.

    ``container_ref`` is the directory holding one worktree per repository,
    each named after its repo.
    """

    id: str
    task_id: str
    branch: str
    container_ref: Path
    pinned: bool = False
    archived: bool = False
    agent_working_dir: Optional[str] = None

    def worktree_path(self, repo: "Repo") -> Path:
        return self.container_ref / repo.name


class Repo(BaseModel):
    id: str
    name: str
    path: Path


class WorkspaceRepo(BaseModel):
    """Binding of a repository to a workspace."""

    workspace_id: str
    repo_id: str
    target_branch: str
