"""Thin synchronous wrapper around the GitHub CLI (``gh``).

Every method runs one ``gh`` command and parses its JSON output. Callers are
expected to run these on a worker thread (see ``prflow.executor``).
"""

import json
import logging
import re
import shutil
import subprocess
from enum import Enum
from typing import Any, List

from prflow.errors import GitProviderError, ProviderErrorKind
from prflow.models import (
    CreatePrRequest,
    GeneralPrComment,
    MergeStatus,
    PullRequestInfo,
    ReviewPrComment,
)
from prflow.remote_url import GitHubRepoInfo

logger = logging.getLogger(__name__)

_PR_FIELDS = "number,url,state,mergedAt,mergeCommit"
_PR_URL_RE = re.compile(r"https://[^\s]+/pull/(\d+)")

# Ordering used when several PRs exist for one branch
_STATUS_ORDER = {MergeStatus.OPEN: 0, MergeStatus.MERGED: 1, MergeStatus.CLOSED: 2, MergeStatus.UNKNOWN: 3}


class GhCliErrorKind(str, Enum):
    NOT_AVAILABLE = "not_available"
    AUTH_FAILED = "auth_failed"
    COMMAND_FAILED = "command_failed"
    UNEXPECTED_OUTPUT = "unexpected_output"


class GhCliError(Exception):
    """A gh invocation failed."""

    def __init__(self, kind: GhCliErrorKind, message: str = "") -> None:
        self.kind = kind
        self.message = message
        if kind == GhCliErrorKind.NOT_AVAILABLE:
            text = "GitHub CLI (gh) not found. Install: https://cli.github.com/"
        elif kind == GhCliErrorKind.AUTH_FAILED:
            text = f"Not authenticated with GitHub. Run: gh auth login ({message})"
        elif kind == GhCliErrorKind.UNEXPECTED_OUTPUT:
            text = f"Unexpected output from GitHub CLI: {message}"
        else:
            text = f"GitHub CLI command failed: {message}"
        super().__init__(text)

    def to_provider_error(self) -> GitProviderError:
        """Map onto the provider taxonomy.

        Command failures are split on the HTTP status gh echoes back, so a
        403 or 404 isn't retried as if it were a network blip.
        """
        if self.kind == GhCliErrorKind.AUTH_FAILED:
            return GitProviderError(ProviderErrorKind.AUTH_FAILED, str(self))
        if self.kind == GhCliErrorKind.NOT_AVAILABLE:
            return GitProviderError(ProviderErrorKind.CLI_NOT_INSTALLED, f"GitHub CLI: {self}")
        if self.kind == GhCliErrorKind.COMMAND_FAILED:
            lower = self.message.lower()
            if "403" in lower or "forbidden" in lower:
                return GitProviderError(ProviderErrorKind.INSUFFICIENT_PERMISSIONS, str(self))
            if "404" in lower or "not found" in lower:
                return GitProviderError(ProviderErrorKind.REPO_NOT_FOUND_OR_NO_ACCESS, str(self))
        return GitProviderError(ProviderErrorKind.PULL_REQUEST, self.message)


def _is_auth_failure(stderr: str) -> bool:
    lower = stderr.lower()
    return "gh auth login" in lower or "not logged in" in lower or "authentication" in lower


def _parse_status(data: dict) -> MergeStatus:
    state = str(data.get("state", "")).upper()
    if state == "OPEN":
        return MergeStatus.OPEN
    if state == "MERGED" or data.get("mergedAt"):
        return MergeStatus.MERGED
    if state == "CLOSED":
        return MergeStatus.CLOSED
    return MergeStatus.UNKNOWN


def _parse_pr(data: dict) -> PullRequestInfo:
    merge_commit = data.get("mergeCommit") or {}
    return PullRequestInfo(
        number=int(data["number"]),
        url=data["url"],
        status=_parse_status(data),
        merge_commit_sha=merge_commit.get("oid"),
    )


def _parse_json_stream(output: str) -> List[Any]:
    """Parse ``gh api --paginate`` output, which concatenates one JSON array per page."""
    decoder = json.JSONDecoder()
    items: List[Any] = []
    idx = 0
    output = output.strip()
    while idx < len(output):
        page, end = decoder.raw_decode(output, idx)
        if isinstance(page, list):
            items.extend(page)
        else:
            items.append(page)
        idx = end
        while idx < len(output) and output[idx].isspace():
            idx += 1
    return items


class GhCli:
    """Runs gh commands and turns their output into provider records."""

    def __init__(self, executable: str = "gh", timeout: int = 60) -> None:
        self.executable = executable
        self.timeout = timeout

    def run(self, args: List[str]) -> str:
        """Run a gh command and return its stripped stdout.

        Raises:
            GhCliError: NOT_AVAILABLE, AUTH_FAILED or COMMAND_FAILED
        """
        if not shutil.which(self.executable):
            raise GhCliError(GhCliErrorKind.NOT_AVAILABLE)

        try:
            result = subprocess.run(
                [self.executable] + args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise GhCliError(GhCliErrorKind.NOT_AVAILABLE) from e
        except subprocess.TimeoutExpired as e:
            raise GhCliError(GhCliErrorKind.COMMAND_FAILED, f"gh {args[0]} timed out") from e

        if result.returncode != 0:
            stderr = (result.stderr or result.stdout or "").strip()
            if _is_auth_failure(stderr):
                raise GhCliError(GhCliErrorKind.AUTH_FAILED, stderr)
            raise GhCliError(GhCliErrorKind.COMMAND_FAILED, stderr)
        return result.stdout.strip()

    def _run_json(self, args: List[str]) -> Any:
        output = self.run(args)
        if not output:
            return None
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise GhCliError(GhCliErrorKind.UNEXPECTED_OUTPUT, output[:200]) from e

    def check_auth(self) -> None:
        """Raise unless gh is installed and logged in."""
        try:
            self.run(["auth", "status"])
        except GhCliError as e:
            if e.kind == GhCliErrorKind.COMMAND_FAILED:
                raise GhCliError(GhCliErrorKind.AUTH_FAILED, e.message) from e
            raise

    def create_pr(self, request: CreatePrRequest, repo: GitHubRepoInfo) -> PullRequestInfo:
        """Open a PR and return it; gh prints the new PR's URL on success."""
        args = [
            "pr", "create",
            "--repo", repo.full_name,
            "--head", request.head_branch,
            "--base", request.base_branch,
            "--title", request.title,
            "--body", request.body or "",
        ]
        if request.draft:
            args.append("--draft")

        output = self.run(args)
        match = _PR_URL_RE.search(output)
        if not match:
            raise GhCliError(GhCliErrorKind.UNEXPECTED_OUTPUT, f"no PR URL in output: {output[:200]}")

        return PullRequestInfo(number=int(match.group(1)), url=match.group(0), status=MergeStatus.OPEN)

    def view_pr(self, pr_url: str) -> PullRequestInfo:
        data = self._run_json(["pr", "view", pr_url, "--json", _PR_FIELDS])
        if not isinstance(data, dict):
            raise GhCliError(GhCliErrorKind.UNEXPECTED_OUTPUT, f"gh pr view {pr_url}")
        return _parse_pr(data)

    def list_prs_for_branch(self, owner: str, repo: str, branch: str) -> List[PullRequestInfo]:
        """All PRs (open, merged, closed) whose head is ``branch``, open ones first."""
        data = self._run_json([
            "pr", "list",
            "--repo", f"{owner}/{repo}",
            "--head", branch,
            "--state", "all",
            "--json", _PR_FIELDS,
        ]) or []
        prs = [_parse_pr(item) for item in data]
        return sorted(prs, key=lambda pr: _STATUS_ORDER[pr.status])

    def get_pr_comments(self, owner: str, repo: str, pr_number: int) -> List[GeneralPrComment]:
        data = self._run_json([
            "pr", "view", str(pr_number),
            "--repo", f"{owner}/{repo}",
            "--json", "comments",
        ]) or {}
        comments = []
        for c in data.get("comments", []):
            comments.append(GeneralPrComment(
                id=str(c.get("id", "")),
                author=(c.get("author") or {}).get("login", "unknown"),
                author_association=c.get("authorAssociation", ""),
                body=c.get("body", ""),
                created_at=c["createdAt"],
                url=c.get("url", ""),
            ))
        return comments

    def get_pr_review_comments(self, owner: str, repo: str, pr_number: int) -> List[ReviewPrComment]:
        output = self.run([
            "api", f"repos/{owner}/{repo}/pulls/{pr_number}/comments", "--paginate",
        ])
        try:
            data = _parse_json_stream(output) if output else []
        except json.JSONDecodeError as e:
            raise GhCliError(GhCliErrorKind.UNEXPECTED_OUTPUT, output[:200]) from e

        comments = []
        for c in data:
            comments.append(ReviewPrComment(
                id=int(c["id"]),
                author=(c.get("user") or {}).get("login", "unknown"),
                author_association=c.get("author_association", ""),
                body=c.get("body", ""),
                created_at=c["created_at"],
                url=c.get("html_url", ""),
                path=c.get("path", ""),
                line=c.get("line"),
                diff_hunk=c.get("diff_hunk", ""),
            ))
        return comments
