"""Tests for prflow.gh_cli module."""

import json
import subprocess
from unittest.mock import Mock, patch

import pytest

from prflow.errors import ProviderErrorKind
from prflow.gh_cli import GhCli, GhCliError, GhCliErrorKind
from prflow.models import CreatePrRequest, MergeStatus
from prflow.remote_url import GitHubRepoInfo


def completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> Mock:
    return Mock(returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def gh():
    """GhCli with gh reported as installed."""
    with patch("prflow.gh_cli.shutil.which", return_value="/usr/bin/gh"):
        yield GhCli()


class TestRun:
    """Tests for GhCli.run error mapping."""

    def test_missing_executable(self) -> None:
        with patch("prflow.gh_cli.shutil.which", return_value=None):
            with pytest.raises(GhCliError) as exc_info:
                GhCli().run(["auth", "status"])

        assert exc_info.value.kind == GhCliErrorKind.NOT_AVAILABLE
        assert "https://cli.github.com/" in str(exc_info.value)

    @patch("prflow.gh_cli.subprocess.run")
    def test_auth_failure(self, mock_run, gh) -> None:
        mock_run.return_value = completed(returncode=1, stderr="You are not logged in. Run gh auth login")

        with pytest.raises(GhCliError) as exc_info:
            gh.run(["pr", "list"])

        assert exc_info.value.kind == GhCliErrorKind.AUTH_FAILED

    @patch("prflow.gh_cli.subprocess.run")
    def test_command_failure_keeps_stderr(self, mock_run, gh) -> None:
        mock_run.return_value = completed(returncode=1, stderr="GraphQL: something broke")

        with pytest.raises(GhCliError) as exc_info:
            gh.run(["pr", "list"])

        assert exc_info.value.kind == GhCliErrorKind.COMMAND_FAILED
        assert exc_info.value.message == "GraphQL: something broke"

    @patch("prflow.gh_cli.subprocess.run")
    def test_timeout(self, mock_run, gh) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="gh", timeout=60)

        with pytest.raises(GhCliError) as exc_info:
            gh.run(["pr", "view"])

        assert exc_info.value.kind == GhCliErrorKind.COMMAND_FAILED
        assert "timed out" in exc_info.value.message

    @patch("prflow.gh_cli.subprocess.run")
    def test_check_auth_turns_failure_into_auth_error(self, mock_run, gh) -> None:
        mock_run.return_value = completed(returncode=1, stderr="no hosts configured")

        with pytest.raises(GhCliError) as exc_info:
            gh.check_auth()

        assert exc_info.value.kind == GhCliErrorKind.AUTH_FAILED


class TestToProviderError:
    """Tests for mapping gh failures onto the provider taxonomy."""

    @pytest.mark.parametrize("kind,message,expected", [
        (GhCliErrorKind.AUTH_FAILED, "x", ProviderErrorKind.AUTH_FAILED),
        (GhCliErrorKind.NOT_AVAILABLE, "", ProviderErrorKind.CLI_NOT_INSTALLED),
        (GhCliErrorKind.COMMAND_FAILED, "HTTP 403: Forbidden", ProviderErrorKind.INSUFFICIENT_PERMISSIONS),
        (GhCliErrorKind.COMMAND_FAILED, "HTTP 404: Not Found", ProviderErrorKind.REPO_NOT_FOUND_OR_NO_ACCESS),
        (GhCliErrorKind.COMMAND_FAILED, "connection reset", ProviderErrorKind.PULL_REQUEST),
        (GhCliErrorKind.UNEXPECTED_OUTPUT, "garbage", ProviderErrorKind.PULL_REQUEST),
    ])
    def test_mapping(self, kind, message, expected) -> None:
        assert GhCliError(kind, message).to_provider_error().kind == expected


class TestCreatePr:
    """Tests for GhCli.create_pr."""

    @patch("prflow.gh_cli.subprocess.run")
    def test_parses_url_from_output(self, mock_run, gh) -> None:
        mock_run.return_value = completed(stdout="https://github.com/acme/widgets/pull/42\n")
        request = CreatePrRequest(title="Add feature", body="Details", head_branch="feat", base_branch="main", draft=True)

        pr = gh.create_pr(request, GitHubRepoInfo(owner="acme", repo_name="widgets"))

        assert pr.number == 42
        assert pr.url == "https://github.com/acme/widgets/pull/42"
        assert pr.status == MergeStatus.OPEN

        args = mock_run.call_args[0][0]
        assert args[:3] == ["gh", "pr", "create"]
        assert args[args.index("--repo") + 1] == "acme/widgets"
        assert args[args.index("--head") + 1] == "feat"
        assert args[args.index("--base") + 1] == "main"
        assert "--draft" in args

    @patch("prflow.gh_cli.subprocess.run")
    def test_not_draft_omits_flag(self, mock_run, gh) -> None:
        mock_run.return_value = completed(stdout="https://github.com/acme/widgets/pull/1")
        request = CreatePrRequest(title="t", head_branch="feat", base_branch="main")

        gh.create_pr(request, GitHubRepoInfo(owner="acme", repo_name="widgets"))

        assert "--draft" not in mock_run.call_args[0][0]

    @patch("prflow.gh_cli.subprocess.run")
    def test_missing_url_is_unexpected_output(self, mock_run, gh) -> None:
        mock_run.return_value = completed(stdout="Warning: something odd")
        request = CreatePrRequest(title="t", head_branch="feat", base_branch="main")

        with pytest.raises(GhCliError) as exc_info:
            gh.create_pr(request, GitHubRepoInfo(owner="acme", repo_name="widgets"))

        assert exc_info.value.kind == GhCliErrorKind.UNEXPECTED_OUTPUT


class TestViewAndList:
    """Tests for PR status lookups."""

    @patch("prflow.gh_cli.subprocess.run")
    def test_view_merged_pr(self, mock_run, gh) -> None:
        mock_run.return_value = completed(stdout=json.dumps({
            "number": 7,
            "url": "https://github.com/acme/widgets/pull/7",
            "state": "MERGED",
            "mergedAt": "2024-01-02T00:00:00Z",
            "mergeCommit": {"oid": "abc123"},
        }))

        pr = gh.view_pr("https://github.com/acme/widgets/pull/7")

        assert pr.status == MergeStatus.MERGED
        assert pr.merge_commit_sha == "abc123"

    @patch("prflow.gh_cli.subprocess.run")
    def test_view_non_object_output(self, mock_run, gh) -> None:
        mock_run.return_value = completed(stdout="[]")

        with pytest.raises(GhCliError) as exc_info:
            gh.view_pr("https://github.com/acme/widgets/pull/7")

        assert exc_info.value.kind == GhCliErrorKind.UNEXPECTED_OUTPUT

    @patch("prflow.gh_cli.subprocess.run")
    def test_list_orders_open_first(self, mock_run, gh) -> None:
        mock_run.return_value = completed(stdout=json.dumps([
            {"number": 1, "url": "https://github.com/a/b/pull/1", "state": "CLOSED", "mergedAt": None, "mergeCommit": None},
            {"number": 2, "url": "https://github.com/a/b/pull/2", "state": "MERGED", "mergedAt": "2024-01-01T00:00:00Z", "mergeCommit": {"oid": "sha"}},
            {"number": 3, "url": "https://github.com/a/b/pull/3", "state": "OPEN", "mergedAt": None, "mergeCommit": None},
        ]))

        prs = gh.list_prs_for_branch("a", "b", "feat")

        assert [pr.number for pr in prs] == [3, 2, 1]
        args = mock_run.call_args[0][0]
        assert args[args.index("--head") + 1] == "feat"
        assert args[args.index("--state") + 1] == "all"

    @patch("prflow.gh_cli.subprocess.run")
    def test_list_empty(self, mock_run, gh) -> None:
        mock_run.return_value = completed(stdout="")
        assert gh.list_prs_for_branch("a", "b", "feat") == []


class TestComments:
    """Tests for comment fetching."""

    @patch("prflow.gh_cli.subprocess.run")
    def test_general_comments(self, mock_run, gh) -> None:
        mock_run.return_value = completed(stdout=json.dumps({"comments": [{
            "id": "IC_1",
            "author": {"login": "alice"},
            "authorAssociation": "MEMBER",
            "body": "Looks good",
            "createdAt": "2024-01-01T10:00:00Z",
            "url": "https://github.com/a/b/pull/1#issuecomment-1",
        }]}))

        comments = gh.get_pr_comments("a", "b", 1)

        assert len(comments) == 1
        assert comments[0].author == "alice"
        assert comments[0].comment_type == "general"

    @patch("prflow.gh_cli.subprocess.run")
    def test_review_comments_across_pages(self, mock_run, gh) -> None:
        """Paginated output is several JSON arrays back to back."""
        page1 = [{"id": 1, "user": {"login": "bob"}, "body": "nit", "created_at": "2024-01-01T10:00:00Z", "path": "a.py", "line": 3, "diff_hunk": "@@"}]
        page2 = [{"id": 2, "user": None, "body": "fix", "created_at": "2024-01-02T10:00:00Z"}]
        mock_run.return_value = completed(stdout=json.dumps(page1) + "\n" + json.dumps(page2))

        comments = gh.get_pr_review_comments("a", "b", 1)

        assert [c.id for c in comments] == [1, 2]
        assert comments[0].path == "a.py"
        assert comments[0].line == 3
        assert comments[1].author == "unknown"
        assert mock_run.call_args[0][0][:3] == ["gh", "api", "repos/a/b/pulls/1/comments"]
