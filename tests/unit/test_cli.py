"""Tests for CLI commands."""

from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest

from prflow.cli import main
from prflow.errors import GitProviderError, ProviderErrorKind
from prflow.models import MergeStatus, PrRecord, PullRequestInfo
from prflow.pr_actions import (
    AttachPrResponse,
    CreatePrError,
    CreatePrErrorType,
    CreatePrResult,
    PrCommentsResult,
)
from prflow.store import YamlPrStore

PR_URL = "https://github.com/acme/widgets/pull/42"


@pytest.fixture
def mock_orchestrator():
    """Patch the orchestrator the pr commands construct."""
    with patch("prflow.cli.pr.PrOrchestrator") as cls:
        yield cls.return_value


class TestDetectCommand:
    """Tests for the detect command."""

    def test_detect_url(self, cli_runner):
        result = cli_runner.invoke(main, ["detect", "https://gitlab.example.com/team/app.git"])

        assert result.exit_code == 0
        assert "gitlab" in result.output
        assert "basic" in result.output
        assert "gitlab.example.com" in result.output

    def test_detect_repository_path(self, cli_runner, tmp_path: Path):
        with patch("prflow.cli.detect.first_remote_url", return_value="git@github.com:acme/widgets.git"):
            result = cli_runner.invoke(main, ["detect", str(tmp_path)])

        assert result.exit_code == 0
        assert "github" in result.output
        assert "full" in result.output
        assert "widgets" in result.output

    def test_detect_invalid(self, cli_runner):
        result = cli_runner.invoke(main, ["detect", "not a url"])

        assert result.exit_code == 1
        assert "Error" in result.output


class TestLimitsCommands:
    """Tests for the limits and run commands."""

    def test_limits_table(self, cli_runner):
        result = cli_runner.invoke(main, ["limits"])

        assert result.exit_code == 0
        assert "MAKEFLAGS" in result.output
        assert "CARGO_BUILD_JOBS" in result.output
        assert "+10" in result.output

    def test_run_passes_arguments_through(self, cli_runner):
        proc = Mock()
        proc.wait.return_value = 3
        with patch("prflow.cli.limits.spawn_limited", return_value=proc) as mock_spawn:
            result = cli_runner.invoke(main, ["run", "make", "-k", "all"])

        assert result.exit_code == 3
        mock_spawn.assert_called_once_with(["make", "-k", "all"], nice_value=10)

    def test_run_missing_command(self, cli_runner):
        with patch("prflow.cli.limits.spawn_limited", side_effect=FileNotFoundError()):
            result = cli_runner.invoke(main, ["run", "no-such-tool"])

        assert result.exit_code == 127
        assert "command not found" in result.output


class TestPrCreateCommand:
    """Tests for pr create."""

    def test_create_success(self, cli_runner, mock_orchestrator, tmp_path: Path):
        mock_orchestrator.create_pr = AsyncMock(return_value=CreatePrResult(
            success=True, pr_url=PR_URL, pr_number=42, target_branch="main", state="created"
        ))

        result = cli_runner.invoke(main, ["pr", "create", "--title", "Add login", "--branch", "feature-x", "--draft"])

        assert result.exit_code == 0
        assert "Created PR #42" in result.output

        workspace, repo, workspace_repo, options = mock_orchestrator.create_pr.await_args[0]
        assert workspace.id == "feature-x"
        assert workspace.branch == "feature-x"
        assert repo.name == tmp_path.name
        assert workspace_repo.target_branch == "main"
        assert options.title == "Add login"
        assert options.draft is True
        assert options.open_in_browser is None

        store = YamlPrStore(tmp_path / ".prflow")
        assert store.get_workspace("feature-x") is not None
        assert store.get_task("feature-x").title == "Add login"

    def test_create_no_browser(self, cli_runner, mock_orchestrator):
        mock_orchestrator.create_pr = AsyncMock(return_value=CreatePrResult(success=True, pr_url=PR_URL, pr_number=42))

        cli_runner.invoke(main, ["pr", "create", "--title", "t", "--branch", "b", "--no-browser"])

        options = mock_orchestrator.create_pr.await_args[0][3]
        assert options.open_in_browser is False
        assert options.draft is None

    def test_create_target_missing(self, cli_runner, mock_orchestrator):
        mock_orchestrator.create_pr = AsyncMock(return_value=CreatePrResult(
            success=False,
            state="target_missing",
            error=CreatePrError(type=CreatePrErrorType.TARGET_BRANCH_NOT_FOUND, branch="release"),
        ))

        result = cli_runner.invoke(main, ["pr", "create", "--title", "t", "--branch", "b", "--target", "release"])

        assert result.exit_code == 1
        assert "'release' does not exist" in result.output

    def test_create_manual_url(self, cli_runner, mock_orchestrator):
        mock_orchestrator.create_pr = AsyncMock(return_value=CreatePrResult(
            success=False,
            state="failed",
            error=CreatePrError(
                type=CreatePrErrorType.OPERATION_NOT_SUPPORTED,
                message="manual",
                manual_url="https://bitbucket.org/ws/app/pull-requests/new",
            ),
        ))

        result = cli_runner.invoke(main, ["pr", "create", "--title", "t", "--branch", "b"])

        assert result.exit_code == 1
        assert "Create it manually" in result.output

    def test_create_already_exists(self, cli_runner, mock_orchestrator):
        mock_orchestrator.create_pr = AsyncMock(return_value=CreatePrResult(
            success=True, pr_url=PR_URL, pr_number=42, already_existed=True, state="attached"
        ))

        result = cli_runner.invoke(main, ["pr", "create", "--title", "t", "--branch", "b"])

        assert result.exit_code == 0
        assert "already exists" in result.output


class TestPrAttachCommand:
    """Tests for pr attach."""

    def test_attach_found(self, cli_runner, mock_orchestrator):
        mock_orchestrator.attach_existing_pr = AsyncMock(return_value=AttachPrResponse(
            pr_attached=True, pr_url=PR_URL, pr_number=42, pr_status=MergeStatus.MERGED
        ))

        result = cli_runner.invoke(main, ["pr", "attach", "--branch", "b"])

        assert result.exit_code == 0
        assert "Attached PR #42 (merged)" in result.output

    def test_attach_none(self, cli_runner, mock_orchestrator):
        mock_orchestrator.attach_existing_pr = AsyncMock(return_value=AttachPrResponse(pr_attached=False))

        result = cli_runner.invoke(main, ["pr", "attach", "--branch", "b"])

        assert result.exit_code == 0
        assert "No PR found" in result.output

    def test_attach_provider_error(self, cli_runner, mock_orchestrator):
        mock_orchestrator.attach_existing_pr = AsyncMock(
            side_effect=GitProviderError(ProviderErrorKind.AUTH_FAILED, "not logged in")
        )

        result = cli_runner.invoke(main, ["pr", "attach", "--branch", "b"])

        assert result.exit_code == 1
        assert "gh auth login" in result.output


class TestPrCommentsAndStatus:
    """Tests for pr comments and pr status."""

    def test_no_comments(self, cli_runner, mock_orchestrator):
        mock_orchestrator.get_pr_comments = AsyncMock(return_value=PrCommentsResult())

        result = cli_runner.invoke(main, ["pr", "comments", "--branch", "b"])

        assert result.exit_code == 0
        assert "No comments" in result.output

    def test_status_no_record(self, cli_runner, mock_orchestrator):
        mock_orchestrator.refresh_pr_status = AsyncMock(return_value=None)

        result = cli_runner.invoke(main, ["pr", "status", "--branch", "b"])

        assert result.exit_code == 0
        assert "No PR recorded" in result.output

    def test_status_table(self, cli_runner, mock_orchestrator):
        mock_orchestrator.refresh_pr_status = AsyncMock(return_value=PrRecord(
            id="r1",
            workspace_id="b",
            repo_id="repo",
            target_branch="main",
            pr_info=PullRequestInfo(number=42, url=PR_URL, status=MergeStatus.CLOSED),
        ))

        result = cli_runner.invoke(main, ["pr", "status", "--branch", "b"])

        assert result.exit_code == 0
        assert "closed" in result.output
        assert "PR #42" in result.output
