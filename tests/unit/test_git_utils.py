"""Tests for prflow.git_utils module."""

import subprocess
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from prflow.git_utils import (
    BranchType,
    GitCliError,
    GitCliErrorKind,
    GitRemote,
    GitService,
    run_git,
)


def completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> Mock:
    return Mock(returncode=returncode, stdout=stdout, stderr=stderr)


REMOTES_OUTPUT = (
    "origin\tgit@github.com:acme/widgets.git (fetch)\n"
    "origin\tgit@github.com:acme/widgets.git (push)\n"
    "team/upstream\thttps://github.com/team/widgets.git (fetch)\n"
    "team/upstream\thttps://github.com/team/widgets.git (push)\n"
)


class TestRunGit:
    """Tests for the subprocess wrapper."""

    @patch("prflow.git_utils.subprocess.run")
    def test_runs_in_repo_without_prompts(self, mock_run, tmp_path: Path) -> None:
        mock_run.return_value = completed(stdout="main\n")

        run_git(tmp_path, ["rev-parse", "HEAD"])

        args = mock_run.call_args[0][0]
        assert args[:3] == ["git", "-C", str(tmp_path)]
        assert mock_run.call_args[1]["env"]["GIT_TERMINAL_PROMPT"] == "0"

    @patch("prflow.git_utils.subprocess.run")
    def test_missing_git(self, mock_run, tmp_path: Path) -> None:
        mock_run.side_effect = FileNotFoundError("git")

        with pytest.raises(GitCliError) as exc_info:
            run_git(tmp_path, ["status"])

        assert exc_info.value.kind == GitCliErrorKind.NOT_AVAILABLE

    @pytest.mark.parametrize("stderr", [
        "fatal: Authentication failed for 'https://github.com/a/b.git/'",
        "fatal: could not read Username for 'https://github.com': terminal prompts disabled",
        "git@github.com: Permission denied (publickey).",
    ])
    @patch("prflow.git_utils.subprocess.run")
    def test_auth_failures(self, mock_run, stderr: str, tmp_path: Path) -> None:
        mock_run.return_value = completed(returncode=128, stderr=stderr)

        with pytest.raises(GitCliError) as exc_info:
            run_git(tmp_path, ["push"])

        assert exc_info.value.kind == GitCliErrorKind.AUTH_FAILED

    @patch("prflow.git_utils.subprocess.run")
    def test_other_failure(self, mock_run, tmp_path: Path) -> None:
        mock_run.return_value = completed(returncode=1, stderr="fatal: not a git repository")

        with pytest.raises(GitCliError) as exc_info:
            run_git(tmp_path, ["status"])

        assert exc_info.value.kind == GitCliErrorKind.COMMAND_FAILED
        assert "not a git repository" in exc_info.value.message

    @patch("prflow.git_utils.subprocess.run")
    def test_unchecked_returns_failure(self, mock_run, tmp_path: Path) -> None:
        mock_run.return_value = completed(returncode=1)
        assert run_git(tmp_path, ["show-ref"], check=False).returncode == 1

    @patch("prflow.git_utils.subprocess.run")
    def test_timeout(self, mock_run, tmp_path: Path) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="git", timeout=1)

        with pytest.raises(GitCliError) as exc_info:
            run_git(tmp_path, ["fetch"])

        assert exc_info.value.kind == GitCliErrorKind.COMMAND_FAILED


class TestRemotes:
    """Tests for remote discovery and branch naming."""

    @patch("prflow.git_utils.subprocess.run")
    def test_get_all_remotes(self, mock_run, tmp_path: Path) -> None:
        mock_run.return_value = completed(stdout=REMOTES_OUTPUT)

        remotes = GitService().get_all_remotes(tmp_path)

        assert remotes == [
            GitRemote(name="origin", url="git@github.com:acme/widgets.git"),
            GitRemote(name="team/upstream", url="https://github.com/team/widgets.git"),
        ]

    @patch("prflow.git_utils.subprocess.run")
    def test_default_remote_prefers_origin(self, mock_run, tmp_path: Path) -> None:
        mock_run.return_value = completed(stdout=REMOTES_OUTPUT)
        assert GitService().get_default_remote(tmp_path) == "origin"

    @patch("prflow.git_utils.subprocess.run")
    def test_default_remote_none(self, mock_run, tmp_path: Path) -> None:
        mock_run.return_value = completed(stdout="")

        with pytest.raises(GitCliError):
            GitService().get_default_remote(tmp_path)

    @patch("prflow.git_utils.subprocess.run")
    def test_remote_name_longest_match(self, mock_run, tmp_path: Path) -> None:
        """A remote whose name contains a slash still resolves."""
        mock_run.return_value = completed(stdout=REMOTES_OUTPUT)
        git = GitService()

        assert git.get_remote_name_from_branch_name(tmp_path, "origin/main") == "origin"
        assert git.get_remote_name_from_branch_name(tmp_path, "team/upstream/dev") == "team/upstream"

    @patch("prflow.git_utils.subprocess.run")
    def test_split_bare_name_uses_default_remote(self, mock_run, tmp_path: Path) -> None:
        mock_run.return_value = completed(stdout=REMOTES_OUTPUT)

        assert GitService().split_remote_branch(tmp_path, "main") == ("origin", "main")
        assert GitService().split_remote_branch(tmp_path, "origin/release/1.0") == ("origin", "release/1.0")


class TestBranches:
    """Tests for branch queries and push."""

    @patch("prflow.git_utils.subprocess.run")
    def test_find_branch_type_local(self, mock_run, tmp_path: Path) -> None:
        mock_run.return_value = completed(returncode=0)
        assert GitService().find_branch_type(tmp_path, "main") == BranchType.LOCAL

    @patch("prflow.git_utils.subprocess.run")
    def test_find_branch_type_remote(self, mock_run, tmp_path: Path) -> None:
        mock_run.side_effect = [completed(returncode=1), completed(returncode=0)]
        assert GitService().find_branch_type(tmp_path, "origin/main") == BranchType.REMOTE

    @patch("prflow.git_utils.subprocess.run")
    def test_find_branch_type_missing(self, mock_run, tmp_path: Path) -> None:
        mock_run.return_value = completed(returncode=1)

        with pytest.raises(GitCliError):
            GitService().find_branch_type(tmp_path, "nope")

    @patch("prflow.git_utils.subprocess.run")
    def test_remote_branch_exists(self, mock_run, tmp_path: Path) -> None:
        mock_run.side_effect = [
            completed(stdout=REMOTES_OUTPUT),
            completed(stdout="abc123\trefs/heads/main\n"),
        ]

        assert GitService().check_remote_branch_exists(tmp_path, "origin/main") is True
        assert mock_run.call_args[0][0][3:] == ["ls-remote", "--heads", "origin", "refs/heads/main"]

    @patch("prflow.git_utils.subprocess.run")
    def test_remote_branch_missing(self, mock_run, tmp_path: Path) -> None:
        mock_run.side_effect = [
            completed(stdout=REMOTES_OUTPUT),
            completed(stdout=REMOTES_OUTPUT),
            completed(stdout=""),
        ]
        assert GitService().check_remote_branch_exists(tmp_path, "gone") is False

    @patch("prflow.git_utils.subprocess.run")
    def test_push_uses_explicit_refspec(self, mock_run, tmp_path: Path) -> None:
        mock_run.side_effect = [completed(stdout=REMOTES_OUTPUT), completed()]

        GitService().push(tmp_path, "feature/x")

        assert mock_run.call_args[0][0][3:] == ["push", "-u", "origin", "feature/x:feature/x"]

    @patch("prflow.git_utils.subprocess.run")
    def test_force_push_with_lease(self, mock_run, tmp_path: Path) -> None:
        mock_run.side_effect = [completed(stdout=REMOTES_OUTPUT), completed()]

        GitService().push(tmp_path, "feature/x", force=True)

        assert "--force-with-lease" in mock_run.call_args[0][0]

    @patch("prflow.git_utils.subprocess.run")
    def test_current_branch(self, mock_run, tmp_path: Path) -> None:
        mock_run.return_value = completed(stdout="feature/x\n")
        assert GitService().get_current_branch(tmp_path) == "feature/x"
