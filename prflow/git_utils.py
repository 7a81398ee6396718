"""Git CLI wrapper used by the PR workflow.

All functions shell out to ``git -C <path> ...``. Failures are reported as
``GitCliError`` with one of three kinds, so callers can tell a missing git
install or a credentials problem apart from everything else.
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# stderr fragments git prints when credentials are missing or rejected
_AUTH_FAILURE_MARKERS = (
    "authentication failed",
    "could not read username",
    "could not read password",
    "terminal prompts disabled",
    "permission denied (publickey)",
    "invalid username or password",
    "403 forbidden",
)


class GitCliErrorKind(str, Enum):
    AUTH_FAILED = "auth_failed"
    NOT_AVAILABLE = "not_available"
    COMMAND_FAILED = "command_failed"


class GitCliError(Exception):
    """A git invocation failed."""

    def __init__(self, kind: GitCliErrorKind, message: str = "") -> None:
        self.kind = kind
        self.message = message
        if kind == GitCliErrorKind.NOT_AVAILABLE:
            text = "git executable not found or not runnable"
        elif kind == GitCliErrorKind.AUTH_FAILED:
            text = f"git authentication failed: {message}"
        else:
            text = f"git command failed: {message}"
        super().__init__(text)


class BranchType(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True)
class GitRemote:
    name: str
    url: Optional[str]


def _classify_failure(stderr: str) -> GitCliError:
    lower = stderr.lower()
    if any(marker in lower for marker in _AUTH_FAILURE_MARKERS):
        return GitCliError(GitCliErrorKind.AUTH_FAILED, stderr.strip())
    return GitCliError(GitCliErrorKind.COMMAND_FAILED, stderr.strip())


def run_git(
    repo_path: PathLike,
    args: List[str],
    timeout: int = 60,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """Run a git command inside ``repo_path``.

    Terminal prompts are disabled so a missing credential fails fast
    instead of hanging the caller.

    Raises:
        GitCliError: NOT_AVAILABLE if git can't be executed; AUTH_FAILED or
            COMMAND_FAILED on a non-zero exit when ``check`` is true
    """
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
    try:
        result = subprocess.run(
            ["git", "-C", str(repo_path)] + args,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
        )
    except FileNotFoundError as e:
        raise GitCliError(GitCliErrorKind.NOT_AVAILABLE) from e
    except subprocess.TimeoutExpired as e:
        raise GitCliError(GitCliErrorKind.COMMAND_FAILED, f"git {' '.join(args)} timed out") from e

    if check and result.returncode != 0:
        raise _classify_failure(result.stderr or result.stdout or f"git {' '.join(args)} exited {result.returncode}")
    return result


class GitService:
    """The git operations the PR workflow depends on."""

    def get_all_remotes(self, repo_path: PathLike) -> List[GitRemote]:
        """List remotes with their fetch URLs, in ``git remote -v`` order.

        Args:
            repo_path: Repository or worktree path

        Returns:
            Remotes (url is None if git reports none)
        """
        result = run_git(repo_path, ["remote", "-v"], timeout=10)

        remotes: List[GitRemote] = []
        seen = set()
        for line in result.stdout.splitlines():
            parts = line.split()
            if not parts or parts[0] in seen:
                continue
            # Format: "<name>\t<url> (fetch)"
            if len(parts) >= 3 and parts[-1] != "(fetch)":
                continue
            seen.add(parts[0])
            url = parts[1] if len(parts) >= 2 else None
            remotes.append(GitRemote(name=parts[0], url=url))
        return remotes

    def get_default_remote(self, repo_path: PathLike) -> str:
        """Name of the remote to push to: ``origin`` if present, else the first one."""
        names = [r.name for r in self.get_all_remotes(repo_path)]
        if not names:
            raise GitCliError(GitCliErrorKind.COMMAND_FAILED, f"No remotes configured in {repo_path}")
        return "origin" if "origin" in names else names[0]

    def get_current_branch(self, repo_path: PathLike) -> str:
        """Get the branch checked out in ``repo_path``."""
        result = run_git(repo_path, ["rev-parse", "--abbrev-ref", "HEAD"], timeout=10)
        return result.stdout.strip()

    def find_branch_type(self, repo_path: PathLike, branch: str) -> BranchType:
        """Tell whether ``branch`` names a local branch or a remote-tracking ref.

        Local branches win when both exist.

        Raises:
            GitCliError: COMMAND_FAILED if neither exists
        """
        local = run_git(
            repo_path, ["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"], timeout=10, check=False
        )
        if local.returncode == 0:
            return BranchType.LOCAL

        remote = run_git(
            repo_path, ["show-ref", "--verify", "--quiet", f"refs/remotes/{branch}"], timeout=10, check=False
        )
        if remote.returncode == 0:
            return BranchType.REMOTE

        raise GitCliError(GitCliErrorKind.COMMAND_FAILED, f"Branch '{branch}' not found in {repo_path}")

    def get_remote_name_from_branch_name(self, repo_path: PathLike, branch: str) -> str:
        """Get the remote part of a remote-tracking branch name.

        ``origin/main`` -> ``origin``. The longest matching remote name wins so
        remotes containing slashes resolve correctly.

        Raises:
            GitCliError: COMMAND_FAILED if no remote prefixes the name
        """
        names = sorted((r.name for r in self.get_all_remotes(repo_path)), key=len, reverse=True)
        for name in names:
            if branch.startswith(f"{name}/"):
                return name
        raise GitCliError(GitCliErrorKind.COMMAND_FAILED, f"No remote found for branch '{branch}'")

    def split_remote_branch(self, repo_path: PathLike, branch: str) -> tuple[str, str]:
        """Split a branch into (remote, bare branch name).

        Names that don't start with a known remote are taken as bare names on
        the default remote.
        """
        try:
            remote = self.get_remote_name_from_branch_name(repo_path, branch)
        except GitCliError:
            return self.get_default_remote(repo_path), branch
        return remote, branch[len(remote) + 1:]

    def check_remote_branch_exists(self, repo_path: PathLike, branch: str) -> bool:
        """Check whether ``branch`` exists on its remote.

        Accepts both bare names (``main``) and remote-tracking names
        (``origin/main``). Queries the remote with ``git ls-remote``.

        Raises:
            GitCliError: AUTH_FAILED / NOT_AVAILABLE / COMMAND_FAILED
        """
        remote, name = self.split_remote_branch(repo_path, branch)
        result = run_git(
            repo_path, ["ls-remote", "--heads", remote, f"refs/heads/{name}"], timeout=60
        )
        return bool(result.stdout.strip())

    def push(self, worktree_path: PathLike, branch: str, force: bool = False) -> None:
        """Push ``branch`` to the same-named branch on the default remote.

        The refspec is explicit (``branch:branch``) so a feature branch that
        tracks ``origin/main`` never pushes onto main.

        Raises:
            GitCliError: AUTH_FAILED / NOT_AVAILABLE / COMMAND_FAILED
        """
        remote = self.get_default_remote(worktree_path)
        args = ["push"]
        if force:
            args.append("--force-with-lease")
        args.extend(["-u", remote, f"{branch}:{branch}"])

        logger.debug(f"Pushing {branch} to {remote} from {worktree_path}")
        run_git(worktree_path, args, timeout=300)
