"""Git remote URL parsing and hosting-provider detection.

Parses remote URLs such as:
- git@github.com:owner/repo.git
- https://github.com/owner/repo.git
- https://gitlab.example.com/owner/repo
- https://dev.azure.com/org/project/_git/repo
- https://org.visualstudio.com/project/_git/repo

into a ``RepoInfo``. Nothing in this module touches the network or the
filesystem.
"""

import re
from dataclasses import dataclass
from enum import Enum

from prflow.errors import invalid_url


class GitProviderKind(str, Enum):
    """Git hosting provider identified from a remote URL."""

    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"
    AZURE_DEVOPS = "azure_devops"
    GENERIC = "generic"


@dataclass(frozen=True)
class GitHubRepoInfo:
    """Owner/name pair used by the gh CLI (``--repo owner/name``)."""

    owner: str
    repo_name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo_name}"


@dataclass(frozen=True)
class RepoInfo:
    """Repository descriptor derived from a remote URL."""

    kind: GitProviderKind
    owner: str  # owner / organization / workspace
    repo_name: str
    base_url: str  # web URL, e.g. https://github.com/owner/repo
    host: str

    @classmethod
    def from_remote_url(cls, remote_url: str) -> "RepoInfo":
        """Detect the provider and parse a remote URL.

        Args:
            remote_url: Remote URL as configured in git (SSH or HTTPS)

        Returns:
            Parsed repository descriptor

        Raises:
            GitProviderError: (INVALID_URL) if the URL can't be parsed
        """
        url = remote_url.strip()

        if "github.com" in url:
            return _parse_github_url(url)
        if "gitlab.com" in url or "gitlab" in url:
            return _parse_gitlab_url(url)
        if "bitbucket.org" in url:
            return _parse_bitbucket_url(url)
        if "dev.azure.com" in url or "visualstudio.com" in url:
            return _parse_azure_devops_url(url)
        return _parse_generic_url(url)

    def to_github_repo_info(self) -> GitHubRepoInfo:
        return GitHubRepoInfo(owner=self.owner, repo_name=self.repo_name)


# Trailing part shared by every pattern: optional .git, then a slash or the end
_TAIL = r"(?:\.git)?(?:/|$)"

_GITHUB_RE = re.compile(r"github\.com[:/](?P<owner>[^/]+)/(?P<repo>[^/]+?)" + _TAIL)
_BITBUCKET_RE = re.compile(r"bitbucket\.org[:/](?P<owner>[^/]+)/(?P<repo>[^/]+?)" + _TAIL)

# [scheme://][user@]host[:port][:/]owner/repo[.git]
_HOSTED_RE = re.compile(
    r"^(?:[A-Za-z][A-Za-z0-9+.-]*://)?(?:[^@/]+@)?(?P<host>[^:/@]+)(?::\d+)?[:/]"
    r"(?P<owner>[^/]+)/(?P<repo>[^/]+?)" + _TAIL
)

_AZURE_NEW_RE = re.compile(
    r"dev\.azure\.com/(?P<owner>[^/]+)/(?P<project>[^/]+)/_git/(?P<repo>[^/]+?)" + _TAIL
)
_AZURE_SSH_RE = re.compile(
    r"ssh\.dev\.azure\.com:v3/(?P<owner>[^/]+)/(?P<project>[^/]+)/(?P<repo>[^/]+?)" + _TAIL
)
_AZURE_LEGACY_RE = re.compile(
    r"(?P<owner>[^./@:]+)\.visualstudio\.com/(?P<project>[^/]+)/_git/(?P<repo>[^/]+?)" + _TAIL
)


def _parse_github_url(url: str) -> RepoInfo:
    match = _GITHUB_RE.search(url)
    if not match:
        raise invalid_url(f"Invalid GitHub URL format: {url}")

    owner, repo = match.group("owner"), match.group("repo")
    return RepoInfo(
        kind=GitProviderKind.GITHUB,
        owner=owner,
        repo_name=repo,
        base_url=f"https://github.com/{owner}/{repo}",
        host="github.com",
    )


def _parse_gitlab_url(url: str) -> RepoInfo:
    # gitlab.com and self-hosted instances share one pattern
    match = _HOSTED_RE.match(url)
    if not match:
        raise invalid_url(f"Invalid GitLab URL format: {url}")

    host, owner, repo = match.group("host"), match.group("owner"), match.group("repo")
    if "gitlab.com" in host:
        base_url = f"https://gitlab.com/{owner}/{repo}"
    else:
        base_url = f"https://{host}/{owner}/{repo}"

    return RepoInfo(
        kind=GitProviderKind.GITLAB,
        owner=owner,
        repo_name=repo,
        base_url=base_url,
        host=host,
    )


def _parse_bitbucket_url(url: str) -> RepoInfo:
    match = _BITBUCKET_RE.search(url)
    if not match:
        raise invalid_url(f"Invalid Bitbucket URL format: {url}")

    owner, repo = match.group("owner"), match.group("repo")
    return RepoInfo(
        kind=GitProviderKind.BITBUCKET,
        owner=owner,
        repo_name=repo,
        base_url=f"https://bitbucket.org/{owner}/{repo}",
        host="bitbucket.org",
    )


def _parse_azure_devops_url(url: str) -> RepoInfo:
    # Path style first (dev.azure.com/org/project/_git/repo), SSH v3 next,
    # then the legacy org.visualstudio.com/project/_git/repo form
    match = _AZURE_NEW_RE.search(url) or _AZURE_SSH_RE.search(url)
    if match:
        owner, project, repo = match.group("owner"), match.group("project"), match.group("repo")
        return RepoInfo(
            kind=GitProviderKind.AZURE_DEVOPS,
            owner=owner,
            repo_name=repo,
            base_url=f"https://dev.azure.com/{owner}/{project}/_git/{repo}",
            host="dev.azure.com",
        )

    match = _AZURE_LEGACY_RE.search(url)
    if match:
        owner, project, repo = match.group("owner"), match.group("project"), match.group("repo")
        return RepoInfo(
            kind=GitProviderKind.AZURE_DEVOPS,
            owner=owner,
            repo_name=repo,
            base_url=f"https://{owner}.visualstudio.com/{project}/_git/{repo}",
            host=f"{owner}.visualstudio.com",
        )

    raise invalid_url(f"Invalid Azure DevOps URL format: {url}")


def _parse_generic_url(url: str) -> RepoInfo:
    match = _HOSTED_RE.match(url)
    if not match:
        raise invalid_url(f"Invalid git URL format: {url}")

    host, owner, repo = match.group("host"), match.group("owner"), match.group("repo")
    return RepoInfo(
        kind=GitProviderKind.GENERIC,
        owner=owner,
        repo_name=repo,
        base_url=f"https://{host}/{owner}/{repo}",
        host=host,
    )
