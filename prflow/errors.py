"""Error taxonomy shared by the provider layer.

Every failure a git provider can report is a ``GitProviderError`` tagged with
one ``ProviderErrorKind``. Callers branch on ``error.kind`` rather than on
subclasses, so the set of outcomes stays closed.
"""

from enum import Enum
from typing import Optional


class ProviderErrorKind(str, Enum):
    """Closed set of provider failure kinds."""

    INVALID_URL = "invalid_url"
    UNSUPPORTED_PROVIDER = "unsupported_provider"
    OPERATION_NOT_SUPPORTED = "operation_not_supported"
    REPOSITORY = "repository"
    PULL_REQUEST = "pull_request"
    AUTH_FAILED = "auth_failed"
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"
    REPO_NOT_FOUND_OR_NO_ACCESS = "repo_not_found_or_no_access"
    CLI_NOT_INSTALLED = "cli_not_installed"


# Kinds that will fail the same way no matter how often they are retried
NON_RETRYABLE_KINDS = frozenset({
    ProviderErrorKind.AUTH_FAILED,
    ProviderErrorKind.INSUFFICIENT_PERMISSIONS,
    ProviderErrorKind.REPO_NOT_FOUND_OR_NO_ACCESS,
    ProviderErrorKind.CLI_NOT_INSTALLED,
    ProviderErrorKind.UNSUPPORTED_PROVIDER,
    ProviderErrorKind.OPERATION_NOT_SUPPORTED,
})

_PREFIXES = {
    ProviderErrorKind.INVALID_URL: "Invalid URL format",
    ProviderErrorKind.UNSUPPORTED_PROVIDER: "Provider not supported",
    ProviderErrorKind.OPERATION_NOT_SUPPORTED: "Operation not supported by this provider",
    ProviderErrorKind.REPOSITORY: "Repository error",
    ProviderErrorKind.PULL_REQUEST: "Pull request error",
    ProviderErrorKind.AUTH_FAILED: "Authentication failed",
    ProviderErrorKind.INSUFFICIENT_PERMISSIONS: "Insufficient permissions",
    ProviderErrorKind.REPO_NOT_FOUND_OR_NO_ACCESS: "Repository not found or no access",
    ProviderErrorKind.CLI_NOT_INSTALLED: "CLI tool not installed",
}

_REMEDIATION = {
    ProviderErrorKind.AUTH_FAILED: "Authenticate with the hosting CLI: run 'gh auth login'.",
    ProviderErrorKind.INSUFFICIENT_PERMISSIONS: (
        "Check that your account can push to and open pull requests on this repository "
        "('gh auth refresh -s repo' may grant the missing scope)."
    ),
    ProviderErrorKind.REPO_NOT_FOUND_OR_NO_ACCESS: (
        "Check the remote URL and that the authenticated account has access to the repository."
    ),
    ProviderErrorKind.CLI_NOT_INSTALLED: (
        "Install the GitHub CLI from https://cli.github.com/ and authenticate with 'gh auth login'."
    ),
}


class GitProviderError(Exception):
    """A failure reported by a git hosting provider.

    Attributes:
        kind: Which member of the closed taxonomy this is
        message: Detail text (without the kind prefix)
        manual_url: Ready-to-open web URL for creating the PR by hand, when the
            provider could build one
    """

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        manual_url: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.manual_url = manual_url
        super().__init__(f"{_PREFIXES[kind]}: {message}")

    @property
    def should_retry(self) -> bool:
        """Whether this error is worth retrying."""
        return self.kind not in NON_RETRYABLE_KINDS

    @property
    def remediation(self) -> Optional[str]:
        """Actionable hint for the user, if there is one."""
        return _REMEDIATION.get(self.kind)

    def __repr__(self) -> str:
        return f"GitProviderError({self.kind.value!r}, {self.message!r})"


def invalid_url(message: str) -> GitProviderError:
    return GitProviderError(ProviderErrorKind.INVALID_URL, message)


def repository_error(message: str) -> GitProviderError:
    return GitProviderError(ProviderErrorKind.REPOSITORY, message)


def not_supported(message: str, manual_url: Optional[str] = None) -> GitProviderError:
    return GitProviderError(ProviderErrorKind.OPERATION_NOT_SUPPORTED, message, manual_url=manual_url)
