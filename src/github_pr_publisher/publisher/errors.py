"""Error taxonomy for the PR publisher.

Validation errors abort before any remote mutation. Repository errors carry a
``retryable`` flag for the caller; nothing is retried inside the publisher.
"""

from __future__ import annotations


class PublisherError(Exception):
    """Base class for publisher failures."""


class DestinationValidationError(PublisherError, ValueError):
    """Raised for misconfiguration detected before touching the remote."""


class EmptyChangeError(PublisherError):
    """Raised when a snapshot does not change the destination tree."""


class RepoError(PublisherError):
    """Raised when git transport or the hosting API fails."""

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class GitHubApiError(RepoError):
    """Unexpected HTTP status or malformed response from the GitHub API."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message, retryable=False)
        self.status_code = status_code


class ForeignBranchUpdate(RepoError):
    """The remote branch moved away from the commit this writer chain last pushed."""

    def __init__(self, *, branch: str, expected: str | None, actual: str | None) -> None:
        super().__init__(
            f"Branch '{branch}' was updated outside this run "
            f"(expected {expected or 'nothing'}, found {actual or 'nothing'}); "
            "rerun without a previous writer to replace it",
            retryable=True,
        )
        self.branch = branch
        self.expected = expected
        self.actual = actual
