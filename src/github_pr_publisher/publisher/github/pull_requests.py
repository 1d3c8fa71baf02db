"""Find-or-create reconciliation of the pull request for a published branch."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from github_pr_publisher.publisher.github.client import GitHubClient, PullRequest
from github_pr_publisher.publisher.labels import strip_leading_blank_lines

logger = logging.getLogger(__name__)


def default_title(message: str) -> str:
    """First non-blank line of the change message."""

    for line in message.splitlines():
        if line.strip():
            return line.strip()
    return ""


def default_body(message: str) -> str:
    """The change message with leading blank lines removed."""

    return strip_leading_blank_lines(message)


@dataclass(frozen=True, slots=True)
class PullRequestOutcome:
    pull_request: PullRequest | None
    number: int
    created: bool


class PullRequestManager:
    """Keeps at most one open PR per (repository, head branch).

    ``owner`` qualifies the head filter as ``owner:branch``; GitHub ignores an
    unqualified head. Fixed ``title``/``body`` always win over the values
    derived from the change message.
    """

    def __init__(
        self,
        *,
        github: GitHubClient,
        owner: str | None = None,
        title: str | None = None,
        body: str | None = None,
        update_description: bool = False,
    ) -> None:
        self._github = github
        self._owner = owner
        self._title = title
        self._body = body
        self._update_description = update_description

    def title_and_body(self, message: str) -> tuple[str, str]:
        title = self._title if self._title is not None else default_title(message)
        body = self._body if self._body is not None else default_body(message)
        return title, body

    def _head_filter(self, branch: str) -> str:
        return f"{self._owner}:{branch}" if self._owner else branch

    def find_open(self, *, branch: str, base: str) -> PullRequest | None:
        pulls = self._github.list_pull_requests(head=self._head_filter(branch), base=base)
        for pr in pulls:
            if pr.head_ref is not None and pr.head_ref != branch:
                continue
            if pr.base_ref is not None and pr.base_ref != base:
                continue
            if pr.state and pr.state != "open":
                continue
            return pr
        return None

    def reconcile(
        self,
        *,
        branch: str,
        base: str,
        message: str,
        known_number: int | None = None,
    ) -> PullRequestOutcome:
        """Ensure an open PR exists for ``branch`` and return it.

        ``known_number`` is the PR already recorded earlier in this run; it
        skips the lookup entirely.
        """

        title, body = self.title_and_body(message)

        if known_number is not None:
            if self._update_description:
                pr = self._github.update_pull_request(
                    pull_number=known_number, title=title, body=body
                )
                return PullRequestOutcome(pull_request=pr, number=pr.number, created=False)
            return PullRequestOutcome(pull_request=None, number=known_number, created=False)

        existing = self.find_open(branch=branch, base=base)
        if existing is not None:
            logger.info(
                "Found existing pull request",
                extra={"pull_number": existing.number, "branch": branch, "base": base},
            )
            if self._update_description:
                existing = self._github.update_pull_request(
                    pull_number=existing.number, title=title, body=body
                )
            return PullRequestOutcome(pull_request=existing, number=existing.number, created=False)

        created = self._github.create_pull_request(base=base, body=body, head=branch, title=title)
        return PullRequestOutcome(pull_request=created, number=created.number, created=True)
