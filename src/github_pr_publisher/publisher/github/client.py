"""GitHub REST client for pull request reconciliation.

Only the pulls endpoints are needed: list open PRs for a head/base pair,
create one, and optionally rewrite its title/body. Transport-level retries are
left to the HTTP stack; any unexpected status is surfaced as
:class:`GitHubApiError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

from github_pr_publisher.publisher.errors import GitHubApiError

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 30


@dataclass(frozen=True, slots=True)
class PullRequest:
    """Pull request fields the publisher reads."""

    number: int
    state: str
    title: str
    body: str
    head_ref: str | None = None
    base_ref: str | None = None


class GitHubClient:
    """Small wrapper around the GitHub pulls REST API for one repository."""

    def __init__(
        self,
        *,
        token: str,
        repository: str,
        base_url: str = "https://api.github.com",
        session: requests.Session | None = None,
    ) -> None:
        if not token:
            raise ValueError("GitHub token is required")
        if not repository.strip("/"):
            raise ValueError("GitHub repository is required")

        self._repository_name = repository.strip("/")
        self._rest_base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "github-pr-publisher",
            }
        )

    @property
    def repository(self) -> str:
        """Return the configured repository name ("owner/repo")."""

        return self._repository_name

    def _repo_url(self, *, path: str) -> str:
        path = path.lstrip("/")
        url = f"{self._rest_base_url}/repos/{self._repository_name}"
        return f"{url}/{path}" if path else url

    def _pulls_url(self, *, pull_number: int | None = None) -> str:
        if pull_number is None:
            return self._repo_url(path="pulls")
        if pull_number <= 0:
            raise ValueError("pull_number must be a positive integer")
        return self._repo_url(path=f"pulls/{pull_number}")

    @staticmethod
    def _check(resp: requests.Response, operation: str) -> None:
        if 200 <= resp.status_code < 300:
            return
        detail = ""
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict) and isinstance(payload.get("message"), str):
            detail = f": {payload['message']}"
        raise GitHubApiError(
            f"GitHub API {operation} failed with HTTP {resp.status_code}{detail}",
            status_code=resp.status_code,
        )

    @staticmethod
    def _json(resp: requests.Response, operation: str) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise GitHubApiError(
                f"GitHub API {operation} returned a malformed body",
                status_code=resp.status_code,
            ) from e

    @staticmethod
    def _parse_pull_request_json(data: object) -> PullRequest:
        if not isinstance(data, dict):
            raise GitHubApiError("Invalid pull request response: expected an object")

        number = data.get("number")
        if not isinstance(number, int) or isinstance(number, bool) or number <= 0:
            raise GitHubApiError("Invalid pull request response: missing number")

        state = data.get("state")
        if not isinstance(state, str):
            state = ""

        title = data.get("title")
        if not isinstance(title, str):
            title = ""

        body = data.get("body")
        if not isinstance(body, str):
            body = ""

        head_ref: str | None = None
        head = data.get("head")
        if isinstance(head, dict) and isinstance(head.get("ref"), str):
            head_ref = head["ref"]

        base_ref: str | None = None
        base = data.get("base")
        if isinstance(base, dict) and isinstance(base.get("ref"), str):
            base_ref = base["ref"]

        return PullRequest(
            number=number,
            state=state,
            title=title,
            body=body,
            head_ref=head_ref,
            base_ref=base_ref,
        )

    def list_pull_requests(
        self, *, head: str, base: str, state: str = "open"
    ) -> list[PullRequest]:
        """List PRs for a head/base pair, following basic pagination.

        ``head`` is sent as given; GitHub only filters on it when it is
        qualified as ``owner:branch``. A 404 (unknown repository) is treated as
        "no pull requests".
        """

        url = self._pulls_url()
        per_page = 100
        pulls: list[PullRequest] = []
        for page in range(1, 11):
            resp = self._session.get(
                url,
                params={
                    "head": head,
                    "base": base,
                    "state": state,
                    "per_page": per_page,
                    "page": page,
                },
                timeout=_TIMEOUT_SECONDS,
            )
            if resp.status_code == 404:
                logger.warning(
                    "Repository not found while listing pull requests",
                    extra={"repo": self._repository_name},
                )
                return []
            self._check(resp, "list pull requests")
            payload = self._json(resp, "list pull requests")
            if not isinstance(payload, list):
                raise GitHubApiError("Invalid pull request list response: expected a list")

            pulls.extend(self._parse_pull_request_json(item) for item in payload)
            if len(payload) < per_page:
                break
        return pulls

    def create_pull_request(self, *, base: str, body: str, head: str, title: str) -> PullRequest:
        payload = {"base": base, "body": body, "head": head, "title": title}
        resp = self._session.post(self._pulls_url(), json=payload, timeout=_TIMEOUT_SECONDS)
        self._check(resp, "create pull request")
        pr = self._parse_pull_request_json(self._json(resp, "create pull request"))
        logger.info(
            "Pull request created",
            extra={"repo": self._repository_name, "pull_number": pr.number, "head": head},
        )
        return pr

    def update_pull_request(self, *, pull_number: int, title: str, body: str) -> PullRequest:
        payload = {"body": body, "title": title}
        resp = self._session.patch(
            self._pulls_url(pull_number=pull_number), json=payload, timeout=_TIMEOUT_SECONDS
        )
        self._check(resp, "update pull request")
        return self._parse_pull_request_json(self._json(resp, "update pull request"))

    def close(self) -> None:
        self._session.close()
