"""Destination URL parsing and branch name resolution."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

from github_pr_publisher.publisher.errors import DestinationValidationError
from github_pr_publisher.publisher.model import OriginRevision

DEFAULT_BASE_REF = "master"
PUSH_BRANCH_PREFIX = "publisher/push-"
PR_BRANCH_FLAG = "--pr-branch"

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


@dataclass(frozen=True, slots=True)
class GitHubLocation:
    host: str
    project: str

    @property
    def owner(self) -> str | None:
        owner, sep, _ = self.project.partition("/")
        return owner if sep else None


def _split_host(url: str) -> tuple[str, str]:
    rest = url[4:] if url.startswith("git+") else url
    scheme = _SCHEME_RE.match(rest)
    if scheme is not None:
        authority, _, path = rest[scheme.end() :].partition("/")
        host = authority.rpartition("@")[2].partition(":")[0]
        return host, path

    # scp-like: [user@]host:path or [user@]host/path
    rest = rest.rpartition("@")[2] if "@" in rest.partition("/")[0] else rest
    cut = min((i for i in (rest.find(":"), rest.find("/")) if i >= 0), default=len(rest))
    return rest[:cut], rest[cut + 1 :]


def parse_github_url(url: str) -> GitHubLocation:
    """Split a GitHub URL into host and ``owner/repo`` project name.

    Accepts https, ``git+https``, ssh and scp-like forms. A ``.git`` suffix and
    trailing slashes are dropped.
    """

    host, path = _split_host(url.strip())
    project = path.strip("/")
    if project.endswith(".git"):
        project = project[: -len(".git")].rstrip("/")
    if not host or not project:
        raise DestinationValidationError(f"'{url}' is not a valid GitHub url")
    return GitHubLocation(host=host, project=project)


def find_project(url: str) -> str:
    return parse_github_url(url).project


def branch_from_context_reference(
    context_reference: str, workflow_name: str, workflow_identity_user: str
) -> str:
    """Deterministic PR branch for one logical migration.

    Re-running the same workflow for the same context reference and user
    always lands on the same branch.
    """

    identity = "\0".join((context_reference, workflow_name, workflow_identity_user))
    digest = hashlib.sha256(identity.encode("utf-8")).hexdigest()
    return PUSH_BRANCH_PREFIX + digest[:24]


def resolve_branch(
    *,
    pr_branch: str | None,
    origin_revision: OriginRevision,
    workflow_name: str,
    workflow_identity_user: str,
) -> str:
    if pr_branch is not None and pr_branch.strip():
        return pr_branch

    context_reference = origin_revision.context_reference
    if context_reference is None or not context_reference.strip():
        raise DestinationValidationError(
            "github_pr_destination is incompatible with the current origin. Origin has to be"
            f" able to provide the context reference or use '{PR_BRANCH_FLAG}' flag"
        )
    return branch_from_context_reference(context_reference, workflow_name, workflow_identity_user)


def resolve_base(destination_ref: str | None) -> str:
    # The remote's real default branch is never looked up.
    if destination_ref is not None and destination_ref.strip():
        return destination_ref
    return DEFAULT_BASE_REF
