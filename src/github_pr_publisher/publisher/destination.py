"""GitHub pull request destination.

A :class:`PrDestination` hands out one :class:`PrWriter` per publication.
Each write turns a snapshot into a commit on the PR branch, pushes it and
makes sure a pull request exists for the branch.

Continuity between writes:

- *warm*: the writer (or the predecessor it was created from, in the same
  process run) already pushed to the branch. The new commit goes on top of
  that push, and the remote tip must still be exactly that commit.
- *cold*: nothing is known in memory. The branch is rebuilt from the base
  branch tip as a single commit and force pushed, replacing whatever an
  earlier run left there.

The only state shared across processes is the identity label trailer in the
published commit messages.
"""

from __future__ import annotations

import logging
import re
from contextlib import AbstractContextManager, ExitStack
from pathlib import Path
from types import TracebackType
from typing import Any

from github_pr_publisher.publisher.branches import resolve_base, resolve_branch
from github_pr_publisher.publisher.config import (
    DestinationConfig,
    IntegrateDirective,
    PublisherSettings,
)
from github_pr_publisher.publisher.errors import (
    DestinationValidationError,
    ForeignBranchUpdate,
    RepoError,
)
from github_pr_publisher.publisher.git.repository import Committer, GitRepository
from github_pr_publisher.publisher.github.client import GitHubClient
from github_pr_publisher.publisher.github.pull_requests import PullRequestManager
from github_pr_publisher.publisher.labels import (
    embed_label,
    extract_baseline,
    strip_leading_blank_lines,
)
from github_pr_publisher.publisher.logging import WriterLogAdapter
from github_pr_publisher.publisher.model import (
    DestinationStatus,
    Snapshot,
    Warm,
    WriterContext,
    WriterState,
    WriteResult,
)

logger = logging.getLogger(__name__)


class PrDestination:
    """Publishes snapshots as a pull request branch of one GitHub repository."""

    def __init__(
        self,
        config: DestinationConfig,
        *,
        github: GitHubClient | None,
        committer: Committer,
        token: str | None = None,
        workdir: Path | None = None,
        pr_branch_override: str | None = None,
    ) -> None:
        if github is None and config.create_pull_request:
            raise ValueError("A GitHub client is required when pull request creation is enabled")
        self._config = config
        self._github = github
        self._committer = committer
        self._token = token
        self._workdir = workdir
        self._pr_branch_override = pr_branch_override

    @classmethod
    def from_settings(
        cls,
        config: DestinationConfig,
        settings: PublisherSettings,
        *,
        pr_branch_override: str | None = None,
    ) -> PrDestination:
        github = GitHubClient(
            token=settings.github_token,
            repository=config.project,
            base_url=settings.github_api_url,
        )
        return cls(
            config,
            github=github,
            committer=Committer(name=settings.committer_name, email=settings.committer_email),
            token=settings.github_token,
            workdir=settings.workdir,
            pr_branch_override=pr_branch_override or settings.destination_pr_branch,
        )

    @property
    def config(self) -> DestinationConfig:
        return self._config

    @property
    def project(self) -> str:
        return self._config.project

    @property
    def integrates(self) -> tuple[IntegrateDirective, ...]:
        return self._config.integrates

    @property
    def pr_branch(self) -> str | None:
        return self._pr_branch_override or self._config.pr_branch

    def describe(self) -> dict[str, Any]:
        description: dict[str, Any] = {
            "type": "github_pr_destination",
            "name": self._config.web_url,
            "project": self.project,
            "destination_ref": resolve_base(self._config.destination_ref),
            "create_pull_request": self._config.create_pull_request,
        }
        if self.pr_branch:
            description["pr_branch"] = self.pr_branch
        return description

    def new_writer(self, context: WriterContext) -> PrWriter:
        """Create a writer; fails before any remote access on misconfiguration."""

        branch = resolve_branch(
            pr_branch=self.pr_branch,
            origin_revision=context.origin_revision,
            workflow_name=context.workflow_name,
            workflow_identity_user=context.workflow_identity_user,
        )
        base = resolve_base(self._config.destination_ref)
        if branch == base:
            raise DestinationValidationError(
                f"PR branch '{branch}' cannot be the same as the destination ref"
            )
        return PrWriter(destination=self, context=context, branch=branch, base=base)

    def _open_repository(self) -> AbstractContextManager[GitRepository]:
        return GitRepository.open(
            remote_url=self._config.remote_url,
            committer=self._committer,
            token=self._token,
            workdir_root=self._workdir,
        )

    def _pull_requests(self) -> PullRequestManager:
        assert self._github is not None
        return PullRequestManager(
            github=self._github,
            owner=self._config.owner,
            title=self._config.title,
            body=self._config.body,
            update_description=self._config.update_description,
        )

    def close(self) -> None:
        if self._github is not None:
            self._github.close()


class PrWriter:
    """Writes successive snapshots of one publication to its PR branch.

    Owns a disposable local clone, created on first use and removed by
    :meth:`close` (or when leaving the ``with`` block).
    """

    def __init__(
        self,
        *,
        destination: PrDestination,
        context: WriterContext,
        branch: str,
        base: str,
    ) -> None:
        self._destination = destination
        self._context = context
        self._state = WriterState(branch=branch, base=base)
        self._stack = ExitStack()
        self._repo: GitRepository | None = None
        self._log = WriterLogAdapter(
            logger, {"project": destination.project, "branch": branch, "base": base}
        )

        continuity = context.continuity
        if isinstance(continuity, Warm):
            self._inherit(continuity.predecessor.state)

    def _inherit(self, previous: WriterState) -> None:
        if previous.branch != self._state.branch:
            self._log.info(
                "Previous writer used a different branch; starting cold",
                extra={"previous_branch": previous.branch},
            )
            return
        if previous.pushed_head is None:
            self._log.info("Previous writer never pushed; starting cold")
            return
        self._state.head = previous.pushed_head
        self._state.pushed_head = previous.pushed_head
        self._state.pull_request_number = previous.pull_request_number

    @property
    def state(self) -> WriterState:
        return self._state

    @property
    def branch(self) -> str:
        return self._state.branch

    @property
    def base(self) -> str:
        return self._state.base

    def __enter__(self) -> PrWriter:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._repo = None
        self._stack.close()

    def _repository(self) -> GitRepository:
        if self._repo is None:
            self._repo = self._stack.enter_context(self._destination._open_repository())
        return self._repo

    def get_destination_status(self, label_name: str) -> DestinationStatus:
        """Baseline recorded on the base branch.

        Pending changes are never reported: every cold write rewrites the PR
        branch, so callers have to recompute the full diff from the baseline.
        """

        repo = self._repository()
        if not repo.fetch_branch(self._state.base):
            return DestinationStatus(baseline=None)
        tip = repo.remote_tip(self._state.base)
        assert tip is not None
        baseline = extract_baseline(repo.log_messages(tip), label_name)
        return DestinationStatus(baseline=baseline, pending_changes=())

    def write(self, snapshot: Snapshot) -> WriteResult:
        """Publish one snapshot to the PR branch."""

        repo = self._repository()
        state = self._state
        dry_run = self._context.dry_run
        # Only a pushed commit (or a local one in a dry run) continues the chain.
        warm = state.pushed_head is not None or (dry_run and state.head is not None)

        if warm:
            parent = state.head if dry_run else state.pushed_head
            expected_remote = state.pushed_head
            if state.pushed_head is not None:
                self._verify_remote_tip(repo)
        else:
            parent, expected_remote = self._prepare_cold(repo, snapshot.label_name)

        message = embed_label(
            strip_leading_blank_lines(snapshot.summary),
            snapshot.label_name,
            snapshot.revision.revision_id,
        )
        commit = repo.commit_snapshot(
            snapshot.path,
            message,
            parent=parent,
            destination_files=self._context.destination_files,
            extra_parents=self._integrate_parents(repo, snapshot.summary),
        )
        state.head = commit

        if dry_run:
            self._log.info("Dry run: not pushing branch", extra={"commit": commit})
            return WriteResult(branch=state.branch, commit=commit, pushed=False, warm=warm)

        # Warm pushes are plain fast-forwards; a cold rewrite is forced but
        # leased on the tip observed when it was prepared.
        repo.push_branch(state.branch, commit, force=not warm, expected_remote=expected_remote)
        state.pushed_head = commit

        if not self._destination.config.create_pull_request:
            self._log.debug("Pull request creation disabled")
            return WriteResult(branch=state.branch, commit=commit, pushed=True, warm=warm)

        return self._reconcile_pull_request(snapshot, commit, warm)

    def _verify_remote_tip(self, repo: GitRepository) -> None:
        state = self._state
        exists = repo.fetch_branch(state.branch)
        tip = repo.remote_tip(state.branch) if exists else None
        if tip != state.pushed_head:
            raise ForeignBranchUpdate(branch=state.branch, expected=state.pushed_head, actual=tip)

    def _prepare_cold(self, repo: GitRepository, label_name: str) -> tuple[str | None, str | None]:
        """Return (parent, current remote tip) for rebuilding the branch."""

        state = self._state
        base_tip: str | None = None
        if repo.fetch_branch(state.base):
            base_tip = repo.remote_tip(state.base)
        else:
            self._log.warning(
                "Base branch not found on the remote; publishing a root commit",
                extra={"remote": repo.remote_url},
            )

        previous_tip: str | None = None
        if repo.fetch_branch(state.branch):
            previous_tip = repo.remote_tip(state.branch)
        if previous_tip is not None:
            replaced = repo.log_messages(previous_tip, since=base_tip)
            self._log.info(
                "Replacing existing branch history",
                extra={
                    "replaced_commits": len(replaced),
                    "previous_baseline": extract_baseline(replaced, label_name),
                },
            )
        return base_tip, previous_tip

    def _integrate_parents(self, repo: GitRepository, summary: str) -> list[str]:
        parents: list[str] = []
        for directive in self._destination.integrates:
            pattern = re.compile(rf"^{re.escape(directive.label)}=(?P<value>.+)$", re.MULTILINE)
            for match in pattern.finditer(summary):
                url, _, ref = match.group("value").strip().rpartition(" ")
                try:
                    parents.append(repo.fetch_ref(url.strip() or repo.remote_url, ref))
                except RepoError:
                    if not directive.ignore_errors:
                        raise
                    self._log.warning(
                        "Could not integrate reference; skipping",
                        extra={"label": directive.label, "ref": match.group("value")},
                        exc_info=True,
                    )
        return parents

    def _reconcile_pull_request(self, snapshot: Snapshot, commit: str, warm: bool) -> WriteResult:
        state = self._state
        known = state.pull_request_number
        outcome = self._destination._pull_requests().reconcile(
            branch=state.branch,
            base=state.base,
            message=snapshot.summary,
            known_number=known,
        )
        state.pull_request_number = outcome.number

        url = f"{self._destination.config.web_url}/pull/{outcome.number}"
        if outcome.created:
            self._log.info(f"Pull Request {url} created using branch '{state.branch}'.")
        elif known is None:
            self._log.info(f"Pull Request {url} already exists for branch '{state.branch}'.")

        return WriteResult(
            branch=state.branch,
            commit=commit,
            pushed=True,
            warm=warm,
            pull_request_number=outcome.number,
            pull_request_url=url,
        )
