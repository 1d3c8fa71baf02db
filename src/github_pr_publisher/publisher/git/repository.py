"""Disposable local clone bound to the destination remote.

All history is built with plumbing commands (``read-tree``, ``update-index``,
``write-tree``, ``commit-tree``) against the clone's index, so nothing is ever
checked out: snapshot files are staged straight from the snapshot directory.
"""

from __future__ import annotations

import base64
import logging
import os
import subprocess
import tempfile
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from github_pr_publisher.publisher.errors import (
    EmptyChangeError,
    ForeignBranchUpdate,
    RepoError,
)
from github_pr_publisher.publisher.model import ALL_FILES, Glob

logger = logging.getLogger(__name__)

_TRACKING_PREFIX = "refs/remotes/origin/"
_PUSH_REJECTED_MARKERS = ("[rejected]", "non-fast-forward", "stale info", "fetch first")
_TRANSPORT_ERROR_MARKERS = (
    "could not read from remote",
    "unable to access",
    "connection",
    "timed out",
    "could not resolve host",
)


@dataclass(frozen=True, slots=True)
class Committer:
    name: str
    email: str


def _auth_env(remote_url: str, token: str | None) -> dict[str, str]:
    """Pass the token as an HTTP header through env-based git config.

    Keeps the secret out of the process arguments and the remote URL.
    """

    if not token or not remote_url.startswith("https://"):
        return {}
    basic = base64.b64encode(f"x-access-token:{token}".encode()).decode("ascii")
    return {
        "GIT_CONFIG_COUNT": "1",
        "GIT_CONFIG_KEY_0": "http.extraHeader",
        "GIT_CONFIG_VALUE_0": f"Authorization: Basic {basic}",
    }


class GitRepository:
    """A private repository plus the remote URL it publishes to."""

    def __init__(
        self,
        root: Path,
        *,
        remote_url: str,
        committer: Committer,
        token: str | None = None,
    ) -> None:
        self._root = root
        self._remote_url = remote_url
        self._env: dict[str, str] = {
            **os.environ,
            "GIT_TERMINAL_PROMPT": "0",
            "GIT_AUTHOR_NAME": committer.name,
            "GIT_AUTHOR_EMAIL": committer.email,
            "GIT_COMMITTER_NAME": committer.name,
            "GIT_COMMITTER_EMAIL": committer.email,
            **_auth_env(remote_url, token),
        }

    @classmethod
    @contextmanager
    def open(
        cls,
        *,
        remote_url: str,
        committer: Committer,
        token: str | None = None,
        workdir_root: Path | None = None,
    ) -> Iterator[GitRepository]:
        """Create a throwaway repository, removed when the context exits."""

        if workdir_root is not None:
            workdir_root.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix="publisher-", dir=workdir_root) as tmp:
            repo = cls(Path(tmp), remote_url=remote_url, committer=committer, token=token)
            repo._git("init", "--quiet", ".")
            logger.debug(
                "Created local repository",
                extra={"path": tmp, "remote": remote_url},
            )
            yield repo

    @property
    def path(self) -> Path:
        return self._root

    @property
    def remote_url(self) -> str:
        return self._remote_url

    def _git(
        self,
        *args: str,
        work_tree: Path | None = None,
        input_text: str | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        cmd = ["git", "-c", "commit.gpgsign=false"]
        if work_tree is not None:
            git_dir = self._root / ".git"
            cmd.extend([f"--git-dir={git_dir}", f"--work-tree={work_tree}"])
        cmd.extend(args)
        result = subprocess.run(
            cmd,
            cwd=work_tree or self._root,
            input=input_text,
            capture_output=True,
            text=True,
            env={**self._env, **(env or {})},
            check=False,
        )
        if check and result.returncode != 0:
            stderr = result.stderr.strip()
            lowered = stderr.lower()
            raise RepoError(
                f"git {args[0]} failed: {stderr or f'exit code {result.returncode}'}",
                retryable=any(marker in lowered for marker in _TRANSPORT_ERROR_MARKERS),
            )
        return result

    def _rev_parse(self, ref: str) -> str | None:
        result = self._git("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}", check=False)
        sha = result.stdout.strip()
        return sha if result.returncode == 0 and sha else None

    def fetch_branch(self, name: str) -> bool:
        """Fetch ``name`` from the remote; ``False`` when the branch does not exist."""

        listing = self._git("ls-remote", "--heads", self._remote_url, f"refs/heads/{name}")
        if not listing.stdout.strip():
            logger.debug("Remote branch not found", extra={"branch": name})
            # Drop a stale tracking ref from an earlier fetch.
            self._git("update-ref", "-d", _TRACKING_PREFIX + name, check=False)
            return False

        self._git(
            "fetch",
            "--quiet",
            "--no-tags",
            self._remote_url,
            f"+refs/heads/{name}:{_TRACKING_PREFIX}{name}",
        )
        return True

    def fetch_ref(self, url: str, ref: str) -> str:
        """Fetch an arbitrary ref (from any repository) and return its commit."""

        self._git("fetch", "--quiet", "--no-tags", url, ref)
        sha = self._rev_parse("FETCH_HEAD")
        if sha is None:
            raise RepoError(f"Fetched ref '{ref}' from {url} is not a commit")
        return sha

    def remote_tip(self, name: str) -> str | None:
        """Commit of the branch as of the last :meth:`fetch_branch`."""

        return self._rev_parse(_TRACKING_PREFIX + name)

    def log_messages(self, ref: str, *, since: str | None = None) -> list[str]:
        """Full commit messages reachable from ``ref``, newest first."""

        revision = f"{since}..{ref}" if since else ref
        result = self._git("log", "-z", "--format=%B", revision)
        return [entry for entry in result.stdout.split("\0") if entry]

    def parents(self, commit: str) -> list[str]:
        result = self._git("rev-list", "--parents", "-n", "1", commit)
        return result.stdout.split()[1:]

    def _tree_of(self, commit: str) -> str:
        return self._git("rev-parse", f"{commit}^{{tree}}").stdout.strip()

    def _commit_tree(
        self,
        tree: str,
        message: str,
        parents: Sequence[str],
        env: Mapping[str, str] | None = None,
    ) -> str:
        args = ["commit-tree", tree]
        for parent in parents:
            args.extend(["-p", parent])
        args.extend(["-F", "-"])
        return self._git(*args, input_text=message, env=env).stdout.strip()

    def commit_snapshot(
        self,
        snapshot_dir: Path,
        message: str,
        *,
        parent: str | None,
        destination_files: Glob = ALL_FILES,
        extra_parents: Sequence[str] = (),
    ) -> str:
        """Commit the snapshot on top of ``parent`` and return the new commit.

        Files of ``parent`` matching ``destination_files`` are replaced by the
        snapshot; everything else is carried over unchanged.

        Raises:
            EmptyChangeError: if the resulting tree equals the parent tree.
        """

        if not snapshot_dir.is_dir():
            raise RepoError(f"Snapshot directory does not exist: {snapshot_dir}")

        if parent is None:
            self._git("read-tree", "--empty")
        else:
            self._git("read-tree", parent)

        tracked = self._git("ls-files", "-z").stdout.split("\0")
        stale = [path for path in tracked if path and destination_files.matches(path)]
        if stale:
            self._git(
                "update-index", "--force-remove", "-z", "--stdin", input_text="\0".join(stale)
            )

        files = list(destination_files.files_under(snapshot_dir))
        if files:
            self._git(
                "update-index",
                "--add",
                "--replace",
                "-z",
                "--stdin",
                work_tree=snapshot_dir,
                input_text="\0".join(files),
            )

        tree = self._git("write-tree").stdout.strip()
        if parent is not None and tree == self._tree_of(parent) and not extra_parents:
            raise EmptyChangeError(
                "Migration of the revision resulted in an empty change for the destination"
            )

        parents = ([parent] if parent is not None else []) + list(extra_parents)
        commit = self._commit_tree(tree, message, parents)
        logger.debug(
            "Committed snapshot",
            extra={"commit": commit, "parent": parent, "files": len(files)},
        )
        return commit

    def rebase_onto(self, commits: Sequence[str], new_base: str | None) -> list[str]:
        """Replay ``commits`` (oldest first) on ``new_base`` keeping their trees.

        Snapshots are full trees, so each replayed commit keeps exactly the
        content it had; only the parent chain and committer change.
        """

        replayed: list[str] = []
        parent = new_base
        for commit in commits:
            meta = self._git("log", "-1", "--format=%an%x00%ae%x00%aI%x00%B", commit).stdout
            name, email, date, message = meta.split("\0", 3)
            message = message.rstrip("\n") + "\n"
            author_env = {
                "GIT_AUTHOR_NAME": name,
                "GIT_AUTHOR_EMAIL": email,
                "GIT_AUTHOR_DATE": date,
            }
            extra = self.parents(commit)[1:]
            parents = ([parent] if parent is not None else []) + extra
            parent = self._commit_tree(self._tree_of(commit), message, parents, env=author_env)
            replayed.append(parent)
        return replayed

    def push_branch(
        self,
        name: str,
        commit: str,
        *,
        force: bool,
        expected_remote: str | None = None,
    ) -> None:
        """Point the remote branch at ``commit``.

        A forced push is still guarded by a lease on ``expected_remote`` (the
        tip observed by the last fetch, ``None`` meaning the branch must not
        exist), so a concurrent update is rejected instead of overwritten.
        """

        ref = f"refs/heads/{name}"
        args = ["push", "--quiet", "--porcelain"]
        if force:
            args.append(f"--force-with-lease={ref}:{expected_remote or ''}")
        args.extend([self._remote_url, f"{commit}:{ref}"])

        result = self._git(*args, check=False)
        if result.returncode == 0:
            logger.info(
                "Pushed branch",
                extra={"branch": name, "commit": commit, "forced": force},
            )
            return

        output = f"{result.stdout}\n{result.stderr}".lower()
        if any(marker in output for marker in _PUSH_REJECTED_MARKERS):
            self.fetch_branch(name)
            raise ForeignBranchUpdate(
                branch=name, expected=expected_remote, actual=self.remote_tip(name)
            )
        raise RepoError(
            f"git push failed: {result.stderr.strip() or result.stdout.strip()}",
            retryable=any(marker in output for marker in _TRANSPORT_ERROR_MARKERS),
        )
