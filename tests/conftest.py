"""Test configuration and fixtures."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import Mock

import pytest

from github_pr_publisher.publisher.config import DestinationConfig
from github_pr_publisher.publisher.destination import PrDestination
from github_pr_publisher.publisher.git.repository import Committer
from github_pr_publisher.publisher.github.client import GitHubClient, PullRequest

COMMITTER = Committer(name="Bara Kopi", email="commiter@email")


def run_git(*args: str, cwd: Path) -> str:
    result = subprocess.run(
        ["git", "-c", "commit.gpgsign=false", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


class LocalHub:
    """Bare repositories standing in for GitHub-hosted remotes."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self._seeds = 0

    def create(self, name: str) -> Path:
        path = self._root / "github.com" / name
        path.mkdir(parents=True)
        run_git("init", "--quiet", "--bare", str(path), cwd=self._root)
        return path

    def ref_exists(self, remote: Path, branch: str) -> bool:
        out = run_git("ls-remote", "--heads", str(remote), f"refs/heads/{branch}", cwd=remote)
        return bool(out.strip())

    def tip(self, remote: Path, branch: str) -> str:
        return run_git("rev-parse", f"refs/heads/{branch}", cwd=remote).strip()

    def log(self, remote: Path, branch: str) -> list[str]:
        """Commit messages of ``branch``, newest first."""

        out = run_git("log", "-z", "--format=%B", f"refs/heads/{branch}", cwd=remote)
        return [entry for entry in out.split("\0") if entry]

    def parents(self, remote: Path, ref: str) -> list[str]:
        return run_git("rev-list", "--parents", "-n", "1", ref, cwd=remote).split()[1:]

    def show(self, remote: Path, branch: str, path: str) -> str:
        return run_git("show", f"refs/heads/{branch}:{path}", cwd=remote)

    def add_files(
        self, remote: Path, branch: str | None, message: str, files: dict[str, str]
    ) -> str:
        """Commit ``files`` on ``branch`` (default master), branching from master if new."""

        branch = branch or "master"
        self._seeds += 1
        work = self._root / f"seed-{self._seeds}"
        run_git("init", "--quiet", str(work), cwd=self._root)
        for start in (branch, "master"):
            if self.ref_exists(remote, start):
                run_git("fetch", "--quiet", str(remote), f"refs/heads/{start}", cwd=work)
                run_git("checkout", "--quiet", "FETCH_HEAD", cwd=work)
                break

        for name, content in files.items():
            target = work / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")

        run_git("add", "--all", cwd=work)
        run_git("commit", "--quiet", "--allow-empty", "-m", message, cwd=work)
        run_git("push", "--quiet", "--force", str(remote), f"HEAD:refs/heads/{branch}", cwd=work)
        return run_git("rev-parse", "HEAD", cwd=work).strip()


@pytest.fixture
def isolated_git(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep user/system git config (signing, hooks, default branch) out of tests."""

    global_config = tmp_path / "gitconfig"
    global_config.write_text("", encoding="utf-8")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", COMMITTER.name)
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", COMMITTER.email)
    monkeypatch.setenv("GIT_COMMITTER_NAME", COMMITTER.name)
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", COMMITTER.email)


@pytest.fixture
def hub(tmp_path: Path, isolated_git: None) -> LocalHub:
    root = tmp_path / "hub"
    root.mkdir()
    return LocalHub(root)


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    """Directory holding the snapshot being published."""

    path = tmp_path / "workdir"
    path.mkdir()
    return path


@pytest.fixture
def mock_github() -> Mock:
    github = Mock(spec=GitHubClient)
    github.repository = "foo"
    github.list_pull_requests.return_value = []
    github.create_pull_request.return_value = PullRequest(
        number=12345, state="open", title="test summary", body="test summary"
    )
    return github


@pytest.fixture
def make_destination(tmp_path: Path, mock_github: Mock):
    """Build a destination for ``https://github.com/foo`` pushing to a local remote."""

    def _make(remote: Path, *, pr_branch_override: str | None = None, **config: object):
        destination_config = DestinationConfig.model_validate(
            {"url": "https://github.com/foo", "push_url": str(remote), **config}
        )
        return PrDestination(
            destination_config,
            github=mock_github,
            committer=COMMITTER,
            workdir=tmp_path / "clones",
            pr_branch_override=pr_branch_override,
        )

    return _make
