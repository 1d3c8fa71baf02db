"""Value types shared by the publisher components.

The publisher only needs two things from an origin revision: an opaque
identifier and, optionally, a context reference naming the logical change the
revision belongs to. Any object exposing those attributes satisfies
:class:`OriginRevision`.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from github_pr_publisher.publisher.destination import PrWriter

DEFAULT_LABEL_NAME = "Origin-RevId"
DEFAULT_SUMMARY = "Project import generated by github-pr-publisher."


@runtime_checkable
class OriginRevision(Protocol):
    """Minimal capability an origin revision has to provide."""

    @property
    def revision_id(self) -> str: ...

    @property
    def context_reference(self) -> str | None: ...


@dataclass(frozen=True, slots=True)
class SimpleRevision:
    """Plain origin revision used by the CLI and tests."""

    revision_id: str
    context_reference: str | None = None


@dataclass(frozen=True, slots=True)
class Glob:
    """Include/exclude file patterns relative to the destination root.

    Patterns use :mod:`fnmatch` syntax where ``*`` also crosses directories,
    so ``**`` and ``*`` both match every file.
    """

    include: tuple[str, ...] = ("**",)
    exclude: tuple[str, ...] = ()

    def matches(self, path: str) -> bool:
        normalized = path.replace("\\", "/").lstrip("/")
        if not any(fnmatch.fnmatchcase(normalized, p) for p in self.include):
            return False
        return not any(fnmatch.fnmatchcase(normalized, p) for p in self.exclude)

    def files_under(self, root: Path) -> Iterator[str]:
        """Yield matching files below ``root`` as sorted posix paths, skipping ``.git``."""

        for path in sorted(root.rglob("*")):
            rel = path.relative_to(root)
            if ".git" in rel.parts or path.is_dir():
                continue
            posix = rel.as_posix()
            if self.matches(posix):
                yield posix


ALL_FILES = Glob()


@dataclass(frozen=True, slots=True)
class Snapshot:
    """A transformed file tree ready to be published."""

    path: Path
    revision: OriginRevision
    summary: str = DEFAULT_SUMMARY
    label_name: str = DEFAULT_LABEL_NAME


@dataclass(frozen=True, slots=True)
class Cold:
    """Start from the remote: no in-memory state from an earlier writer."""


@dataclass(frozen=True, slots=True)
class Warm:
    """Continue the commit chain of a writer from the same process run."""

    predecessor: PrWriter


Continuity = Warm | Cold


@dataclass(frozen=True, slots=True)
class WriterContext:
    """Immutable inputs for creating a writer."""

    workflow_name: str
    workflow_identity_user: str
    origin_revision: OriginRevision
    destination_files: Glob = ALL_FILES
    dry_run: bool = False
    continuity: Continuity = field(default_factory=Cold)


@dataclass(slots=True)
class WriterState:
    """Per-run memory of a writer chain.

    ``pushed_head`` is the last commit confirmed on the remote branch; ``head``
    is the last commit built locally (they differ only in dry runs).
    """

    branch: str
    base: str
    head: str | None = None
    pushed_head: str | None = None
    pull_request_number: int | None = None


@dataclass(frozen=True, slots=True)
class DestinationStatus:
    """What the destination already reflects from the origin."""

    baseline: str | None
    pending_changes: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class WriteResult:
    """Outcome of one publish call."""

    branch: str
    commit: str
    pushed: bool
    warm: bool
    pull_request_number: int | None = None
    pull_request_url: str | None = None
