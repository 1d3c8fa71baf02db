"""Origin revision identity labels embedded in published commit messages.

Every published commit ends with a trailer line ``<label>: <revision id>``.
That trailer is the only state persisted across runs: scanning the history of
a branch for the newest trailer recovers the baseline, i.e. the most recent
origin revision the destination already reflects.
"""

from __future__ import annotations

import re
from collections.abc import Iterable


def _label_pattern(label_name: str) -> re.Pattern[str]:
    return re.compile(
        rf"^{re.escape(label_name)}[ \t]*[:=][ \t]*(?P<value>\S.*?)[ \t]*$", re.MULTILINE
    )


def embed_label(message: str, label_name: str, revision_id: str) -> str:
    """Append the identity trailer after a blank line.

    Call at most once per commit message; nothing prevents duplicates.
    """

    if not label_name.strip():
        raise ValueError("label_name must be non-empty")
    if not revision_id.strip():
        raise ValueError("revision_id must be non-empty")
    if revision_id != revision_id.strip() or len(revision_id.splitlines()) > 1:
        # Trailers are read back trimmed and line by line.
        raise ValueError(
            f"revision_id must be a single line without surrounding spaces: {revision_id!r}"
        )

    body = message.rstrip()
    trailer = f"{label_name}: {revision_id}"
    if not body:
        return trailer + "\n"
    return f"{body}\n\n{trailer}\n"


def find_label(message: str, label_name: str) -> str | None:
    """Return the value of the last ``label_name`` line in a message."""

    matches = _label_pattern(label_name).findall(message)
    return matches[-1] if matches else None


def extract_baseline(messages: Iterable[str], label_name: str) -> str | None:
    """Return the revision id of the newest commit carrying the label.

    ``messages`` must be ordered newest first. An empty history (for example a
    branch that does not exist yet) yields ``None``.
    """

    for message in messages:
        value = find_label(message, label_name)
        if value is not None:
            return value
    return None


def strip_leading_blank_lines(message: str) -> str:
    lines = message.splitlines(keepends=True)
    while lines and not lines[0].strip():
        lines.pop(0)
    return "".join(lines)
