#!/usr/bin/env python3
"""Programmatic publishing example.

This demonstrates using the publisher components directly:

* load settings from `.env`
* write two snapshots to one PR branch (the second one warm)
* print the pull request that tracks the branch

The destination repository and snapshot directory are passed as arguments
(not read from `.env`).
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from github_pr_publisher.publisher.config import DestinationConfig, PublisherSettings
from github_pr_publisher.publisher.destination import PrDestination
from github_pr_publisher.publisher.errors import EmptyChangeError
from github_pr_publisher.publisher.logging import configure_logging
from github_pr_publisher.publisher.model import SimpleRevision, Snapshot, WriterContext


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Publish a snapshot (programmatic example).")
    parser.add_argument("--url", required=True, help='Destination, e.g. "https://github.com/o/r"')
    parser.add_argument("--snapshot", required=True, help="Directory holding the file tree")
    parser.add_argument("--change", required=True, help="Context reference of the change")
    parser.add_argument("--revision", action="append", required=True, help="Revision id (repeat)")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = PublisherSettings()
    configure_logging(settings.log_level)

    destination = PrDestination.from_settings(DestinationConfig(url=args.url), settings)
    context = WriterContext(
        workflow_name="example",
        workflow_identity_user="",
        origin_revision=SimpleRevision(revision_id=args.revision[-1], context_reference=args.change),
    )

    result = None
    try:
        with destination.new_writer(context) as writer:
            for revision_id in args.revision:
                snapshot = Snapshot(
                    path=Path(args.snapshot),
                    revision=SimpleRevision(revision_id=revision_id),
                    summary=f"Import revision {revision_id}",
                )
                try:
                    result = writer.write(snapshot)
                except EmptyChangeError as exc:
                    print(str(exc))
    finally:
        destination.close()

    if result is None:
        return 0

    print(f"Pushed {result.commit} to branch {result.branch}")
    print(f"Pull request: {result.pull_request_url}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
