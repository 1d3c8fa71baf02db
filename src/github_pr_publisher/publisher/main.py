"""CLI entrypoint for the PR publisher."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from github_pr_publisher import __version__
from github_pr_publisher.publisher.branches import PR_BRANCH_FLAG
from github_pr_publisher.publisher.config import DestinationConfig, PublisherSettings
from github_pr_publisher.publisher.destination import PrDestination
from github_pr_publisher.publisher.errors import (
    DestinationValidationError,
    EmptyChangeError,
    RepoError,
)
from github_pr_publisher.publisher.logging import configure_logging
from github_pr_publisher.publisher.model import (
    DEFAULT_LABEL_NAME,
    DEFAULT_SUMMARY,
    Glob,
    SimpleRevision,
    Snapshot,
    WriterContext,
)

logger = logging.getLogger(__name__)

EXIT_CONFIG = 2
EXIT_VALIDATION = 3
EXIT_EMPTY_CHANGE = 4
EXIT_RETRYABLE = 75

_STATUS_BRANCH = "publisher/status"


def _parse_patterns(value: str | None) -> tuple[str, ...]:
    if value is None:
        return ()
    return tuple(p.strip() for p in value.split(",") if p.strip())


def _add_destination_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--url",
        required=True,
        help="Destination repository URL, e.g. 'https://github.com/owner/repo'",
    )
    parser.add_argument(
        PR_BRANCH_FLAG,
        dest="pr_branch",
        default=None,
        help="Explicit PR branch (otherwise derived from the context reference)",
    )
    parser.add_argument(
        "--destination-ref",
        default="",
        help="Base branch of the pull request (defaults to 'master')",
    )
    parser.add_argument(
        "--push-url",
        default=None,
        help="Git remote to push to (defaults to the GitHub HTTPS remote of --url)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="publisher",
        description="Publish a transformed source snapshot as a GitHub pull request",
    )
    parser.add_argument("--version", action="version", version=f"github-pr-publisher {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    publish = subparsers.add_parser("publish", help="Publish a snapshot directory to a PR branch")
    _add_destination_arguments(publish)
    publish.add_argument("--snapshot", required=True, help="Directory holding the file tree")
    publish.add_argument("--revision", required=True, help="Origin revision identifier")
    publish.add_argument(
        "--context-ref",
        default=None,
        help="Origin context reference used to derive the PR branch name",
    )
    publish.add_argument("--summary", default=DEFAULT_SUMMARY, help="Change summary")
    publish.add_argument(
        "--label-name",
        default=DEFAULT_LABEL_NAME,
        help="Trailer label binding the commit to the origin revision",
    )
    publish.add_argument("--workflow", default="default", help="Workflow name")
    publish.add_argument(
        "--identity-user",
        default="",
        help="Workflow identity user (part of the derived branch name)",
    )
    publish.add_argument("--include", default="**", help="Comma-separated destination globs")
    publish.add_argument("--exclude", default=None, help="Comma-separated excluded globs")
    publish.add_argument("--title", default=None, help="Fixed pull request title")
    publish.add_argument("--body", default=None, help="Fixed pull request body")
    publish.add_argument(
        "--no-pull-request",
        action="store_true",
        help="Push the branch without creating a pull request",
    )
    publish.add_argument(
        "--update-description",
        action="store_true",
        help="Rewrite the title/body of an existing pull request",
    )
    publish.add_argument("--dry-run", action="store_true", help="Build the commit but do not push")

    status = subparsers.add_parser(
        "status", help="Print the baseline recorded on the destination base branch"
    )
    _add_destination_arguments(status)
    status.add_argument("--label-name", default=DEFAULT_LABEL_NAME, help="Trailer label to scan")

    return parser


def _destination_config(args: argparse.Namespace, **overrides: object) -> DestinationConfig:
    return DestinationConfig.model_validate(
        {
            "url": args.url,
            "destination_ref": args.destination_ref,
            "push_url": args.push_url,
            **overrides,
        }
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = PublisherSettings()
    except ValidationError as e:
        # Logging isn't configured yet.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_CONFIG

    configure_logging(settings.log_level)

    try:
        if args.command == "publish":
            config = _destination_config(
                args,
                title=args.title,
                body=args.body,
                create_pull_request=not args.no_pull_request,
                update_description=args.update_description,
            )
            revision = SimpleRevision(revision_id=args.revision, context_reference=args.context_ref)
            context = WriterContext(
                workflow_name=args.workflow,
                workflow_identity_user=args.identity_user,
                origin_revision=revision,
                destination_files=Glob(
                    include=_parse_patterns(args.include), exclude=_parse_patterns(args.exclude)
                ),
                dry_run=args.dry_run,
            )
            destination = PrDestination.from_settings(
                config, settings, pr_branch_override=args.pr_branch
            )
            try:
                with destination.new_writer(context) as writer:
                    result = writer.write(
                        Snapshot(
                            path=Path(args.snapshot),
                            revision=revision,
                            summary=args.summary,
                            label_name=args.label_name,
                        )
                    )
            finally:
                destination.close()

            print(
                json.dumps(
                    {
                        "branch": result.branch,
                        "commit": result.commit,
                        "pushed": result.pushed,
                        "pull_request": result.pull_request_url,
                    }
                )
            )
            return 0

        if args.command == "status":
            config = _destination_config(args, create_pull_request=False)
            # The status only reads the base branch, so the head branch never matters.
            destination = PrDestination.from_settings(
                config, settings, pr_branch_override=args.pr_branch or _STATUS_BRANCH
            )
            context = WriterContext(
                workflow_name="status",
                workflow_identity_user="",
                origin_revision=SimpleRevision(revision_id="status"),
            )
            try:
                with destination.new_writer(context) as writer:
                    status = writer.get_destination_status(args.label_name)
            finally:
                destination.close()

            print(json.dumps({"baseline": status.baseline, "pending_changes": []}))
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return EXIT_CONFIG

    except (DestinationValidationError, ValidationError) as e:
        logger.error(str(e))
        print(str(e), file=sys.stderr)
        return EXIT_VALIDATION

    except EmptyChangeError as e:
        logger.warning(str(e))
        print(str(e), file=sys.stderr)
        return EXIT_EMPTY_CHANGE

    except RepoError as e:
        logger.exception("Publishing failed", extra={"retryable": e.retryable})
        return EXIT_RETRYABLE if e.retryable else 1

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
