"""Local git plumbing for publishing to the destination remote."""

from github_pr_publisher.publisher.git.repository import Committer, GitRepository

__all__ = ["Committer", "GitRepository"]
