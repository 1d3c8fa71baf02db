"""GitHub API access for pull request reconciliation."""

from github_pr_publisher.publisher.github.client import GitHubClient, PullRequest
from github_pr_publisher.publisher.github.pull_requests import PullRequestManager

__all__ = ["GitHubClient", "PullRequest", "PullRequestManager"]
