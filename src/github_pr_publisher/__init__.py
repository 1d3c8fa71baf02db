"""GitHub PR Publisher.

Lands transformed source snapshots on a GitHub pull request branch:
- deterministic branch naming per logical migration
- warm (same run) or cold (rebuild from the base branch) publishing
- origin revision trailers for baseline recovery across runs
- find-or-create pull request reconciliation
"""

__version__ = "0.1.0"

from github_pr_publisher.publisher.config import DestinationConfig, PublisherSettings

__all__ = ["__version__", "DestinationConfig", "PublisherSettings"]
