"""Configuration for the PR publisher.

Process settings are loaded from:
- environment variables
- and a local `.env` file (if present)

The destination itself (which repository, which branches, PR text) is a
:class:`DestinationConfig`, built by the caller or from CLI arguments.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from github_pr_publisher.publisher.branches import DEFAULT_BASE_REF, find_project, parse_github_url


class PublisherSettings(BaseSettings):
    """Settings for the publisher process.

    Environment variables:
    - PUBLISHER_GITHUB_TOKEN
    - GITHUB_API_URL                    (optional)
    - LOG_LEVEL                         (optional)
    - PUBLISHER_WORKDIR                 (optional)
    - PUBLISHER_COMMITTER_NAME          (optional)
    - PUBLISHER_COMMITTER_EMAIL         (optional)
    - PUBLISHER_DESTINATION_PR_BRANCH   (optional)

    Notes:
        Tests can point at a specific env file via
        `PublisherSettings(_env_file=path_to_env)`.
    """

    # Empty default so `PublisherSettings()` type-checks; the validator below enforces it.
    github_token: str = Field(
        default="",
        validation_alias="PUBLISHER_GITHUB_TOKEN",
        description="GitHub token used for API calls and git pushes",
    )
    github_api_url: str = Field(
        default="https://api.github.com",
        validation_alias="GITHUB_API_URL",
        description="GitHub API base URL (useful for GitHub Enterprise)",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    workdir: Path | None = Field(
        default=None,
        validation_alias="PUBLISHER_WORKDIR",
        description="Parent directory for disposable local clones (system temp when unset)",
    )

    committer_name: str = Field(
        default="GitHub PR Publisher",
        validation_alias="PUBLISHER_COMMITTER_NAME",
    )
    committer_email: str = Field(
        default="publisher@localhost",
        validation_alias="PUBLISHER_COMMITTER_EMAIL",
    )

    destination_pr_branch: str | None = Field(
        default=None,
        validation_alias="PUBLISHER_DESTINATION_PR_BRANCH",
        description="Branch override applied to every destination (same as --pr-branch)",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _require_github_auth(self) -> PublisherSettings:
        if not self.github_token.strip():
            raise ValueError("PUBLISHER_GITHUB_TOKEN is required")
        return self


class IntegrateDirective(BaseModel):
    """Records an extra parent for changes whose summary references a review.

    A summary line ``<label>=<ref>`` or ``<label>=<repo-url> <ref>`` makes the
    published commit a fake merge of that ref: the tree is unchanged, the
    fetched commit is added as a second parent.
    """

    model_config = ConfigDict(frozen=True)

    label: str = "PUBLISHER_INTEGRATE_REVIEW"
    strategy: Literal["FAKE_MERGE"] = "FAKE_MERGE"
    ignore_errors: bool = True


DEFAULT_INTEGRATES: tuple[IntegrateDirective, ...] = (IntegrateDirective(),)


class DestinationConfig(BaseModel):
    """A GitHub pull request destination."""

    model_config = ConfigDict(frozen=True)

    url: str
    pr_branch: str | None = Field(
        default=None, description="Explicit head branch; derived from the origin when unset"
    )
    destination_ref: str = Field(default=DEFAULT_BASE_REF, description="Base branch of the PR")
    title: str | None = None
    body: str | None = None
    create_pull_request: bool = True
    update_description: bool = Field(
        default=False, description="Rewrite title/body of an existing PR on every write"
    )
    integrates: tuple[IntegrateDirective, ...] = DEFAULT_INTEGRATES
    push_url: str | None = Field(
        default=None, description="Git remote to push to; defaults to the GitHub HTTPS remote"
    )

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        parse_github_url(value)
        return value.strip()

    @field_validator("destination_ref")
    @classmethod
    def _default_destination_ref(cls, value: str) -> str:
        return value.strip() or DEFAULT_BASE_REF

    @property
    def project(self) -> str:
        return find_project(self.url)

    @property
    def owner(self) -> str | None:
        return parse_github_url(self.url).owner

    @property
    def host(self) -> str:
        return parse_github_url(self.url).host

    @property
    def web_url(self) -> str:
        return f"https://{self.host}/{self.project}"

    @property
    def remote_url(self) -> str:
        return self.push_url or f"{self.web_url}.git"
