"""Configuration schema for wp_github_sync.

Two kinds of configuration are modelled here:

* The **local** config file (``.wp_github_sync/config.yml``): GitHub and
  Slack settings, engine tuning and the list of endpoints to mirror.
* The **remote** endpoint config: a JSON file stored in each target
  repository (``GitHubTarget.config_path``) whose ``data`` object says
  where posts, pages, media and API mirrors go.  Its keys keep the
  PascalCase names used by existing repositories.

Usage:
    from wp_github_sync.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    for endpoint in unified.endpoints:
        ...
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Local config sections
# ---------------------------------------------------------------------------


class GitHubConfig(BaseModel):
    """GitHub credentials and committer identity.

    All fields are optional: env vars and CLI args can supply them instead.
    """

    token: str | None = Field(default=None, description="GitHub token")
    committer_name: str | None = Field(
        default=None, description="Name used on sync commits"
    )
    committer_email: str | None = Field(
        default=None, description="Email used on sync commits"
    )
    api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL",
    )

    model_config = {"frozen": True}


class SlackConfig(BaseModel):
    """Slack notification settings."""

    token: str | None = Field(default=None, description="Slack bot token")
    debug_channel: str | None = Field(
        default=None,
        description="Channel receiving error reports",
    )
    webhook_channel: str | None = Field(
        default=None,
        description=(
            "Channel receiving webhook notifications (default: debug_channel)"
        ),
    )

    model_config = {"frozen": True}


class SyncSettings(BaseModel):
    """Engine tuning knobs."""

    debug: bool = Field(
        default=False,
        description="Run endpoints flagged enabled_local instead of enabled",
    )
    max_parallel_requests: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum concurrent remote requests (1-50)",
    )
    chunk_max_bytes: int = Field(
        default=9_000_000,
        ge=1024,
        description="Maximum serialized size of one tree creation payload",
    )
    retry_count: int = Field(default=3, ge=0, le=10)
    retry_delay: float = Field(default=2.0, ge=0)
    webhook_settle_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Pause before a webhook-triggered pass so WordPress settles",
    )

    model_config = {"frozen": True}


class WordPressSource(BaseModel):
    """The WordPress site being mirrored."""

    url: str = Field(description="WordPress site root URL")
    tags_exclude: list[str] = Field(
        default_factory=list,
        description="Posts/pages carrying any of these tags are removed",
    )

    model_config = {"frozen": True}


class GitHubTarget(BaseModel):
    """Destination repository and the path of its remote endpoint config."""

    owner: str
    repo: str
    branch: str = "main"
    config_path: str = Field(
        default="wordpress-to-github.config.json",
        description="Path of the remote endpoint config in the repository",
    )

    model_config = {"frozen": True}

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class EndpointConfig(BaseModel):
    """One WordPress site mirrored into one repository branch."""

    name: str
    enabled: bool = False
    enabled_local: bool = False
    commit_only: bool = Field(
        default=True,
        description="Fast-forward the branch instead of opening a pull request",
    )
    reporting_channel_slack: str | None = None
    wordpress_source: WordPressSource
    github_target: GitHubTarget

    model_config = {"frozen": True}


class UnifiedConfig(BaseModel):
    """Top-level local configuration.

    Every section has defaults, so ``UnifiedConfig()`` is valid (it simply
    has no endpoints to process).
    """

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    slack: SlackConfig = Field(default_factory=SlackConfig)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    endpoints: list[EndpointConfig] = Field(default_factory=list)

    model_config = {"frozen": True}

    @field_validator("endpoints", mode="before")
    @classmethod
    def _unwrap_registry(cls, value):
        """Accept an ``endpoints.json`` registry: ``{"data": {"projects": [...]}}``."""
        if isinstance(value, dict) and "data" in value:
            return (value["data"] or {}).get("projects", [])
        return value


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    unified = UnifiedConfig(**raw_data)
    names = [e.name for e in unified.endpoints]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate endpoint names: {duplicates}")
    return unified


def yaml_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten the config sections that ``load_config()`` falls back on."""
    fallbacks = {
        k: v
        for k, v in unified.github.model_dump().items()
        if v is not None
    }
    if unified.slack.token:
        fallbacks["slack_token"] = unified.slack.token
    fallbacks["debug"] = unified.sync.debug
    fallbacks["max_parallel_requests"] = unified.sync.max_parallel_requests
    return fallbacks


# ---------------------------------------------------------------------------
# Remote endpoint config (stored in the target repository)
# ---------------------------------------------------------------------------


class ApiRequestConfig(BaseModel):
    """One auxiliary WordPress request mirrored as a JSON file.

    ``source`` is either an absolute URL or a path relative to the
    WordPress site root.
    """

    source: str = Field(alias="Source")
    destination: str = Field(alias="Destination")
    exclude_properties: list[str] = Field(
        default_factory=list, alias="ExcludeProperties"
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class RemoteEndpointConfig(BaseModel):
    """The ``data`` object of a repository's endpoint config file."""

    disabled: bool = False
    post_path: str | None = Field(default=None, alias="PostPath")
    page_path: str | None = Field(default=None, alias="PagePath")
    media_path: str | None = Field(default=None, alias="MediaPath")
    general_file_path: str | None = Field(
        default=None, alias="GeneralFilePath"
    )
    exclude_properties: list[str] = Field(
        default_factory=list, alias="ExcludeProperties"
    )
    hide_author_name: bool = Field(default=False, alias="HideAuthorName")
    api_requests: list[ApiRequestConfig] = Field(
        default_factory=list, alias="ApiRequests"
    )

    model_config = ConfigDict(
        frozen=True, populate_by_name=True, extra="ignore"
    )
