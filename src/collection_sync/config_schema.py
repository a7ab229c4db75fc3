"""Unified configuration schema for collection_sync.

Defines Pydantic models for the config structure with dedicated sections
for remote sync and logging, plus the tagged provider configuration that
the provider factory dispatches on.

Usage:
    from collection_sync.config_schema import (
        build_config, resolve_provider_config,
    )

    raw = load_hierarchical_config()
    unified = build_config(raw)
    provider_config = resolve_provider_config(unified, workspace_id="ws-1")
"""

from __future__ import annotations

import logging
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, ValidationError

from .validators import validate_branch, validate_repository

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"
GITHUB_API_URL = "https://api.github.com"
GITLAB_API_URL = "https://gitlab.com/api/v4"


# ---------------------------------------------------------------------------
# Remote settings (partial, merged per field)
# ---------------------------------------------------------------------------


class RemoteSettings(BaseModel):
    """Remote repository settings as written in config files.

    Every field is optional so a workspace entry can override just the
    fields it cares about and inherit the rest from the global section.
    """

    provider: Literal["github", "gitlab"] | None = Field(
        default=None, description="Hosting backend"
    )
    repository: str | None = Field(
        default=None, description="owner/repo or group/project"
    )
    token: str | None = Field(default=None, description="Access token")
    branch: str | None = Field(default=None, description="Target branch")
    api_url: str | None = Field(
        default=None, description="API base URL for self-hosted instances"
    )

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Resolved provider configuration (tagged variant)
# ---------------------------------------------------------------------------


class _ProviderConfigBase(BaseModel):
    repository: str
    token: str
    branch: str = DEFAULT_BRANCH
    request_timeout: float = Field(default=30.0, gt=0, le=300)

    model_config = {"frozen": True}

    def __repr__(self) -> str:
        # Keep the token out of logs and tracebacks.
        return (
            f"{type(self).__name__}(repository={self.repository!r}, "
            f"branch={self.branch!r})"
        )


class GitHubProviderConfig(_ProviderConfigBase):
    """GitHub (or GitHub Enterprise) repository."""

    provider: Literal["github"] = "github"
    api_url: str = GITHUB_API_URL


class GitLabProviderConfig(_ProviderConfigBase):
    """GitLab (gitlab.com or self-hosted) project."""

    provider: Literal["gitlab"] = "gitlab"
    api_url: str = GITLAB_API_URL


ProviderConfig = Annotated[
    Union[GitHubProviderConfig, GitLabProviderConfig],
    Field(discriminator="provider"),
]


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class SyncConfig(BaseModel):
    """Remote sync settings.

    Attributes:
        remote: Global remote settings.
        workspaces: Per-workspace overrides keyed by workspace id.
        request_timeout: Per-HTTP-request timeout in seconds.
        operation_timeout: Optional deadline for each provider call made
            by the coordinator (a multi-request call such as an atomic
            commit counts once).
    """

    remote: RemoteSettings = Field(default_factory=RemoteSettings)
    workspaces: dict[str, RemoteSettings] = Field(default_factory=dict)
    request_timeout: float = Field(default=30.0, gt=0, le=300)
    operation_timeout: float | None = Field(default=None, gt=0)

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()`` (zero-config)
    is always valid; it simply resolves to "not configured".
    """

    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully -- anything absent gets defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def resolve_provider_config(
    config: UnifiedConfig,
    workspace_id: str | None = None,
) -> GitHubProviderConfig | GitLabProviderConfig | None:
    """Resolve the effective provider configuration for a scope.

    Each field prefers the workspace-scoped override and falls back to the
    global ``sync.remote`` value.  The branch defaults to ``main``.

    Args:
        config: The unified configuration.
        workspace_id: Optional workspace scope.

    Returns:
        A tagged provider config, or ``None`` when provider, repository or
        token is missing or invalid (the scope is "not configured").
    """
    sync = config.sync
    override = (
        sync.workspaces.get(workspace_id) if workspace_id else None
    ) or RemoteSettings()
    base = sync.remote

    def pick(field: str) -> str | None:
        value = getattr(override, field)
        if value is not None:
            return value
        return getattr(base, field)

    provider = pick("provider")
    repository = pick("repository")
    token = pick("token")
    branch = pick("branch") or DEFAULT_BRANCH
    api_url = pick("api_url")

    if not provider or not repository or not token:
        return None

    ok, reason = validate_repository(provider, repository)
    if not ok:
        logger.warning("Ignoring sync settings: %s", reason)
        return None
    ok, reason = validate_branch(branch)
    if not ok:
        logger.warning("Ignoring sync settings: %s", reason)
        return None

    fields: dict = {
        "repository": repository,
        "token": token,
        "branch": branch,
        "request_timeout": sync.request_timeout,
    }
    if api_url:
        fields["api_url"] = api_url.rstrip("/")

    try:
        if provider == "github":
            return GitHubProviderConfig(**fields)
        return GitLabProviderConfig(**fields)
    except ValidationError as exc:
        logger.warning("Ignoring sync settings: %s", exc)
        return None
