"""Remote provider adapters.

- ``base``   -- ``RemoteProvider`` contract, ``HttpProvider`` plumbing,
  ``DirectoryItem`` and ``FileContent``.
- ``github`` -- blob-oriented adapter (Git Data API).
- ``gitlab`` -- commit-oriented adapter (Repository API v4).
"""

from ..config_schema import GitHubProviderConfig, GitLabProviderConfig
from .base import DirectoryItem, FileContent, HttpProvider, RemoteProvider
from .github import GitHubProvider, git_blob_sha
from .gitlab import GitLabProvider


def create_provider(
    config: GitHubProviderConfig | GitLabProviderConfig,
) -> RemoteProvider:
    """Build the adapter matching the tagged provider configuration."""
    match config.provider:
        case "github":
            return GitHubProvider(config)
        case "gitlab":
            return GitLabProvider(config)
        case _:
            raise ValueError(f"Unknown provider: {config.provider}")


__all__ = [
    "DirectoryItem",
    "FileContent",
    "GitHubProvider",
    "GitLabProvider",
    "HttpProvider",
    "RemoteProvider",
    "create_provider",
    "git_blob_sha",
]
