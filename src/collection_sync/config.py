"""Effective settings for the sync engine.

Reads remote sync settings from CLI args, environment variables, .env
files and YAML config files.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables (apply to the global ``sync.remote`` section):
    SYNC_PROVIDER: ``github`` or ``gitlab``
    SYNC_REPOSITORY: Repository identifier (``owner/repo``)
    SYNC_TOKEN: Access token
    SYNC_BRANCH: Target branch (optional, default: main)
    SYNC_API_URL: API base URL for self-hosted instances (optional)
    SYNC_REQUEST_TIMEOUT: Per-request timeout in seconds (optional, default: 30)
"""

import logging
import os

from .config_loader import load_hierarchical_config
from .config_schema import UnifiedConfig, build_config

logger = logging.getLogger(__name__)

_ENV_REMOTE_FIELDS = {
    "provider": "SYNC_PROVIDER",
    "repository": "SYNC_REPOSITORY",
    "token": "SYNC_TOKEN",
    "branch": "SYNC_BRANCH",
    "api_url": "SYNC_API_URL",
}


def apply_overrides(
    raw: dict,
    cli_overrides: dict | None = None,
) -> dict:
    """Layer environment variables and CLI overrides onto raw config data.

    Args:
        raw: Merged YAML config (as returned by ``load_hierarchical_config``).
        cli_overrides: Optional dict with keys ``provider``, ``repository``,
            ``token``, ``branch``, ``api_url``.

    Returns:
        A new dict; *raw* is not modified.

    Raises:
        ValueError: If ``SYNC_REQUEST_TIMEOUT`` is not a positive number.
    """
    merged = dict(raw)
    sync = dict(merged.get("sync") or {})
    remote = dict(sync.get("remote") or {})

    for field, env_var in _ENV_REMOTE_FIELDS.items():
        value = os.getenv(env_var)
        if value:
            remote[field] = value.strip()

    for field, value in (cli_overrides or {}).items():
        if field in _ENV_REMOTE_FIELDS and value:
            remote[field] = value

    timeout_raw = os.getenv("SYNC_REQUEST_TIMEOUT")
    if timeout_raw is not None:
        try:
            timeout = float(timeout_raw)
        except ValueError:
            raise ValueError(
                f"Invalid SYNC_REQUEST_TIMEOUT '{timeout_raw}': must be a number of seconds"
            ) from None
        if timeout <= 0:
            raise ValueError(
                f"Invalid SYNC_REQUEST_TIMEOUT '{timeout_raw}': must be greater than 0"
            )
        sync["request_timeout"] = timeout

    sync["remote"] = remote
    merged["sync"] = sync
    return merged


def load_settings(cli_overrides: dict | None = None) -> UnifiedConfig:
    """Load the unified configuration with full precedence applied.

    The caller is responsible for calling ``load_dotenv()`` first so that
    .env values are visible through ``os.getenv()``.
    """
    raw = load_hierarchical_config()
    config = build_config(apply_overrides(raw, cli_overrides))
    if config.sync.remote.provider:
        logger.debug(
            "Global remote: %s %s",
            config.sync.remote.provider,
            config.sync.remote.repository,
        )
    return config
