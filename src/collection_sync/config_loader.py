"""
Hierarchical configuration loader for collection_sync.

Finds config files by convention, resolves ``!include`` directives and
``${VAR}`` references, and merges project-level settings over global ones.

Usage:
    from collection_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "COLLECTION_SYNC_CONFIG"
PROJECT_CONFIG_DIR = ".collection_sync"

# ${VAR} or ${VAR:-fallback}
_ENV_REF = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


# ---------------------------------------------------------------------------
# Env var interpolation
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-fallback}`` references in *value*.

    Unset or empty variables expand to the fallback, or to ``""`` when no
    fallback is given.  An unterminated ``${`` is left as-is.
    """

    def _expand(match: re.Match) -> str:
        current = os.environ.get(match.group(1))
        if current:
            return current
        return match.group(2) or ""

    return _ENV_REF.sub(_expand, value)


def _interpolate_tree(node: Any) -> Any:
    if isinstance(node, str):
        return interpolate_env_vars(node)
    if isinstance(node, list):
        return [_interpolate_tree(item) for item in node]
    if isinstance(node, dict):
        return {key: _interpolate_tree(val) for key, val in node.items()}
    return node


# ---------------------------------------------------------------------------
# YAML loading with !include
# ---------------------------------------------------------------------------


class IncludeLoader(yaml.SafeLoader):
    """SafeLoader subclass that understands ``!include other.yml``.

    Registering the constructor on a subclass leaves ``yaml.SafeLoader``
    untouched for the rest of the process.
    """


def _construct_include(loader: IncludeLoader, node: yaml.ScalarNode) -> Any:
    raw_path = Path(loader.construct_scalar(node))
    current_file = Path(loader.name).resolve()
    target = (
        raw_path if raw_path.is_absolute() else current_file.parent / raw_path
    ).resolve()

    chain: list[Path] = getattr(loader, "include_chain", [current_file])
    if target in chain:
        cycle = " -> ".join(str(p) for p in [*chain, target])
        raise ValueError(f"Circular include detected: {cycle}")
    if not target.exists():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {current_file})"
        )

    return load_yaml_file(target, include_chain=[*chain, target])


IncludeLoader.add_constructor("!include", _construct_include)


def load_yaml_file(
    path: Path, include_chain: list[Path] | None = None
) -> Any:
    """Parse one YAML file, following ``!include`` directives."""
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = IncludeLoader(fh)
        loader.include_chain = include_chain or [path]  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Search order:
        1. ``COLLECTION_SYNC_CONFIG`` env var (explicit path)
        2. ``./.collection_sync/config.yml`` (project)
        3. ``./.collection_sync/config.yaml`` (project, alternate extension)
        4. ``~/.config/collection_sync/config.yml`` (user)
    """
    candidates: list[Path] = []

    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())

    project_dir = Path.cwd() / PROJECT_CONFIG_DIR
    candidates.append(project_dir / "config.yml")
    candidates.append(project_dir / "config.yaml")
    candidates.append(
        Path.home() / ".config" / "collection_sync" / "config.yml"
    )

    return [p for p in candidates if p.exists()]


_STARTER_CONFIG = """\
# collection-sync configuration
#
# Remote settings can also be supplied through environment variables:
#   SYNC_PROVIDER, SYNC_REPOSITORY, SYNC_TOKEN, SYNC_BRANCH, SYNC_API_URL
#
# sync:
#   remote:
#     provider: github          # or gitlab
#     repository: acme/api-collections
#     token: ${GITHUB_TOKEN}
#     branch: main
#   workspaces:
#     team-workspace-id:
#       repository: acme/team-collections
#   request_timeout: 30
#
# logging:
#   level: INFO
#   file: null
"""


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a commented starter if none exists.

    Args:
        target: Where to create the starter file.  Defaults to
            ``./.collection_sync/config.yml``.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load every discovered config file and merge them.

    Files are applied from lowest to highest precedence; a higher file's
    top-level keys replace the lower file's wholesale.  Env var references
    are expanded after merging.  Returns ``{}`` when nothing is found.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        data = load_yaml_file(path)
        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_tree(merged)
