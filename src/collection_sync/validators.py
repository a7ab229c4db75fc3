"""
Input validation functions for collection sync.

Validates repository identifiers, branch names and remote paths before
they are interpolated into provider API URLs, and the ids that become
path segments of the remote directory layout.
"""

import re

_GITHUB_REPO_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
_GITLAB_REPO_RE = re.compile(r"^([A-Za-z0-9_.-]+/)+[A-Za-z0-9_.-]+$|^\d+$")
_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*$")


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Branch")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_repository(provider: str, repository: str) -> tuple[bool, str]:
    """
    Validate a repository identifier for the given provider.

    Args:
        provider: ``"github"`` or ``"gitlab"``
        repository: ``owner/repo`` for GitHub; ``group[/subgroup]/project``
            or a numeric project id for GitLab

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.
    """
    if not repository or not repository.strip():
        return (
            False,
            format_validation_error("Repository", "cannot be empty"),
        )

    if ".." in repository:
        return (
            False,
            format_validation_error("Repository", "cannot contain '..'"),
        )

    pattern = _GITHUB_REPO_RE if provider == "github" else _GITLAB_REPO_RE
    if not pattern.match(repository):
        expected = (
            "'owner/repo'"
            if provider == "github"
            else "'group/project' or a numeric project id"
        )
        return (
            False,
            format_validation_error(
                "Repository", f"must have the form {expected}"
            ),
        )

    return (True, "")


def validate_branch(branch: str) -> tuple[bool, str]:
    """
    Validate a branch name.

    Validation rules (subset of ``git check-ref-format``):
        - Cannot be empty or whitespace-only
        - Cannot contain '..', whitespace, '~', '^', ':', '?', '*', '[' or '\\'
        - Cannot start or end with '/' or end with '.lock'
    """
    if not branch or not branch.strip():
        return (
            False,
            format_validation_error("Branch", "cannot be empty"),
        )

    if ".." in branch or re.search(r"[\s~^:?*\[\\]", branch):
        return (
            False,
            format_validation_error(
                "Branch", "contains characters not allowed in a ref name"
            ),
        )

    if branch.startswith("/") or branch.endswith("/") or branch.endswith(
        ".lock"
    ):
        return (
            False,
            format_validation_error("Branch", "is not a valid ref name"),
        )

    return (True, "")


def validate_path_segment(segment: str, label: str = "Id") -> tuple[bool, str]:
    """
    Validate a single remote path segment (collection, folder or request id).

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not segment:
        return (False, format_validation_error(label, "cannot be empty"))

    if not _SEGMENT_RE.match(segment) or segment in (".", ".."):
        return (
            False,
            format_validation_error(
                label, f"'{segment[:40]}' is not a safe path segment"
            ),
        )

    return (True, "")


def validate_remote_path(path: str) -> tuple[bool, str]:
    """
    Validate a repository-relative path.

    Validation rules:
        - Cannot be empty
        - Cannot be absolute
        - Cannot contain '..' segments or empty segments
    """
    if not path or not path.strip():
        return (False, format_validation_error("Path", "cannot be empty"))

    if path.startswith("/"):
        return (False, format_validation_error("Path", "must be relative"))

    segments = path.split("/")
    if any(s == ".." for s in segments):
        return (
            False,
            format_validation_error("Path", "cannot contain '..'"),
        )

    if any(s == "" for s in segments):
        return (
            False,
            format_validation_error(
                "Path", "cannot have empty path segments"
            ),
        )

    return (True, "")
