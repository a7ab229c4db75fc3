"""Remote provider contract and shared HTTP plumbing.

A ``RemoteProvider`` is a uniform, blocking interface over a hosted Git
repository's file-level API.  The coordinator runs every call in a worker
thread, so implementations may block freely; each HTTP request is bounded
by the configured per-request timeout.

Error taxonomy:

- Not-found is never raised: ``get_file`` returns ``None`` and listings
  return ``[]``.
- Version conflicts raise ``SyncConflictError`` carrying the path(s).
- Network failures and timeouts raise ``RemoteTransportError``.
- Any other unexpected status raises ``RemoteProtocolError``.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Literal

import requests
from pydantic import BaseModel

from ..config_schema import GitHubProviderConfig, GitLabProviderConfig
from ..exceptions import RemoteProtocolError, RemoteTransportError

logger = logging.getLogger(__name__)

USER_AGENT = "collection-sync"


class DirectoryItem(BaseModel):
    """One entry of a recursive remote listing.

    Attributes:
        kind: ``"file"`` or ``"dir"``.
        path: Repository-relative path.
        remote_id: Provider-specific version identifier (blob SHA).
    """

    kind: Literal["file", "dir"]
    path: str
    remote_id: str | None = None

    model_config = {"frozen": True}


class FileContent(BaseModel):
    """A remote file with its content.

    Attributes:
        path: Repository-relative path.
        content: Decoded UTF-8 text.
        remote_id: Blob identifier.
        secondary_id: Commit identifier, for providers whose single-file
            updates use it as the precondition.
    """

    path: str
    content: str
    remote_id: str | None = None
    secondary_id: str | None = None

    model_config = {"frozen": True}


class RemoteProvider(ABC):
    """Uniform file-level interface over a hosted Git repository."""

    #: True when ``update_file`` expects a commit id (``secondary_id``)
    #: rather than the blob id as its precondition.
    uses_commit_precondition: bool = False

    @abstractmethod
    def list_directory_recursive(self, path: str) -> list[DirectoryItem]:
        """List everything under *path*; ``[]`` when it does not exist."""

    @abstractmethod
    def get_directory_tree(self, path: str) -> list[FileContent]:
        """Fetch the content of every ``.yaml`` file under *path*."""

    @abstractmethod
    def get_file(self, path: str) -> FileContent | None:
        """Read one file; ``None`` when it does not exist."""

    @abstractmethod
    def create_file(self, path: str, content: str, message: str) -> str:
        """Create a file and return its remote id."""

    @abstractmethod
    def update_file(
        self, path: str, content: str, precondition_id: str, message: str
    ) -> str:
        """Update a file guarded by *precondition_id*; return the new remote id.

        Raises:
            SyncConflictError: If the precondition no longer matches.
        """

    @abstractmethod
    def delete_file(
        self, path: str, precondition_id: str, message: str
    ) -> None:
        """Delete one file guarded by *precondition_id*."""

    def delete_directory(self, path: str, message: str) -> None:
        """Delete every file under *path* in one atomic commit.

        No-op when the directory is empty or absent.
        """
        files = [
            item.path
            for item in self.list_directory_recursive(path)
            if item.kind == "file"
        ]
        if not files:
            logger.debug("Nothing to delete under %s", path)
            return
        self.commit_multiple_files({}, message, files)

    @abstractmethod
    def commit_multiple_files(
        self,
        upserts: dict[str, str],
        message: str,
        deletes: list[str] | None = None,
    ) -> str:
        """Apply *upserts* and *deletes* as one atomic commit; return its id."""

    @abstractmethod
    def test_connection(self) -> bool:
        """Return True when the repository is reachable with these credentials."""

    def predict_remote_id(self, content: str) -> str | None:
        """Return the id the backend will assign to *content*, if knowable."""
        return None


class HttpProvider(RemoteProvider):
    """Base for REST adapters: thread-local sessions and status mapping.

    Args:
        config: Resolved provider configuration.
    """

    def __init__(
        self, config: GitHubProviderConfig | GitLabProviderConfig
    ) -> None:
        self.config = config
        self.api_url = config.api_url.rstrip("/")
        self.branch = config.branch
        self.timeout = config.request_timeout
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        """Session for the current thread."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {"User-Agent": USER_AGENT, "Accept": "application/json"}
        )
        session.headers.update(self._auth_headers())
        return session

    @abstractmethod
    def _auth_headers(self) -> dict[str, str]:
        """Headers carrying the access token."""

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> requests.Response:
        """Send one request; map transport failures to ``RemoteTransportError``.

        The response is returned whatever its status so callers can
        interpret 404/409/422 themselves.
        """
        logger.debug("%s %s", method, url)
        try:
            return self._get_session().request(
                method,
                url,
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise RemoteTransportError(
                f"{method} {url} timed out after {self.timeout:g}s"
            ) from exc
        except requests.RequestException as exc:
            raise RemoteTransportError(f"{method} {url} failed: {exc}") from exc

    @staticmethod
    def _raise_for_status(
        response: requests.Response, action: str
    ) -> None:
        if response.ok:
            return
        detail = ""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            detail = str(body.get("message") or body.get("error") or "")
        message = f"Failed to {action}"
        if detail:
            message = f"{message}: {detail}"
        raise RemoteProtocolError(response.status_code, message)
