"""YAML serializer between stored collections and remote file maps.

Directory layout (paths relative to ``collections/``)::

    {collection_id}/_collection.yaml
    {collection_id}/_manifest.yaml
    {collection_id}/{request_id}.yaml
    {collection_id}/{folder_id}/_folder.yaml
    {collection_id}/{folder_id}/_manifest.yaml
    ...nested...

Manifests list ``{type, id}`` items in display order; import walks them,
so files not named by a manifest are ignored.  Output is deterministic:
importing a directory and serializing it again yields identical text.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from typing import Any, Iterable, Mapping

import yaml

from .providers.base import FileContent
from .store.models import Collection, Folder, Request, utc_now
from .store.repository import CollectionRepository
from .validators import validate_path_segment

logger = logging.getLogger(__name__)

COLLECTION_FILE = "_collection.yaml"
FOLDER_FILE = "_folder.yaml"
MANIFEST_FILE = "_manifest.yaml"
MAX_FOLDER_DEPTH = 20

SENSITIVE_HEADER_KEYS = frozenset(
    {
        "authorization",
        "proxy-authorization",
        "x-api-key",
        "x-auth-token",
        "x-access-token",
        "x-secret-key",
        "x-csrf-token",
        "x-xsrf-token",
        "x-token",
        "cookie",
        "set-cookie",
    }
)

SENSITIVE_PARAM_KEYS = frozenset(
    {
        "token",
        "access_token",
        "refresh_token",
        "id_token",
        "jwt",
        "api_key",
        "apikey",
        "api-key",
        "api_secret",
        "client_secret",
        "password",
        "passwd",
        "secret",
        "secret_key",
        "private_key",
        "session_id",
        "key",
        "credentials",
    }
)

_AUTH_SECRET_FIELDS = ("bearer_token", "basic_password", "api_key_value")


# ---------------------------------------------------------------------------
# YAML helpers
# ---------------------------------------------------------------------------


def to_yaml(data: Any) -> str:
    return yaml.safe_dump(
        data,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=2**31 - 1,
    )


def parse_yaml(content: str) -> dict:
    """Parse a YAML mapping.

    Raises:
        ValueError: If the content is empty or not a mapping.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML content: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("Invalid or empty YAML content")
    return data


def _require_id(value: Any, label: str) -> str:
    ok, reason = validate_path_segment(
        value if isinstance(value, str) else "", label
    )
    if not ok:
        raise ValueError(reason)
    return value


# ---------------------------------------------------------------------------
# Sanitizing
# ---------------------------------------------------------------------------


def _is_variable_reference(value: Any) -> bool:
    return isinstance(value, str) and "{{" in value and "}}" in value


def _blank_entries(
    entries: list[dict[str, Any]], sensitive_keys: frozenset[str]
) -> list[dict[str, Any]]:
    cleaned = []
    for entry in entries:
        key = str(entry.get("key", "")).lower()
        value = entry.get("value")
        if key in sensitive_keys and value and not _is_variable_reference(value):
            entry = {**entry, "value": ""}
        cleaned.append(entry)
    return cleaned


def sanitize_request_data(data: dict[str, Any]) -> dict[str, Any]:
    """Blank plain-text secrets in auth, headers and query parameters.

    Values that are ``{{variable}}`` references are kept.
    """
    data = dict(data)
    data["headers"] = _blank_entries(data.get("headers", []), SENSITIVE_HEADER_KEYS)
    data["query_params"] = _blank_entries(
        data.get("query_params", []), SENSITIVE_PARAM_KEYS
    )
    auth = data.get("auth")
    if isinstance(auth, dict):
        data["auth"] = {
            k: ("" if k in _AUTH_SECRET_FIELDS and not _is_variable_reference(v) else v)
            for k, v in auth.items()
        }
    return data


def sanitize_collection_data(data: dict[str, Any]) -> dict[str, Any]:
    """Blank collection variables whose key looks like a secret."""
    data = dict(data)
    data["variables"] = _blank_entries(
        data.get("variables", []), SENSITIVE_PARAM_KEYS
    )
    return data


def _strip_file_references(body: str) -> str:
    """Drop local file values from a form-data body; keep the field list."""
    try:
        fields = json.loads(body)
    except ValueError:
        return body
    if not isinstance(fields, list):
        return body
    cleaned = []
    for field in fields:
        if not isinstance(field, dict):
            continue
        if field.get("type", "text") == "file":
            cleaned.append(
                {
                    "key": field.get("key", ""),
                    "value": "",
                    "type": "file",
                    "filename": field.get("filename", ""),
                }
            )
        else:
            cleaned.append(
                {
                    "key": field.get("key", ""),
                    "value": field.get("value", ""),
                    "type": field.get("type", "text"),
                }
            )
    return json.dumps(cleaned)


# ---------------------------------------------------------------------------
# Serializer
# ---------------------------------------------------------------------------


class YamlCollectionSerializer:
    """Translate collections to and from remote file maps.

    Args:
        store: Repository read on serialize and written on import.
    """

    def __init__(self, store: CollectionRepository) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Serialize
    # ------------------------------------------------------------------

    def serialize_to_directory(
        self, collection: Collection, sanitize: bool = False
    ) -> dict[str, str]:
        """Serialize a collection to ``{relative_path: yaml_text}``.

        Raises:
            ValueError: If folders nest deeper than ``MAX_FOLDER_DEPTH``.
        """
        folders_by_parent: dict[str | None, list[Folder]] = defaultdict(list)
        for folder in self.store.list_folders(collection.id):
            folders_by_parent[folder.parent_id].append(folder)
        requests_by_folder: dict[str | None, list[Request]] = defaultdict(list)
        for request in self.store.list_requests(collection.id):
            requests_by_folder[request.folder_id].append(request)

        collection_data: dict[str, Any] = {
            "id": collection.id,
            "name": collection.name,
            "description": collection.description,
            "variables": list(collection.variables),
        }
        if sanitize:
            collection_data = sanitize_collection_data(collection_data)

        base = collection.id
        files = {f"{base}/{COLLECTION_FILE}": to_yaml(collection_data)}
        self._serialize_level(
            base,
            None,
            files,
            folders_by_parent,
            requests_by_folder,
            sanitize,
            depth=0,
        )
        return files

    def _serialize_level(
        self,
        path: str,
        folder_id: str | None,
        files: dict[str, str],
        folders_by_parent: Mapping[str | None, list[Folder]],
        requests_by_folder: Mapping[str | None, list[Request]],
        sanitize: bool,
        depth: int,
    ) -> None:
        if depth > MAX_FOLDER_DEPTH:
            raise ValueError(
                f"Folder nesting depth exceeded maximum of {MAX_FOLDER_DEPTH} levels"
            )

        folders = folders_by_parent.get(folder_id, [])
        requests = requests_by_folder.get(folder_id, [])
        files[f"{path}/{MANIFEST_FILE}"] = to_yaml(
            {"items": _build_manifest(folders, requests)}
        )

        for request in requests:
            files[f"{path}/{request.id}.yaml"] = self.serialize_request(
                request, sanitize
            )

        for folder in folders:
            folder_path = f"{path}/{folder.id}"
            files[f"{folder_path}/{FOLDER_FILE}"] = to_yaml(
                {"id": folder.id, "name": folder.name}
            )
            self._serialize_level(
                folder_path,
                folder.id,
                files,
                folders_by_parent,
                requests_by_folder,
                sanitize,
                depth + 1,
            )

    def serialize_request(self, request: Request, sanitize: bool = False) -> str:
        """Serialize one request to YAML text."""
        body = request.body
        if request.body_type == "form-data" and body:
            body = _strip_file_references(body)

        data: dict[str, Any] = {
            "id": request.id,
            "name": request.name,
            "method": request.method,
            "url": request.url,
            "headers": list(request.headers),
            "query_params": list(request.query_params),
            "body": body,
            "body_type": request.body_type,
        }
        if request.scripts:
            data["scripts"] = request.scripts
        if request.auth:
            data["auth"] = request.auth
        if sanitize:
            data = sanitize_request_data(data)
        return to_yaml(data)

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_from_directory(
        self,
        files: Iterable[FileContent],
        existing_collection_id: str | None = None,
        workspace_id: str | None = None,
    ) -> str:
        """Parse remote files back into the store.

        With *existing_collection_id* the collection keeps its identity and
        sync metadata while its name, variables, folders and requests are
        replaced.  Otherwise a new collection is created from the root
        descriptor's id.

        Returns:
            The id of the imported collection.

        Raises:
            ValueError: If the root descriptor is missing, any YAML is
                malformed, an id is not a safe path segment, the root
                descriptor's id differs from its directory name, or folders
                nest too deeply.
        """
        by_path = {file.path: file.content for file in files}

        base_path = None
        for path in by_path:
            if path.endswith(f"/{COLLECTION_FILE}"):
                base_path = path.rsplit("/", 1)[0]
                break
        if base_path is None:
            raise ValueError("Collection file not found")

        data = parse_yaml(by_path[f"{base_path}/{COLLECTION_FILE}"])
        remote_id = _require_id(data.get("id"), "Collection id")
        directory_id = base_path.rsplit("/", 1)[-1]
        if remote_id != directory_id:
            raise ValueError(
                f"Collection id '{remote_id}' does not match its directory "
                f"'{directory_id}'"
            )
        collection_id = existing_collection_id or remote_id

        folders: list[Folder] = []
        requests: list[Request] = []
        self._import_level(
            base_path, by_path, collection_id, None, folders, requests, depth=0
        )

        fields = {
            "name": str(data.get("name") or collection_id),
            "description": data.get("description"),
            "variables": list(data.get("variables") or []),
            "updated_at": utc_now(),
        }
        if self.store.find_by_id(collection_id) is not None:
            self.store.update(collection_id, **fields)
        else:
            self.store.add_collection(
                Collection(
                    id=collection_id,
                    workspace_id=workspace_id,
                    order=self.store.next_order(),
                    sync_enabled=True,
                    **fields,
                )
            )
        self.store.replace_contents(collection_id, folders, requests)

        logger.debug(
            "Imported collection %s: %d folder(s), %d request(s)",
            collection_id,
            len(folders),
            len(requests),
        )
        return collection_id

    def _import_level(
        self,
        path: str,
        by_path: Mapping[str, str],
        collection_id: str,
        folder_id: str | None,
        folders: list[Folder],
        requests: list[Request],
        depth: int,
    ) -> None:
        if depth > MAX_FOLDER_DEPTH:
            raise ValueError(
                f"Folder nesting depth exceeded maximum of {MAX_FOLDER_DEPTH} levels"
            )

        items: list = []
        manifest_text = by_path.get(f"{path}/{MANIFEST_FILE}")
        if manifest_text:
            items = parse_yaml(manifest_text).get("items") or []

        order = 0
        for item in items:
            if not isinstance(item, dict):
                continue
            item_id = _require_id(item.get("id"), "Manifest item id")
            if item.get("type") == "request":
                content = by_path.get(f"{path}/{item_id}.yaml")
                if content is None:
                    logger.warning("Manifest names missing request %s", item_id)
                    continue
                requests.append(
                    _request_from_yaml(
                        parse_yaml(content), collection_id, folder_id, order
                    )
                )
                order += 1
            elif item.get("type") == "folder":
                folder_path = f"{path}/{item_id}"
                content = by_path.get(f"{folder_path}/{FOLDER_FILE}")
                if content is None:
                    logger.warning("Manifest names missing folder %s", item_id)
                    continue
                meta = parse_yaml(content)
                new_id = _require_id(meta.get("id"), "Folder id")
                folders.append(
                    Folder(
                        id=new_id,
                        collection_id=collection_id,
                        parent_id=folder_id,
                        name=str(meta.get("name") or new_id),
                        order=order,
                    )
                )
                order += 1
                self._import_level(
                    folder_path,
                    by_path,
                    collection_id,
                    new_id,
                    folders,
                    requests,
                    depth + 1,
                )


def _build_manifest(
    folders: list[Folder], requests: list[Request]
) -> list[dict[str, str]]:
    entries = [("folder", f.id, f.order) for f in folders] + [
        ("request", r.id, r.order) for r in requests
    ]
    entries.sort(key=lambda entry: entry[2])
    return [{"type": kind, "id": item_id} for kind, item_id, _ in entries]


def _request_from_yaml(
    data: dict, collection_id: str, folder_id: str | None, order: int
) -> Request:
    request_id = _require_id(data.get("id"), "Request id")
    body = data.get("body")
    if body is not None and not isinstance(body, str):
        body = json.dumps(body)
    return Request(
        id=request_id,
        collection_id=collection_id,
        folder_id=folder_id,
        name=str(data.get("name") or request_id),
        method=str(data.get("method") or "GET"),
        url=str(data.get("url") or ""),
        headers=list(data.get("headers") or []),
        query_params=list(data.get("query_params") or []),
        body=body,
        body_type=str(data.get("body_type") or "none"),
        auth=data.get("auth") or None,
        scripts=data.get("scripts") or None,
        order=order,
    )
