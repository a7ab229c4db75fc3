"""Command line entry point: ``collection-sync``.

Loads ``.env`` and the hierarchical config, opens the JSON collection
store, runs one coordinator operation and saves the store again.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv

from . import __version__
from .config import load_settings
from .config_loader import ensure_config
from .exceptions import SyncConflictError, SyncError
from .logger import setup_logging
from .serializer import YamlCollectionSerializer
from .session_log import SessionLog
from .store import Collection, CollectionRepository
from .sync import (
    RESOLUTIONS,
    SyncConflict,
    SyncCoordinator,
    SyncResult,
    format_sync_result,
    resolve_conflict,
    result_to_json,
)

logger = logging.getLogger(__name__)

DEFAULT_STORE = Path(".collection_sync") / "collections.json"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="collection-sync",
        description="Synchronize API request collections with a GitHub or GitLab repository",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check credentials and repository access
  collection-sync test

  # Import new and updated collections from the remote
  collection-sync pull

  # Push one collection, or every dirty collection
  collection-sync push 3f6c0d4e-1b2a-4c5d-8e9f-0a1b2c3d4e5f
  collection-sync push-all

  # Settle a conflict by keeping the local copy
  collection-sync resolve 3f6c0d4e-1b2a-4c5d-8e9f-0a1b2c3d4e5f keep-local
        """,
    )
    parser.add_argument(
        "--store",
        type=Path,
        default=DEFAULT_STORE,
        help=f"Collection store file (default: {DEFAULT_STORE})",
    )
    parser.add_argument("--workspace", help="Workspace scope")
    parser.add_argument(
        "--provider",
        choices=["github", "gitlab"],
        help="Override remote provider (takes precedence over SYNC_PROVIDER)",
    )
    parser.add_argument(
        "--repository",
        help="Override repository (takes precedence over SYNC_REPOSITORY)",
    )
    parser.add_argument(
        "--branch", help="Override branch (takes precedence over SYNC_BRANCH)"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log record format (default: text)",
    )
    parser.add_argument(
        "--json", action="store_true", help="Print results as JSON"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"collection-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init", help="Write a starter config file if none exists")
    sub.add_parser("test", help="Test the remote connection")
    sub.add_parser("pull", help="Pull every remote collection")

    push = sub.add_parser("push", help="Push one collection")
    push.add_argument("collection_id")
    push.add_argument(
        "--sanitize", action="store_true", help="Blank secrets before pushing"
    )

    sub.add_parser("push-all", help="Push every dirty or never-synced collection")

    push_request = sub.add_parser(
        "push-request", help="Push a single request file"
    )
    push_request.add_argument("collection_id")
    push_request.add_argument("request_id")
    push_request.add_argument("--sanitize", action="store_true")

    resolve = sub.add_parser("resolve", help="Resolve a conflicted collection")
    resolve.add_argument("collection_id")
    resolve.add_argument("resolution", choices=sorted(RESOLUTIONS))

    delete = sub.add_parser(
        "delete-remote", help="Delete a collection from the remote"
    )
    delete.add_argument("collection_id")
    return parser


def _find_collection(store: CollectionRepository, collection_id: str) -> Collection:
    collection = store.find_by_id(collection_id)
    if collection is None:
        raise SyncError(f"Collection not found: {collection_id}")
    return collection


async def run_command(
    args: argparse.Namespace,
    coordinator: SyncCoordinator,
    store: CollectionRepository,
) -> SyncResult:
    """Execute the selected sub-command and describe the outcome."""
    match args.command:
        case "test":
            ok = await coordinator.test_connection()
            return SyncResult(
                success=ok,
                message="Connection OK" if ok else "Connection failed",
            )
        case "pull":
            return await coordinator.pull()
        case "push-all":
            return await coordinator.push_all()

    collection = _find_collection(store, args.collection_id)
    match args.command:
        case "push":
            try:
                await coordinator.push_collection(collection, args.sanitize)
            except SyncConflictError as exc:
                return SyncResult(
                    success=False,
                    message=str(exc),
                    conflicts=[
                        SyncConflict(
                            collection_id=collection.id,
                            collection_name=collection.name,
                            local_updated_at=collection.updated_at,
                            remote_updated_at=collection.remote_synced_at,
                        )
                    ],
                )
            return SyncResult(
                message=f"Pushed '{collection.name}'", pushed=1
            )
        case "push-request":
            ok = await coordinator.push_single_request(
                collection, args.request_id, args.sanitize
            )
            return SyncResult(
                success=ok,
                message=(
                    f"Pushed request {args.request_id}"
                    if ok
                    else "Single-file push failed; collection marked for full push"
                ),
                pushed=1 if ok else 0,
            )
        case "resolve":
            return await resolve_conflict(
                coordinator, collection, args.resolution
            )
        case "delete-remote":
            await coordinator.delete_remote_collection(collection)
            return SyncResult(
                message=f"Requested remote deletion of '{collection.name}'"
            )
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "init":
        print(f"Config file: {ensure_config()}")
        return 0

    load_dotenv()
    overrides = {
        "provider": args.provider,
        "repository": args.repository,
        "branch": args.branch,
    }
    try:
        config = load_settings({k: v for k, v in overrides.items() if v})
    except (ValueError, OSError, yaml.YAMLError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file,
        debug_format=args.log_format,
        config=config.logging,
    )

    store = CollectionRepository.load(args.store)
    coordinator = SyncCoordinator.for_workspace(
        config,
        store,
        YamlCollectionSerializer(store),
        session_log=SessionLog(),
        workspace_id=args.workspace,
    )
    if not coordinator.is_configured:
        logger.warning(
            "No remote configured; see `collection-sync init` or the SYNC_* variables"
        )

    try:
        result = asyncio.run(run_command(args, coordinator, store))
    except SyncError as exc:
        result = SyncResult(success=False, message=str(exc))
    finally:
        store.save(args.store)

    if args.json:
        print(json.dumps(result_to_json(result), indent=2))
    else:
        print(format_sync_result(result, args.command))
    return 0 if result.success else 1


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
