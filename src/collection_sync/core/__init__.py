"""Async helpers shared by the sync coordinator and the CLI."""

from .async_utils import run_sync, run_with_timeout

__all__ = ["run_sync", "run_with_timeout"]
