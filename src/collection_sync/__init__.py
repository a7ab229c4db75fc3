"""Synchronize local API request collections with a Git-hosted repository."""

__version__ = "0.1.0"
