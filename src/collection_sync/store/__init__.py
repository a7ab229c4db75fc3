"""Local collection storage used by the sync engine."""

from .base import CollectionStore, ContentSerializer
from .models import Collection, Folder, Request
from .repository import CollectionRepository

__all__ = [
    "Collection",
    "CollectionRepository",
    "CollectionStore",
    "ContentSerializer",
    "Folder",
    "Request",
]
