"""Persistence adapters for scheduled actions."""

from .sqlite import OwnerActionStore, SqliteActionRepository, StorageError

__all__ = ["OwnerActionStore", "SqliteActionRepository", "StorageError"]
