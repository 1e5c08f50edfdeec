"""Database layer for grouptrack application."""

from grouptrack.database.base import Database, StorageResult, StorageStatus
from grouptrack.database.factories import create_sqlite_database

__all__ = ["Database", "StorageResult", "StorageStatus", "create_sqlite_database"]
