"""Database factory functions for creating database instances."""

import os
from pathlib import Path
from typing import Optional

from grouptrack.database.sqlalchemy_db import SQLAlchemyDatabase


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a SQLite database instance.

    Args:
        database_path: Path to SQLite database file. If None, checks GROUPTRACK_DB_PATH
            environment variable, then defaults to ~/.grouptrack/grouptrack.db

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    if database_path is None:
        database_path = os.environ.get("GROUPTRACK_DB_PATH")

    if database_path is None:
        home = Path.home()
        db_dir = home / ".grouptrack"
        db_dir.mkdir(exist_ok=True)
        database_path = str(db_dir / "grouptrack.db")

    database_url = f"sqlite:///{database_path}"
    return SQLAlchemyDatabase(database_url)
