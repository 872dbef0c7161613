"""SQLite database layer: connection management and repository implementations."""

from shared.db.connection import Database
from shared.db.state_repository import SqliteStateRepository

__all__ = [
    "Database",
    "SqliteStateRepository",
]
