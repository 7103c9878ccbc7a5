"""SQLite storage handle."""

from autoreply.providers.storage.database import Database

__all__ = ["Database"]
