"""Event store providers."""

from autoreply.providers.events.sqlite_event_store import SQLiteEventStore

__all__ = ["SQLiteEventStore"]
