"""Chapter-linked event and chapter state storage."""

from beatweaver.persistence.base import PersistenceError, PersistenceService
from beatweaver.persistence.memory import InMemoryChapterStore
from beatweaver.persistence.sqlite_store import SqliteChapterStore

__all__ = [
    "InMemoryChapterStore",
    "PersistenceError",
    "PersistenceService",
    "SqliteChapterStore",
]
