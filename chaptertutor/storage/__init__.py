"""Persistence backends for tutoring records."""

from chaptertutor.storage.base import RecordStore
from chaptertutor.storage.memory import InMemoryStore
from chaptertutor.storage.sql import SQLStore

__all__ = [
    "RecordStore",
    "InMemoryStore",
    "SQLStore",
]
