"""Record and profile stores."""

from mentortrust.store.base import ProfileStore, RecordStore
from mentortrust.store.memory import InMemoryStore
from mentortrust.store.sqlite import SQLiteStore

__all__ = ["ProfileStore", "RecordStore", "InMemoryStore", "SQLiteStore"]
