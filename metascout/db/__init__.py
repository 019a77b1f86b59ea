from metascout.db.store import InMemoryStore, KeyValueStore, SqlKeyValueStore

__all__ = [
    "InMemoryStore",
    "KeyValueStore",
    "SqlKeyValueStore",
]
