"""Storage backends for persisted state.

Available backends:
- SQLiteStore: File-based SQLite database (default for local use)
- InMemoryStore: In-memory storage for testing
"""

from pathlib import Path

from .memory import InMemoryStore
from .protocol import KeyValueStore
from .sqlite import SQLiteStore


def create_store(path: Path | str | None = None) -> KeyValueStore:
    """Create the default persistent store.

    Args:
        path: SQLite file. Falls back to the configured state path.

    Returns:
        Initialized SQLiteStore.
    """
    from idphoto.config import get_state_path

    store = SQLiteStore(get_state_path(path))
    store.initialize()
    return store


__all__ = [
    "KeyValueStore",
    "InMemoryStore",
    "SQLiteStore",
    "create_store",
]
