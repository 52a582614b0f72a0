"""Storage protocol for persisted key-value state.

Defines the interface that all storage backends must implement.
"""

from typing import Protocol


class KeyValueStore(Protocol):
    """Protocol defining a string key-value store.

    Values are opaque strings; callers own their serialization. Backends
    (SQLite, in-memory) must implement this interface to be usable by
    the quota layer.
    """

    def get(self, key: str) -> str | None:
        """Get the value stored under a key.

        Args:
            key: Storage key.

        Returns:
            Stored string, or None if the key was never set.
        """
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one.

        Args:
            key: Storage key.
            value: String to store.
        """
        ...
