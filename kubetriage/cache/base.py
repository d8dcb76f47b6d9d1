"""Contract every explanation cache backend implements."""

from abc import ABC, abstractmethod

from kubetriage.models import CacheEntry


class CacheBackend(ABC):
    """A durable mapping from prompt hash to stored completion.

    Backends raise :class:`~kubetriage.errors.CacheError` when the store is
    unreachable or corrupt; they never decide whether that is fatal.
    """

    name: str = ""

    @abstractmethod
    def get(self, key: str) -> CacheEntry | None:
        """Return the entry stored under *key*, or ``None`` on a miss."""

    @abstractmethod
    def put(self, key: str, value: str) -> CacheEntry:
        """Store *value* under *key* and return the new entry."""
