"""Abstract interface for key/value cache implementations."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class CacheInterface(ABC):
    """Contract shared by cache implementations.

    Implementations store values under string keys with an optional TTL.
    Missing and expired keys are not errors: lookups return a default and
    ``expire`` reports whether anything was removed.

    Examples:
        >>> def warm(cache: CacheInterface, rows):
        ...     for key, value in rows:
        ...         cache.set(key, value, ttl=300)
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value if it exists and has not expired."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[float] = 0) -> Any:
        """Store a value, replacing any existing entry for the key.

        Args:
            key: Cache key
            value: Value to store
            ttl: Time-to-live in seconds; 0 or None never expires
        """
        pass

    @abstractmethod
    def expire(self, key: str) -> bool:
        """Remove a key, returning False if it was not cached."""
        pass

    @abstractmethod
    def read(self, key: str) -> Optional[Dict[str, Any]]:
        """Return information about a cached entry without touching it."""
        pass

    @abstractmethod
    def get_cache_max_size(self) -> int:
        """Maximum size of the cache in bytes."""
        pass

    @abstractmethod
    def get_cache_size(self) -> int:
        """Current size of the cache in bytes."""
        pass

    @abstractmethod
    def get_cache_type(self) -> str:
        """Name of the cache implementation."""
        pass

    @abstractmethod
    def flush_cache(self) -> int:
        """Remove every entry from the cache."""
        pass
