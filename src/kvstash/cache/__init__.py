"""Disk-backed key/value cache.

Values are stored one file per key in a cache directory, alongside an index
file that records when each key expires.

Key components:
- FileCache: Main cache interface
- CacheConfig: Configuration management
- MetadataIndex: Key to expiration table with load/persist
- ValueStore: Encoding, compression and atomic file writes
"""

from kvstash.cache.config import CacheConfig
from kvstash.cache.errors import (
    CacheCapacityError,
    CacheConfigurationError,
    CacheDirectoryMissingError,
    CacheError,
    CachePermissionError,
    CacheStorageError,
    CacheWriteError,
    CompressionUnavailableError,
)
from kvstash.cache.index import MetadataIndex
from kvstash.cache.interface import CacheInterface
from kvstash.cache.manager import FileCache, SetResult
from kvstash.cache.store import ValueStore
from kvstash.cache.validation import Validity

__all__ = [
    "FileCache",
    "SetResult",
    "CacheInterface",
    "CacheConfig",
    "MetadataIndex",
    "ValueStore",
    "Validity",
    "CacheError",
    "CacheConfigurationError",
    "CachePermissionError",
    "CompressionUnavailableError",
    "CacheCapacityError",
    "CacheStorageError",
    "CacheDirectoryMissingError",
    "CacheWriteError",
]
